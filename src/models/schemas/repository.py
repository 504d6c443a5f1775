from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ForkStatus(str, Enum):
    EXISTS = "exists"
    CREATED = "created"


class RepositoryFork(BaseModel):
    """The user's fork of the upstream workflow template repository."""
    owner: str
    repo_name: str
    fork_url: str
    fork_status: ForkStatus
    default_branch: str = "main"
    created_at: Optional[datetime] = None
