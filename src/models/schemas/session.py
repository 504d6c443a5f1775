from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UserSession(BaseModel):
    """
    Caller identity reconstructed on every request.

    Built either from signed cookie claims or from a platform user joined to
    its stored installation record.
    """
    installation_id: str
    user_login: str
    user_id: int
    avatar_url: Optional[str] = None
    repo_name: Optional[str] = None
    created_at: datetime
    expires_at: datetime


class SessionClaims(BaseModel):
    installation_id: str
    gh_user_login: str
    gh_user_id: int
    gh_repo_name: str
    gh_avatar_url: Optional[str] = None
