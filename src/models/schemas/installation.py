"""
Pydantic schemas for GitHub App installations.

These are snapshots of what GitHub returns for an installation; nothing
here is persisted except through the session/profile record.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class InstallationAccount(BaseModel):
    login: str
    id: int
    avatar_url: Optional[str] = None


class Installation(BaseModel):
    id: int
    account: InstallationAccount
    permissions: Dict[str, str] = Field(default_factory=dict)


class InstallationToken(BaseModel):
    token: str
    expires_at: Optional[datetime] = None


class InstallationRepository(BaseModel):
    """A repository visible to an installation (only the fields we use)."""
    id: int
    name: str
    full_name: Optional[str] = None
    fork: bool = False
    default_branch: Optional[str] = None


class PermissionCheckResult(BaseModel):
    valid: bool
    missing_permissions: List[str] = Field(default_factory=list)


class InstallationRecord(BaseModel):
    """Installation binding stored against a platform user profile."""
    installation_id: str
    gh_user_login: str
    gh_user_id: int
    gh_avatar_url: Optional[str] = None
    gh_repo_name: Optional[str] = None
