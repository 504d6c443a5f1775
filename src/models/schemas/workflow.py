"""
Pydantic schemas for workflow uploads and registration runs.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# ENUMS
# =============================================================================

class RegistrationState(str, Enum):
    """
    Registration progress derived from a GitHub Actions run.

    - PENDING: run queued (or any status GitHub reports before it starts)
    - RUNNING: run in progress
    - SUCCESS: run completed with conclusion "success"
    - FAILED: run completed with any other conclusion
    """
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RegistrationState.SUCCESS, RegistrationState.FAILED)


# =============================================================================
# UPLOAD
# =============================================================================

class FileValidationResult(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)
    sanitized_file_name: str


class UploadResult(BaseModel):
    file_name: str
    commit_sha: str


class RegistrationTriggerResult(BaseModel):
    workflow_run_id: Optional[int] = None
    workflow_run_url: Optional[str] = None


# =============================================================================
# RUNS
# =============================================================================

class WorkflowRunInfo(BaseModel):
    id: int
    status: Optional[str] = None
    conclusion: Optional[str] = None
    html_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class WorkflowRunStatus(BaseModel):
    status: RegistrationState
    conclusion: Optional[str] = None
    html_url: Optional[str] = None


class RegistrationStatus(BaseModel):
    file_name: str
    status: RegistrationState
    workflow_run_id: Optional[int] = None
    workflow_run_url: Optional[str] = None
    error_message: Optional[str] = None
    triggered_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
