"""
Response bodies returned by the HTTP routes.

Field names follow the JSON contract consumed by the frontend (camelCase).
"""

from typing import List, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: Optional[str] = None
    details: Optional[List[str]] = None


class HealthResponse(BaseModel):
    status: str = "ok"


class RedirectInfoResponse(BaseModel):
    success: bool = True
    redirectUrl: str
    message: str


class InstallationSuccessResponse(BaseModel):
    success: bool = True
    login: str
    message: str = "GitHub App installed successfully!"


class AuthStatusResponse(BaseModel):
    userLogin: str
    avatarUrl: Optional[str] = None
    repoName: Optional[str] = None


class LogoutResponse(BaseModel):
    success: bool = True
    message: str = "Logged out successfully"


class WorkflowUploadResponse(BaseModel):
    success: bool = True
    message: str = "Workflow uploaded and registration triggered"
    fileName: str
    commitSha: str
    workflowRunId: Optional[int] = None
    workflowRunUrl: Optional[str] = None


class WorkflowStatusResponse(BaseModel):
    fileName: str
    status: str
    workflowRunId: Optional[int] = None
    workflowRunUrl: Optional[str] = None
    errorMessage: Optional[str] = None
    triggeredAt: Optional[str] = None
    completedAt: Optional[str] = None
