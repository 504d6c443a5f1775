from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from src.api.fastapi.middlewares.auth import get_optional_session, get_user_session
from src.models.schemas.responses import WorkflowStatusResponse, WorkflowUploadResponse
from src.models.schemas.session import UserSession
from src.services.workflows.status_service import WorkflowStatusService
from src.services.workflows.upload_service import WorkflowUploadService
from src.utils.exception import AuthenticationError, BadRequestException
from src.utils.logging.otel_logger import logger

router = APIRouter(
    prefix="/workflows",
    tags=["Workflows"],
)


def parse_custom_containers(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    return value == "true"


@router.post("", response_model=WorkflowUploadResponse)
async def upload_workflow(
    file: Optional[UploadFile] = File(None),
    custom_containers: Optional[str] = Form(None),
    session: UserSession = Depends(get_user_session),
    upload_service: WorkflowUploadService = Depends(WorkflowUploadService),
):
    """
    Upload a workflow JSON file to the user's fork and trigger its registration.
    """
    if file is None or not file.filename:
        logger.warning("Upload failed: File is required")
        raise BadRequestException("File is required")

    content = await file.read()
    logger.info(f"Received {file.filename} ({len(content)} bytes) from {session.user_login}")

    upload_result = await upload_service.upload_workflow(session, content, file.filename)
    registration = await upload_service.trigger_registration(
        session,
        upload_result.file_name,
        parse_custom_containers(custom_containers),
    )

    return WorkflowUploadResponse(
        fileName=upload_result.file_name,
        commitSha=upload_result.commit_sha,
        workflowRunId=registration.workflow_run_id,
        workflowRunUrl=registration.workflow_run_url,
    )


@router.get("", response_model=WorkflowStatusResponse)
async def get_workflow_status(
    filename: Optional[str] = None,
    session: Optional[UserSession] = Depends(get_optional_session),
    status_service: WorkflowStatusService = Depends(WorkflowStatusService),
):
    """Registration status of a previously uploaded workflow (`?filename=`)."""
    if not filename:
        raise BadRequestException("filename parameter is required")
    if not session:
        raise AuthenticationError("Authentication required")

    result = await status_service.get_workflow_status(session, filename)
    return WorkflowStatusResponse(
        fileName=result.file_name,
        status=result.status.value,
        workflowRunId=result.workflow_run_id,
        workflowRunUrl=result.workflow_run_url,
        errorMessage=result.error_message,
        triggeredAt=result.triggered_at.isoformat() if result.triggered_at else None,
        completedAt=result.completed_at.isoformat() if result.completed_at else None,
    )
