"""
Registration status: report the latest registration run for an uploaded
workflow as pending, running, success or failed.
"""

from datetime import datetime, timezone

from fastapi import Depends

from src.models.schemas.session import UserSession
from src.models.schemas.workflow import RegistrationState, RegistrationStatus
from src.services.github.github_app import GitHubAppService, get_github_app_service
from src.services.github.github_client import map_run_status
from src.services.workflows.file_validation import sanitize_file_name
from src.services.workflows.upload_service import REGISTRATION_WORKFLOW, require_repo_name
from src.utils.exception import WorkflowRunNotFoundError
from src.utils.logging import get_logger

logger = get_logger(__name__)


class WorkflowStatusService:
    def __init__(self, github_app: GitHubAppService = Depends(get_github_app_service)):
        self.github_app = github_app

    async def get_workflow_status(self, session: UserSession, file_name: str) -> RegistrationStatus:
        """
        Report registration progress from the most recent registration run.

        Raises:
            RepositoryNotFoundError: If the session has no repository name
            WorkflowRunNotFoundError: If no run exists or the run vanished
        """
        repo_name = require_repo_name(session)
        stored_name = sanitize_file_name(file_name)
        owner = session.user_login

        client = await self.github_app.get_authenticated_client(session)
        runs = await client.list_workflow_runs(owner, repo_name, REGISTRATION_WORKFLOW, per_page=1)
        if not runs:
            logger.info(f"No registration runs found for {stored_name} on {owner}/{repo_name}")
            raise WorkflowRunNotFoundError()

        run = await client.get_workflow_run_by_id(owner, repo_name, runs[0]["id"])
        if run is None:
            raise WorkflowRunNotFoundError()

        state = map_run_status(run.status, run.conclusion)
        result = RegistrationStatus(
            file_name=stored_name,
            status=state,
            workflow_run_id=run.id,
            workflow_run_url=run.html_url,
            triggered_at=run.created_at,
        )

        if state == RegistrationState.FAILED:
            result.error_message = f"Registration workflow failed with conclusion: {run.conclusion or 'unknown'}"
        if state.is_terminal:
            result.completed_at = run.updated_at or datetime.now(timezone.utc)

        logger.info(f"Registration of {stored_name} on {owner}/{repo_name} is {state.value}")
        return result
