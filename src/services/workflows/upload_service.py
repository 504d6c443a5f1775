"""
Workflow upload: validate the file, commit it to the user's fork and
dispatch the registration workflow.
"""

from typing import Optional, Union

from fastapi import Depends

from src.models.schemas.session import UserSession
from src.models.schemas.workflow import RegistrationTriggerResult, UploadResult
from src.services.github.github_app import GitHubAppService, get_github_app_service
from src.services.workflows.file_validation import validate_file
from src.utils.exception import InvalidFileError, RepositoryNotFoundError
from src.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_BRANCH = "main"
REGISTRATION_WORKFLOW = "register-workflow.yml"


def require_repo_name(session: UserSession) -> str:
    if not session.repo_name:
        raise RepositoryNotFoundError()
    return session.repo_name


class WorkflowUploadService:
    def __init__(self, github_app: GitHubAppService = Depends(get_github_app_service)):
        self.github_app = github_app

    async def upload_workflow(
        self,
        session: UserSession,
        content: Union[str, bytes],
        file_name: str,
    ) -> UploadResult:
        """
        Validate an uploaded workflow file and commit it to the session's fork.

        Args:
            session: Resolved caller session (must carry a repository name)
            content: Raw file content
            file_name: Name supplied by the client

        Returns:
            UploadResult with the sanitized file name and the new commit SHA

        Raises:
            RepositoryNotFoundError: If the session has no repository name
            InvalidFileError: Carrying every validation error found
            CommitShaMissing: If GitHub returns no commit SHA
        """
        repo_name = require_repo_name(session)

        raw = content.encode("utf-8") if isinstance(content, str) else content
        validation = validate_file(file_name, raw, len(raw))
        if not validation.valid:
            logger.warning(f"Rejected upload of {file_name!r}: {'; '.join(validation.errors)}")
            raise InvalidFileError(validation.errors)

        stored_name = validation.sanitized_file_name
        client = await self.github_app.get_authenticated_client(session)
        commit_sha = await client.commit_file_to_repository(
            owner=session.user_login,
            repo=repo_name,
            path=stored_name,
            content=raw,
            branch=DEFAULT_BRANCH,
            message=f"Upload workflow {stored_name}",
        )

        logger.info(f"Uploaded {stored_name} to {session.user_login}/{repo_name} ({commit_sha})")
        return UploadResult(file_name=stored_name, commit_sha=commit_sha)

    async def trigger_registration(
        self,
        session: UserSession,
        file_name: str,
        custom_containers: Optional[bool] = None,
    ) -> RegistrationTriggerResult:
        """
        Dispatch the registration workflow for an uploaded file.

        Dispatch is best effort: failures (including obtaining the
        installation token) are logged and an empty result is returned so
        the upload itself still succeeds. The run lookup right
        after dispatch may not see the new run yet, in which case the run
        id and URL are left unset.
        """
        repo_name = require_repo_name(session)
        owner = session.user_login

        inputs = {
            "workflow_file": file_name,
            "custom_container": "true" if custom_containers else "false",
        }

        try:
            client = await self.github_app.get_authenticated_client(session)
            await client.trigger_workflow_dispatch(
                owner=owner,
                repo=repo_name,
                workflow_id=REGISTRATION_WORKFLOW,
                ref=DEFAULT_BRANCH,
                inputs=inputs,
            )
        except Exception as e:
            logger.warning(f"Registration dispatch failed for {file_name} on {owner}/{repo_name}: {e}")
            return RegistrationTriggerResult()

        try:
            runs = await client.list_workflow_runs(owner, repo_name, REGISTRATION_WORKFLOW, per_page=1)
        except Exception as e:
            logger.warning(f"Could not look up registration run for {file_name}: {e}")
            return RegistrationTriggerResult()

        if not runs:
            logger.info(f"Registration run for {file_name} not listed yet")
            return RegistrationTriggerResult()

        latest = runs[0]
        return RegistrationTriggerResult(
            workflow_run_id=latest.get("id"),
            workflow_run_url=latest.get("html_url"),
        )
