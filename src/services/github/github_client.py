"""
GitHub REST Client

Thin httpx client bound to a single bearer token (an app JWT or an
installation access token). It covers the repository, contents and Actions
endpoints used by fork resolution, workflow uploads and registration status.
No retries are attempted; failures surface to the caller immediately.
"""

import base64
from typing import Any, Dict, List, Optional, Union

import httpx

from src.exceptions.github_exceptions import (
    CommitShaMissing,
    GitHubAPIException,
    GitHubAuthenticationException,
    GitHubPermissionException,
    GitHubRateLimitException,
)
from src.models.schemas.workflow import RegistrationState, WorkflowRunInfo, WorkflowRunStatus
from src.utils.logging import get_logger

logger = get_logger(__name__)

GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
USER_AGENT = "FaaSr-Backend/1.0"


def map_run_status(status: Optional[str], conclusion: Optional[str]) -> RegistrationState:
    """
    Collapse a GitHub Actions run status/conclusion pair into a registration state.

    Statuses other than completed and in_progress (queued, waiting, requested)
    are reported as pending.
    """
    if status == "completed":
        return RegistrationState.SUCCESS if conclusion == "success" else RegistrationState.FAILED
    if status == "in_progress":
        return RegistrationState.RUNNING
    return RegistrationState.PENDING


class GitHubClient:
    """
    GitHub REST API client authenticated with a single bearer token.

    Features:
    - Standard GitHub headers (API version, JSON media type)
    - Typed exceptions for rate limit, authentication and permission errors
    - Create-or-update file commits keyed on the existing content SHA
    - Workflow dispatch and workflow run lookups
    """

    def __init__(
        self,
        token: str,
        base_url: str = GITHUB_API_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._token = token
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    # ------------------------------------------------------------------
    # Repositories
    # ------------------------------------------------------------------

    async def get_repository(self, owner: str, repo: str) -> Dict[str, Any]:
        """
        Get repository metadata.

        Raises:
            httpx.HTTPStatusError: On non-2xx responses (callers inspect 404)
        """
        return await self.make_api_request("GET", f"/repos/{owner}/{repo}")

    async def create_fork(self, owner: str, repo: str) -> Optional[Dict[str, Any]]:
        """
        Ask GitHub to fork owner/repo into the token's account.

        GitHub creates forks asynchronously; the returned payload describes
        the fork even when its contents are still being copied. Returns None
        when the source repository is not visible to the token (404).
        """
        endpoint = f"/repos/{owner}/{repo}/forks"
        try:
            return await self.make_api_request("POST", endpoint, json_data={}) or {}
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            raise self.handle_http_error(e, f"fork {owner}/{repo}")

    # ------------------------------------------------------------------
    # Contents
    # ------------------------------------------------------------------

    async def get_file_sha(self, owner: str, repo: str, path: str, ref: str) -> Optional[str]:
        """
        Return the blob SHA of an existing file, or None when it does not exist.
        """
        endpoint = f"/repos/{owner}/{repo}/contents/{path}"
        try:
            data = await self.make_api_request("GET", endpoint, params={"ref": ref})
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            raise self.handle_http_error(e, f"get contents of {path} in {owner}/{repo}")

        if isinstance(data, dict):
            return data.get("sha")
        # A list means the path is a directory
        return None

    async def commit_file_to_repository(
        self,
        owner: str,
        repo: str,
        path: str,
        content: Union[str, bytes],
        branch: str,
        message: Optional[str] = None,
    ) -> str:
        """
        Create or update a file and return the resulting commit SHA.

        Args:
            owner: Repository owner login
            repo: Repository name
            path: File path inside the repository
            content: Raw file content (encoded to base64 here)
            branch: Branch to commit to
            message: Commit message, defaults to "Add workflow <path>"

        Returns:
            SHA of the new commit

        Raises:
            CommitShaMissing: If GitHub's response carries no commit SHA
            GitHubAPIException: For other API errors
        """
        existing_sha = await self.get_file_sha(owner, repo, path, branch)

        raw = content.encode("utf-8") if isinstance(content, str) else content
        body: Dict[str, Any] = {
            "message": message or f"Add workflow {path}",
            "content": base64.b64encode(raw).decode("ascii"),
            "branch": branch,
        }
        if existing_sha:
            body["sha"] = existing_sha

        logger.info(
            f"{'Updating' if existing_sha else 'Creating'} {path} in {owner}/{repo} on {branch}"
        )

        try:
            data = await self.make_api_request(
                "PUT", f"/repos/{owner}/{repo}/contents/{path}", json_data=body
            )
        except httpx.HTTPStatusError as e:
            raise self.handle_http_error(e, f"commit {path} to {owner}/{repo}")

        commit_sha = ((data or {}).get("commit") or {}).get("sha")
        if not commit_sha:
            raise CommitShaMissing()

        logger.info(f"Committed {path} to {owner}/{repo}: {commit_sha}")
        return commit_sha

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def trigger_workflow_dispatch(
        self,
        owner: str,
        repo: str,
        workflow_id: str,
        ref: str,
        inputs: Optional[Dict[str, str]] = None,
    ) -> None:
        endpoint = f"/repos/{owner}/{repo}/actions/workflows/{workflow_id}/dispatches"
        try:
            await self.make_api_request(
                "POST", endpoint, json_data={"ref": ref, "inputs": inputs or {}}
            )
        except httpx.HTTPStatusError as e:
            raise self.handle_http_error(e, f"dispatch {workflow_id} on {owner}/{repo}")
        logger.info(f"Dispatched {workflow_id} on {owner}/{repo}@{ref}")

    async def list_workflow_runs(
        self,
        owner: str,
        repo: str,
        workflow_id: str,
        per_page: int = 1,
    ) -> List[Dict[str, Any]]:
        """
        List runs of a workflow, newest first (GitHub's default ordering).
        """
        endpoint = f"/repos/{owner}/{repo}/actions/workflows/{workflow_id}/runs"
        try:
            data = await self.make_api_request("GET", endpoint, params={"per_page": per_page})
        except httpx.HTTPStatusError as e:
            raise self.handle_http_error(e, f"list runs of {workflow_id} on {owner}/{repo}")
        return (data or {}).get("workflow_runs") or []

    async def get_workflow_run_status(self, owner: str, repo: str, run_id: int) -> WorkflowRunStatus:
        endpoint = f"/repos/{owner}/{repo}/actions/runs/{run_id}"
        try:
            run = await self.make_api_request("GET", endpoint)
        except httpx.HTTPStatusError as e:
            raise self.handle_http_error(e, f"get run {run_id} on {owner}/{repo}")

        return WorkflowRunStatus(
            status=map_run_status(run.get("status"), run.get("conclusion")),
            conclusion=run.get("conclusion"),
            html_url=run.get("html_url"),
        )

    async def get_workflow_run_by_id(
        self, owner: str, repo: str, run_id: int
    ) -> Optional[WorkflowRunInfo]:
        """
        Fetch a workflow run, returning None if GitHub no longer knows it.

        Raises:
            GitHubAPIException: For any error other than 404
        """
        endpoint = f"/repos/{owner}/{repo}/actions/runs/{run_id}"
        try:
            run = await self.make_api_request("GET", endpoint)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                logger.warning(f"Workflow run {run_id} not found on {owner}/{repo}")
                return None
            raise self.handle_http_error(e, f"get run {run_id} on {owner}/{repo}")

        return WorkflowRunInfo(
            id=run["id"],
            status=run.get("status"),
            conclusion=run.get("conclusion"),
            html_url=run.get("html_url"),
            created_at=run.get("created_at"),
            updated_at=run.get("updated_at"),
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def make_api_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
        additional_headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Make an authenticated API request.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path (starting with /)
            params: Query parameters
            json_data: JSON request body
            additional_headers: Additional headers to include

        Returns:
            Decoded JSON body, or None for empty responses (204)

        Raises:
            httpx.HTTPStatusError: For non-2xx responses other than rate limiting
            GitHubRateLimitException: When GitHub reports the rate limit is exhausted
            GitHubAPIException: For transport failures
        """
        url = f"{self.base_url}{endpoint}"
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
            "User-Agent": USER_AGENT,
        }
        if additional_headers:
            headers.update(additional_headers)

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=headers,
                    params=params,
                    json=json_data,
                )
        except httpx.RequestError as e:
            raise GitHubAPIException(f"Request to GitHub failed: {e}")

        if self._is_rate_limited(response):
            retry_after = response.headers.get("retry-after")
            raise GitHubRateLimitException(
                retry_after_seconds=int(retry_after) if retry_after and retry_after.isdigit() else None
            )

        response.raise_for_status()

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        if response.status_code == 429:
            return True
        return response.status_code == 403 and response.headers.get("x-ratelimit-remaining") == "0"

    def handle_http_error(self, error: httpx.HTTPStatusError, operation: str) -> GitHubAPIException:
        """
        Convert HTTP status error to appropriate GitHub exception.

        Args:
            error: HTTP status error from httpx
            operation: Description of the operation that failed

        Returns:
            Appropriate GitHubAPIException subclass
        """
        status_code = error.response.status_code
        response_text = error.response.text

        if status_code == 401:
            return GitHubAuthenticationException()
        elif status_code == 403:
            return GitHubPermissionException(f"Missing permission to {operation}")
        else:
            message = f"GitHub API error during {operation}: {status_code}"
            if response_text:
                message += f" - {response_text}"
            return GitHubAPIException(message=message)

