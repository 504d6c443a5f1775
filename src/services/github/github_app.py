"""
GitHub App authentication and installation lookups.

Signs the app-level JWT, exchanges it for installation access tokens and
reads installation metadata, repositories and permission grants.
"""

import time
from functools import lru_cache
from typing import Dict, List, Optional

import httpx
import jwt

from src.core.config import get_settings
from src.exceptions.github_exceptions import (
    GitHubAuthenticationException,
    InvalidInstallationData,
    InvalidRepositoriesResponse,
    InvalidTokenResponse,
)
from src.models.schemas.installation import (
    Installation,
    InstallationRepository,
    InstallationToken,
    PermissionCheckResult,
)
from src.models.schemas.session import UserSession
from src.services.github.github_client import GITHUB_API_URL, GitHubClient
from src.utils.exception import InstallationNotFoundError
from src.utils.logging import get_logger

logger = get_logger(__name__)

APP_JWT_TTL_SECONDS = 600

REQUIRED_PERMISSIONS: Dict[str, str] = {
    "contents": "write",
    "actions": "write",
    "metadata": "read",
}

REPOS_PAGE_SIZE = 100
MAX_REPO_PAGES = 50


def generate_app_jwt(app_id: str, private_key: str, now: Optional[int] = None) -> str:
    """
    Build the RS256 JWT GitHub expects for app-level calls.

    GitHub rejects app JWTs valid for more than ten minutes.
    """
    issued_at = int(now if now is not None else time.time())
    payload = {
        "iat": issued_at,
        "exp": issued_at + APP_JWT_TTL_SECONDS,
        "iss": str(app_id),
    }
    return jwt.encode(payload, private_key, algorithm="RS256")


def validate_installation_permissions(installation: Installation) -> PermissionCheckResult:
    """
    Compare an installation's permission grant against the required set.

    Every mismatch (absent key or different level) is reported as
    "<name>:<level>".
    """
    missing = [
        f"{name}:{level}"
        for name, level in REQUIRED_PERMISSIONS.items()
        if installation.permissions.get(name) != level
    ]
    return PermissionCheckResult(valid=not missing, missing_permissions=missing)


class GitHubAppService:
    """
    Entry point for everything authenticated as the GitHub App.

    Each installation call signs a fresh app JWT; installation tokens are
    fetched per request and never cached.
    """

    def __init__(
        self,
        app_id: str,
        private_key: str,
        base_url: str = GITHUB_API_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.app_id = app_id
        self._private_key = private_key
        self.base_url = base_url
        self._transport = transport

    def generate_app_jwt(self) -> str:
        return generate_app_jwt(self.app_id, self._private_key)

    def _client(self, token: str) -> GitHubClient:
        return GitHubClient(token, base_url=self.base_url, transport=self._transport)

    def _app_client(self) -> GitHubClient:
        return self._client(self.generate_app_jwt())

    async def get_installation_token(self, installation_id: str) -> InstallationToken:
        """
        Exchange the app JWT for a short-lived installation access token.

        Raises:
            InstallationNotFoundError: If GitHub does not know the installation
            InvalidTokenResponse: If the response carries no token
            GitHubAuthenticationException: If GitHub rejects the app JWT
        """
        client = self._app_client()
        try:
            data = await client.make_api_request(
                "POST", f"/app/installations/{installation_id}/access_tokens"
            )
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise InstallationNotFoundError(f"Installation {installation_id} not found")
            if e.response.status_code == 401:
                raise GitHubAuthenticationException(installation_id)
            raise client.handle_http_error(e, f"create token for installation {installation_id}")

        if not isinstance(data, dict) or not data.get("token"):
            raise InvalidTokenResponse()

        logger.info(f"Installation token issued for installation {installation_id}")
        return InstallationToken(token=data["token"], expires_at=data.get("expires_at"))

    async def get_installation(self, installation_id: str) -> Installation:
        """
        Fetch installation metadata (account and permission grant).

        Raises:
            InstallationNotFoundError: If GitHub does not know the installation
            InvalidInstallationData: If `id` or `account.login` is missing
        """
        client = self._app_client()
        try:
            data = await client.make_api_request("GET", f"/app/installations/{installation_id}")
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise InstallationNotFoundError(f"Installation {installation_id} not found")
            raise client.handle_http_error(e, f"get installation {installation_id}")

        account = data.get("account") if isinstance(data, dict) else None
        if not data or not data.get("id") or not isinstance(account, dict) or not account.get("login"):
            raise InvalidInstallationData()

        return Installation(
            id=data["id"],
            account={
                "login": account["login"],
                "id": account.get("id") or 0,
                "avatar_url": account.get("avatar_url"),
            },
            permissions=data.get("permissions") or {},
        )

    async def get_installation_repos(
        self,
        installation_id: str,
        client: Optional[GitHubClient] = None,
    ) -> List[InstallationRepository]:
        """
        List every repository the installation can access, in GitHub's order.

        Args:
            installation_id: GitHub App installation id
            client: Installation client to reuse; a new token is minted when omitted

        Raises:
            InvalidRepositoriesResponse: If a page lacks a `repositories` list
        """
        if client is None:
            client = await self.get_installation_client(installation_id)

        repositories: List[InstallationRepository] = []
        page = 1
        while True:
            try:
                data = await client.make_api_request(
                    "GET",
                    "/installation/repositories",
                    params={"per_page": REPOS_PAGE_SIZE, "page": page},
                )
            except httpx.HTTPStatusError as e:
                raise client.handle_http_error(e, f"list repositories for installation {installation_id}")

            items = data.get("repositories") if isinstance(data, dict) else None
            if not isinstance(items, list):
                raise InvalidRepositoriesResponse()

            repositories.extend(InstallationRepository(**item) for item in items)

            if len(items) < REPOS_PAGE_SIZE:
                break
            page += 1
            if page > MAX_REPO_PAGES:
                logger.warning(f"Reached pagination limit listing repositories for installation {installation_id}")
                break

        logger.info(f"Installation {installation_id} can access {len(repositories)} repositories")
        return repositories

    async def check_installation_permissions(
        self,
        installation_id: str,
        installation: Optional[Installation] = None,
    ) -> PermissionCheckResult:
        """
        Validate an installation's permissions, fetching it unless already given.

        Any failure to read the installation counts as every required
        permission missing.
        """
        if installation is not None:
            return validate_installation_permissions(installation)

        try:
            installation = await self.get_installation(installation_id)
        except Exception as e:
            logger.error(f"Permission check failed for installation {installation_id}: {e}")
            return PermissionCheckResult(
                valid=False,
                missing_permissions=[f"{name}:{level}" for name, level in REQUIRED_PERMISSIONS.items()],
            )
        return validate_installation_permissions(installation)

    async def get_installation_client(self, installation_id: str) -> GitHubClient:
        """Return a REST client authenticated as the installation."""
        token = await self.get_installation_token(installation_id)
        return self._client(token.token)

    async def get_authenticated_client(self, session: UserSession) -> GitHubClient:
        return await self.get_installation_client(session.installation_id)


@lru_cache()
def get_github_app_service() -> GitHubAppService:
    settings = get_settings()
    app_id, private_key = settings.require("GITHUB_APP_ID", "GITHUB_PRIVATE_KEY")
    return GitHubAppService(app_id, private_key, base_url=settings.GITHUB_API_URL)


def clear_cached_client() -> None:
    get_github_app_service.cache_clear()
