"""
GitHub App installation flows.

Two variants share the same GitHub checks (permissions, fork discovery):

- Platform flow: GitHub redirects back with an installation_id, the binding is
  stored on the Supabase profile and the browser is redirected to the frontend
  with either `success=true&login=` or `error=<code>&message=`.
- Stateless flow: GitHub OAuth returns a code, the user's installations are
  searched for one with the required permissions and a fork, and the binding
  is returned for the caller to sign into the session cookie.
"""

from typing import Any, Dict, List, Optional, Tuple

import httpx
from fastapi import Depends

from src.core.config import Settings, get_settings
from src.models.schemas.installation import InstallationRecord
from src.models.schemas.session import SessionClaims
from src.services.github.github_app import GitHubAppService, get_github_app_service
from src.services.github.github_client import GITHUB_API_VERSION
from src.services.repository.fork_service import ForkService, find_fork_repository
from src.services.sessions.installation_store import SupabaseInstallationStore
from src.utils.exception import AppException, AuthenticationError, InstallationFlowError
from src.utils.logging import get_logger

logger = get_logger(__name__)

GITHUB_OAUTH_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_OAUTH_TOKEN_URL = "https://github.com/login/oauth/access_token"

# =============================================================================
# USER-FACING ERRORS
# =============================================================================

ERROR_MESSAGES: Dict[str, str] = {
    "missing_installation_id": "Missing installation ID. Please try installing again.",
    "missing_code": "Missing authorization code. Please try again.",
    "no_installations": "No GitHub App installations found. Please install the app first.",
    "missing_permissions": "The app needs additional permissions. Please reinstall with the required permissions.",
    "no_fork_found": "No fork of the source repository found. Please fork the repository and try again.",
    "fork_not_found": "Fork not found. Please try installing again.",
    "rate_limit": "Too many requests. Please try again in a few minutes.",
    "failed_to_get_user": "Failed to get user. Please try again.",
    "installation_failed": "Installation failed. Please try again.",
}


def map_callback_error(error: Exception, not_found_code: str = "no_fork_found") -> Tuple[str, str]:
    """
    Translate an unexpected callback failure into an error code and message.

    The raw message is passed through only for the generic
    `installation_failed` code.
    """
    message = str(error)
    lowered = message.lower()
    if "rate limit" in lowered:
        return "rate_limit", ERROR_MESSAGES["rate_limit"]
    if "permission" in lowered:
        return "missing_permissions", "The app needs additional permissions. Please reinstall."
    if not_found_code == "no_fork_found" and "fork" in lowered:
        return "no_fork_found", ERROR_MESSAGES["no_fork_found"]
    if not_found_code == "fork_not_found" and "not found" in lowered:
        return "fork_not_found", ERROR_MESSAGES["fork_not_found"]
    return "installation_failed", message or ERROR_MESSAGES["installation_failed"]


def get_oauth_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for the OAuth code exchange; None means httpx's default network transport."""
    return None


class InstallationService:
    def __init__(
        self,
        github_app: GitHubAppService = Depends(get_github_app_service),
        settings: Settings = Depends(get_settings),
        http_transport: Optional[httpx.AsyncBaseTransport] = Depends(get_oauth_transport),
    ):
        self.github_app = github_app
        self.settings = settings
        self.http_transport = http_transport

    # -------------------------------------------------------------------------
    # Redirect targets
    # -------------------------------------------------------------------------

    def build_install_redirect(self) -> str:
        (installation_url,) = self.settings.require("GITHUB_INSTALLATION_URL")
        return str(httpx.URL(installation_url).copy_add_param("state", "install"))

    def build_oauth_redirect(self) -> str:
        client_id, callback_url = self.settings.require("GITHUB_CLIENT_ID", "GITHUB_CALLBACK_URL_V2")
        return str(
            httpx.URL(
                GITHUB_OAUTH_AUTHORIZE_URL,
                params={
                    "client_id": client_id,
                    "redirect_uri": callback_url,
                    "state": "v2_install",
                    "scope": "user:email",
                },
            )
        )

    def frontend_redirect(self, params: Dict[str, str]) -> str:
        (frontend_url,) = self.settings.require("FRONTEND_URL")
        return str(httpx.URL(frontend_url).join("/install").copy_merge_params(params))

    def error_redirect(self, error_code: str, message: Optional[str] = None) -> str:
        return self.frontend_redirect(
            {"error": error_code, "message": message or ERROR_MESSAGES[error_code]}
        )

    # -------------------------------------------------------------------------
    # Shared checks
    # -------------------------------------------------------------------------

    async def find_fork(self, installation_id: str, owner: str) -> Optional[str]:
        """Name of the first repository of the installation that forks the source, if any."""
        client = await self.github_app.get_installation_client(installation_id)
        repositories = await self.github_app.get_installation_repos(installation_id, client=client)
        return await find_fork_repository(client, owner, repositories)

    # -------------------------------------------------------------------------
    # Platform flow
    # -------------------------------------------------------------------------

    async def handle_installation_callback(
        self,
        installation_id: Optional[str],
        access_token: Optional[str],
        store: SupabaseInstallationStore,
    ) -> str:
        """
        Complete a GitHub App installation for a signed-in platform user.

        Returns:
            Frontend URL to redirect the browser to, carrying either
            `success=true&login=` or `error=<code>&message=`
        """
        if not installation_id:
            logger.warning("Callback failed: Missing installation_id parameter")
            return self.error_redirect("missing_installation_id")

        try:
            installation = await self.github_app.get_installation(installation_id)
            login = installation.account.login
            logger.info(f"Installation {installation_id} belongs to {login}")

            permission_check = await self.github_app.check_installation_permissions(
                installation_id, installation=installation
            )
            if not permission_check.valid:
                logger.warning(
                    f"Permission check failed for installation {installation_id}: "
                    f"{permission_check.missing_permissions}"
                )
                return self.error_redirect("missing_permissions")

            fork_repo_name = await self.find_fork(installation_id, login)
            if not fork_repo_name:
                logger.warning(f"No fork repository found for {login} (installation {installation_id})")
                return self.error_redirect("no_fork_found")

            try:
                if not access_token:
                    raise AuthenticationError("Authentication token is missing")
                user_id = store.get_user_id(access_token)
            except AuthenticationError as e:
                logger.warning(f"Failed to get user: {e.message}")
                return self.error_redirect("failed_to_get_user")

            store.save_installation(
                user_id,
                InstallationRecord(
                    installation_id=installation_id,
                    gh_user_login=login,
                    gh_user_id=installation.account.id,
                    gh_avatar_url=installation.account.avatar_url,
                    gh_repo_name=fork_repo_name,
                ),
            )
        except Exception as e:
            logger.error(f"Callback error for installation {installation_id}: {e}")
            error_code, message = map_callback_error(e)
            return self.error_redirect(error_code, message)

        logger.info(f"Installation {installation_id} completed for {login}")
        return self.frontend_redirect({"success": "true", "login": login})

    async def handle_fork_setup_callback(self, installation_id: Optional[str]) -> str:
        """
        Installation callback that creates the user's fork when it is missing.

        Returns:
            Frontend URL with `success=true&login=&forkUrl=` or an error code
        """
        if not installation_id:
            logger.warning("Fork setup failed: Missing installation_id parameter")
            return self.error_redirect("missing_installation_id")

        try:
            installation = await self.github_app.get_installation(installation_id)
            login = installation.account.login

            permission_check = await self.github_app.check_installation_permissions(
                installation_id, installation=installation
            )
            if not permission_check.valid:
                logger.warning(
                    f"Permission check failed for installation {installation_id}: "
                    f"{permission_check.missing_permissions}"
                )
                return self.error_redirect("missing_permissions")

            client = await self.github_app.get_installation_client(installation_id)
            fork = await ForkService(client).ensure_fork_exists(login)
            logger.info(f"Fork {fork.owner}/{fork.repo_name} {fork.fork_status.value} for installation {installation_id}")
        except Exception as e:
            logger.error(f"Fork setup error for installation {installation_id}: {e}")
            error_code, message = map_callback_error(e, not_found_code="fork_not_found")
            return self.error_redirect(error_code, message)

        return self.frontend_redirect({"success": "true", "login": login, "forkUrl": fork.fork_url})

    # -------------------------------------------------------------------------
    # Stateless flow
    # -------------------------------------------------------------------------

    async def complete_oauth_installation(self, code: Optional[str]) -> SessionClaims:
        """
        Exchange the OAuth code and find an installation that has a fork.

        Returns:
            Claims to sign into the session cookie

        Raises:
            InstallationFlowError: `missing_code`, `no_installations` and
                `no_fork_found` (400) or `installation_failed` (500)
        """
        if not code:
            logger.warning("Missing code parameter")
            raise InstallationFlowError("missing_code", ERROR_MESSAGES["missing_code"])

        try:
            access_token = await self._exchange_code(code)
            installations = await self._list_user_installations(access_token)
            if not installations:
                logger.warning("No installations found")
                raise InstallationFlowError("no_installations", ERROR_MESSAGES["no_installations"])

            for installation in installations:
                installation_id = str(installation["id"])
                account = installation.get("account") or {}

                permission_check = await self.github_app.check_installation_permissions(installation_id)
                if not permission_check.valid:
                    logger.info(
                        f"Installation {installation_id} missing permissions: "
                        f"{permission_check.missing_permissions}"
                    )
                    continue

                fork_repo_name = await self.find_fork(installation_id, account.get("login", ""))
                if fork_repo_name:
                    logger.info(f"Using installation {installation_id} with fork {fork_repo_name}")
                    return SessionClaims(
                        installation_id=installation_id,
                        gh_user_login=account["login"],
                        gh_user_id=account["id"],
                        gh_repo_name=fork_repo_name,
                        gh_avatar_url=account.get("avatar_url"),
                    )
        except InstallationFlowError:
            raise
        except Exception as e:
            logger.error(f"OAuth installation failed: {e}")
            raise InstallationFlowError(
                "installation_failed",
                (e.message if isinstance(e, AppException) else str(e)) or ERROR_MESSAGES["installation_failed"],
                status_code=500,
            )

        logger.warning("No fork found")
        raise InstallationFlowError("no_fork_found", ERROR_MESSAGES["no_fork_found"])

    async def _exchange_code(self, code: str) -> str:
        client_id, client_secret = self.settings.require("GITHUB_CLIENT_ID", "GITHUB_CLIENT_SECRET")
        async with httpx.AsyncClient(transport=self.http_transport) as client:
            response = await client.post(
                GITHUB_OAUTH_TOKEN_URL,
                headers={"Accept": "application/json"},
                json={"client_id": client_id, "client_secret": client_secret, "code": code},
            )

        if response.status_code != 200:
            logger.error(f"Token exchange failed: {response.status_code}")
            raise InstallationFlowError(
                "installation_failed", "Failed to exchange authorization code", status_code=500
            )

        access_token = response.json().get("access_token")
        if not access_token:
            logger.error("No access token in response")
            raise InstallationFlowError("installation_failed", "No access token in response", status_code=500)
        return access_token

    async def _list_user_installations(self, access_token: str) -> List[Dict[str, Any]]:
        async with httpx.AsyncClient(transport=self.http_transport) as client:
            response = await client.get(
                f"{self.settings.GITHUB_API_URL.rstrip('/')}/user/installations",
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": GITHUB_API_VERSION,
                },
            )

        if response.status_code != 200:
            logger.error(f"Failed to fetch installations: {response.status_code}")
            raise InstallationFlowError("installation_failed", "Failed to fetch installations", status_code=500)

        return response.json().get("installations") or []
