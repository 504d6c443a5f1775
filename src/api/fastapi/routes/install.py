from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse

from src.core.config import Settings, get_settings
from src.models.schemas.responses import InstallationSuccessResponse, RedirectInfoResponse
from src.services.installation.installation_service import InstallationService
from src.services.sessions.cookies import set_auth_cookie
from src.services.sessions.installation_store import SupabaseInstallationStore
from src.services.sessions.providers import extract_bearer_token
from src.services.sessions.session_token import sign_session_token
from src.utils.logging.otel_logger import logger

router = APIRouter(tags=["Installation"])


@router.get("/install", response_model=RedirectInfoResponse)
async def install(installation_service: InstallationService = Depends(InstallationService)):
    """Start a GitHub App installation (platform flow)."""
    redirect_url = installation_service.build_install_redirect()
    logger.info("Install redirect generated")
    return RedirectInfoResponse(redirectUrl=redirect_url, message="Redirect to GitHub App installation")


@router.get("/install-v2", response_model=RedirectInfoResponse)
async def install_v2(installation_service: InstallationService = Depends(InstallationService)):
    """Start the stateless flow by sending the user through GitHub OAuth."""
    redirect_url = installation_service.build_oauth_redirect()
    logger.info("OAuth redirect generated")
    return RedirectInfoResponse(redirectUrl=redirect_url, message="Redirect to GitHub OAuth")


@router.get("/callback")
async def callback(
    request: Request,
    installation_id: Optional[str] = None,
    installation_service: InstallationService = Depends(InstallationService),
    store: SupabaseInstallationStore = Depends(SupabaseInstallationStore),
):
    """
    GitHub App installation callback (platform flow).

    Always answers with a 302 to the frontend install page.
    """
    redirect_url = await installation_service.handle_installation_callback(
        installation_id, extract_bearer_token(request), store
    )
    return RedirectResponse(url=redirect_url, status_code=302)


@router.get("/auth/callback")
async def fork_setup_callback(
    installation_id: Optional[str] = None,
    installation_service: InstallationService = Depends(InstallationService),
):
    """Installation callback that creates the user's fork when needed."""
    redirect_url = await installation_service.handle_fork_setup_callback(installation_id)
    return RedirectResponse(url=redirect_url, status_code=302)


@router.get("/callback-v2", response_model=InstallationSuccessResponse)
async def callback_v2(
    code: Optional[str] = None,
    installation_service: InstallationService = Depends(InstallationService),
    settings: Settings = Depends(get_settings),
):
    """
    GitHub OAuth callback (stateless flow).

    On success the installation binding is signed into the session cookie.
    """
    (jwt_secret,) = settings.require("JWT_SECRET")
    claims = await installation_service.complete_oauth_installation(code)

    token = sign_session_token(claims, jwt_secret)
    response = JSONResponse(
        content=InstallationSuccessResponse(login=claims.gh_user_login).model_dump()
    )
    set_auth_cookie(response, token, secure=settings.is_production)
    logger.info(f"Session cookie issued for {claims.gh_user_login}")
    return response
