from typing import Optional

from fastapi import Depends, Request

from src.models.schemas.session import UserSession
from src.services.sessions.providers import SessionProvider, get_session_provider
from src.utils.exception import AuthenticationError
from src.utils.logging.otel_logger import logger


async def get_optional_session(
    request: Request,
    provider: SessionProvider = Depends(get_session_provider),
) -> Optional[UserSession]:
    """Resolve the caller's session through the configured provider, None if unauthenticated."""
    session = await provider.resolve_session(request)
    if session:
        request.state.session = session
    return session


async def get_user_session(
    session: Optional[UserSession] = Depends(get_optional_session),
) -> UserSession:
    """
    Require an authenticated session.

    Raises:
        AuthenticationError: If no valid session is present on the request.
    """
    if not session:
        logger.warning("Authentication required")
        raise AuthenticationError("Authentication required")
    logger.info(f"Session resolved for installation {session.installation_id} ({session.user_login})")
    return session
