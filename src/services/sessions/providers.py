"""
Session providers.

Both ways of identifying a caller sit behind `SessionProvider`:

- CookieSessionProvider: stateless, reads the signed `faasr_session_v2` cookie
- SupabaseSessionProvider: platform auth, resolves the Supabase user and
  joins it to the installation stored on the user's profile

The deployment picks one through the SESSION_PROVIDER setting.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

import jwt
from fastapi import Request

from src.core.config import get_settings
from src.core.supabase_client import get_supabase_client
from src.models.schemas.session import UserSession
from src.services.sessions.cookies import get_session_cookie
from src.services.sessions.installation_store import SupabaseInstallationStore
from src.services.sessions.session_token import session_from_claims, verify_session_token
from src.utils.exception import AuthenticationError, ConfigurationError, InvalidSessionError
from src.utils.logging import get_logger

logger = get_logger(__name__)


def extract_bearer_token(request: Request) -> Optional[str]:
    """Platform access token from the Authorization header, else the access_token cookie."""
    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get("access_token") or None


def get_user_session_from_cookie(request: Request, jwt_secret: str) -> UserSession:
    """
    Raises:
        InvalidSessionError: If the cookie is absent or fails verification
    """
    token = get_session_cookie(request)
    if not token:
        raise InvalidSessionError("Session cookie missing")
    return session_from_claims(verify_session_token(token, jwt_secret))


class SessionProvider(ABC):
    @abstractmethod
    async def resolve_session(self, request: Request) -> Optional[UserSession]:
        """Return the caller's session, or None when the request is unauthenticated."""


class CookieSessionProvider(SessionProvider):
    def __init__(self, jwt_secret: str):
        self._jwt_secret = jwt_secret

    async def resolve_session(self, request: Request) -> Optional[UserSession]:
        try:
            return get_user_session_from_cookie(request, self._jwt_secret)
        except InvalidSessionError as e:
            logger.warning(f"Failed to get session from cookie: {e.message}")
            return None


class SupabaseSessionProvider(SessionProvider):
    def __init__(self, store: SupabaseInstallationStore):
        self.store = store

    async def resolve_session(self, request: Request) -> Optional[UserSession]:
        token = extract_bearer_token(request)
        if not token:
            logger.warning("No platform access token on request")
            return None

        try:
            user_id = self.store.get_user_id(token)
        except AuthenticationError as e:
            logger.warning(f"Platform authentication failed: {e.message}")
            return None

        record = self.store.lookup_installation_for_user(user_id)
        if record is None:
            return None

        # The platform already verified the token; only its lifetime is read here
        try:
            claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError:
            claims = {}
        now = datetime.now(timezone.utc)
        expires_at = (
            datetime.fromtimestamp(claims["exp"], tz=timezone.utc) if claims.get("exp") else now
        )
        created_at = (
            datetime.fromtimestamp(claims["iat"], tz=timezone.utc) if claims.get("iat") else now
        )

        return UserSession(
            installation_id=record.installation_id,
            user_login=record.gh_user_login,
            user_id=record.gh_user_id,
            avatar_url=record.gh_avatar_url,
            repo_name=record.gh_repo_name,
            created_at=created_at,
            expires_at=expires_at,
        )


def get_session_provider() -> SessionProvider:
    settings = get_settings()
    provider = settings.SESSION_PROVIDER.lower()
    if provider == "cookie":
        (jwt_secret,) = settings.require("JWT_SECRET")
        return CookieSessionProvider(jwt_secret)
    if provider == "supabase":
        return SupabaseSessionProvider(SupabaseInstallationStore(get_supabase_client()))
    raise ConfigurationError(f"Unknown SESSION_PROVIDER: {settings.SESSION_PROVIDER}")
