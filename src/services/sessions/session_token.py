"""
Signed session tokens for the stateless cookie flow.

Tokens are HS256 JWTs carrying the installation binding. The `jti` nonce is
random per token and is not checked against any revocation store.
"""

import secrets
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import jwt

from src.models.schemas.session import SessionClaims, UserSession
from src.utils.exception import InvalidSessionError
from src.utils.logging import get_logger

logger = get_logger(__name__)

SESSION_TTL_SECONDS = 7 * 24 * 60 * 60
SESSION_ALGORITHM = "HS256"
REQUIRED_CLAIMS = ("installation_id", "gh_user_login", "gh_user_id", "gh_repo_name")


def sign_session_token(claims: SessionClaims, secret: str, now: Optional[int] = None) -> str:
    issued_at = int(now if now is not None else time.time())
    payload: Dict[str, Any] = claims.model_dump(exclude_none=True)
    payload.update(
        {
            "iat": issued_at,
            "exp": issued_at + SESSION_TTL_SECONDS,
            "jti": secrets.token_hex(16),
        }
    )
    return jwt.encode(payload, secret, algorithm=SESSION_ALGORITHM)


def verify_session_token(token: str, secret: str) -> Dict[str, Any]:
    """
    Verify a session token and return its claims.

    Raises:
        InvalidSessionError: On a bad signature, expiry, a different
            algorithm or a missing required claim
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[SESSION_ALGORITHM],
            options={"require": ["exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise InvalidSessionError("Session expired")
    except jwt.InvalidTokenError as e:
        raise InvalidSessionError(f"Invalid session token: {e}")

    if any(payload.get(claim) in (None, "") for claim in REQUIRED_CLAIMS):
        raise InvalidSessionError("Invalid JWT payload")
    return payload


def session_from_claims(payload: Dict[str, Any]) -> UserSession:
    return UserSession(
        installation_id=str(payload["installation_id"]),
        user_login=payload["gh_user_login"],
        user_id=payload["gh_user_id"],
        avatar_url=payload.get("gh_avatar_url"),
        repo_name=payload.get("gh_repo_name"),
        created_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )
