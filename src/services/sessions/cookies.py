from typing import Optional

from fastapi import Request, Response

from src.services.sessions.session_token import SESSION_TTL_SECONDS

SESSION_COOKIE_NAME = "faasr_session_v2"


def set_auth_cookie(response: Response, token: str, secure: bool) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        max_age=SESSION_TTL_SECONDS,
        path="/",
        httponly=True,
        samesite="lax",
        secure=secure,
    )


def clear_auth_cookie(response: Response, secure: bool) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value="",
        max_age=0,
        path="/",
        httponly=True,
        samesite="lax",
        secure=secure,
    )


def get_session_cookie(request: Request) -> Optional[str]:
    return request.cookies.get(SESSION_COOKIE_NAME) or None
