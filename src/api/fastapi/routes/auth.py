from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from src.api.fastapi.middlewares.auth import get_optional_session
from src.core.config import Settings, get_settings
from src.models.schemas.responses import AuthStatusResponse, ErrorResponse, LogoutResponse
from src.models.schemas.session import UserSession
from src.services.sessions.cookies import clear_auth_cookie

router = APIRouter(tags=["Auth"])


@router.get("/auth-status", response_model=AuthStatusResponse)
async def auth_status(session: Optional[UserSession] = Depends(get_optional_session)):
    """Report who is signed in and which fork they use."""
    if not session:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content=ErrorResponse(
                error="Unauthorized",
                message="Invalid or missing authentication cookie",
            ).model_dump(exclude_none=True),
        )
    return AuthStatusResponse(
        userLogin=session.user_login,
        avatarUrl=session.avatar_url,
        repoName=session.repo_name,
    )


@router.post("/logout", response_model=LogoutResponse)
async def logout(settings: Settings = Depends(get_settings)):
    response = JSONResponse(content=LogoutResponse().model_dump())
    clear_auth_cookie(response, secure=settings.is_production)
    return response
