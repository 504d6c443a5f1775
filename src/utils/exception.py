from logging import Logger
from typing import List, Optional
from fastapi import Request, status
from fastapi.responses import JSONResponse
import traceback

from src.models.schemas.responses import ErrorResponse


class AppException(Exception):
    """Base application exception."""
    def __init__(
        self,
        status_code: int,
        message: str,
        details: Optional[List[str]] = None,
        error_code: Optional[str] = None,
    ):
        self.status_code = status_code
        self.message = message
        self.details = details
        self.error_code = error_code
        super().__init__(self.message)

class ConfigurationError(AppException):
    """Raised when required environment values are missing."""
    def __init__(self, message: str = "Server configuration error"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, message=message)

class NotFoundException(AppException):
    """Raised when a resource is not found."""
    def __init__(self, message: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, message=message)

class BadRequestException(AppException):
    """Raised for bad client requests."""
    def __init__(self, message: str = "Bad Request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, message=message)

class ValidationError(BadRequestException):
    """Raised for invalid input, carrying every reason found."""
    def __init__(self, message: str = "Invalid input", errors: Optional[List[str]] = None):
        super().__init__(message=message)
        self.details = list(errors or [])

class InvalidFileError(ValidationError):
    def __init__(self, errors: List[str]):
        super().__init__(message="Invalid file", errors=errors)

class AuthenticationError(AppException):
    """Raised for authentication failures (no or invalid session)."""
    def __init__(self, message: str = "Authentication required"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, message=message)

class InvalidSessionError(AuthenticationError):
    def __init__(self, message: str = "Invalid session"):
        super().__init__(message=message)

class InstallationNotFoundError(NotFoundException):
    def __init__(self, message: str = "Installation not found"):
        super().__init__(message=message)

class RepositoryNotFoundError(NotFoundException):
    def __init__(self, message: str = "Repository name not found"):
        super().__init__(message=message)

class ForkNotFoundError(NotFoundException):
    def __init__(self, message: str = "Fork not found"):
        super().__init__(message=message)

class WorkflowRunNotFoundError(NotFoundException):
    def __init__(self, message: str = "Workflow run not found"):
        super().__init__(message=message)

class UpstreamError(AppException):
    """Raised when GitHub or Supabase fail for reasons outside the taxonomy above."""
    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        super().__init__(status_code=status_code, message=message)

class InstallationFlowError(AppException):
    """Installation callback failure reported to the frontend as an error code plus message."""
    def __init__(self, error_code: str, message: str, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(status_code=status_code, message=message, error_code=error_code)

class AppExceptionHandler:
    def __init__(self, logger: Logger):
        self.logger = logger

    async def handle_app_exception(self, request: Request, exc: AppException):
        self.logger.warning(f"Application error: {exc.message} for request {request.method} {request.url.path}")
        if exc.error_code:
            content = ErrorResponse(error=exc.error_code, message=exc.message)
        else:
            content = ErrorResponse(error=exc.message, details=exc.details)
        return JSONResponse(
            status_code=exc.status_code,
            content=content.model_dump(exclude_none=True),
        )

    async def handle_generic_exception(self, request: Request, exc: Exception):
        self.logger.error(
            f"An unexpected error occurred: {exc} for request {request.method} {request.url.path}\n{traceback.format_exc()}"
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(
                error="An unexpected internal server error occurred."
            ).model_dump(exclude_none=True),
        )

def add_exception_handlers(app, logger: Logger):
    handler = AppExceptionHandler(logger)
    app.add_exception_handler(AppException, handler.handle_app_exception)
    app.add_exception_handler(Exception, handler.handle_generic_exception)
