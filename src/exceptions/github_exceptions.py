"""
GitHub API Exceptions

Typed upstream failures raised by the GitHub App and REST clients.
"""

from typing import Optional

from fastapi import status

from src.utils.exception import UpstreamError


# ============================================================================
# GITHUB API EXCEPTIONS
# ============================================================================

class GitHubAPIException(UpstreamError):
    """Base exception for GitHub API related errors."""
    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        super().__init__(message=message, status_code=status_code)


class GitHubRateLimitException(GitHubAPIException):
    """Raised when GitHub API rate limit is exceeded."""
    def __init__(self, retry_after_seconds: Optional[int] = None):
        message = "GitHub API rate limit exceeded"
        if retry_after_seconds:
            message += f". Retry after {retry_after_seconds} seconds"
        super().__init__(message=message, status_code=status.HTTP_429_TOO_MANY_REQUESTS)
        self.retry_after_seconds = retry_after_seconds


class GitHubAuthenticationException(GitHubAPIException):
    """Raised when GitHub rejects the app JWT or installation token."""
    def __init__(self, installation_id: Optional[str] = None):
        message = "GitHub API authentication failed"
        if installation_id:
            message += f" for installation {installation_id}"
        super().__init__(message=message)


class GitHubPermissionException(GitHubAPIException):
    """Raised when GitHub API operation is not permitted."""
    def __init__(self, message: str = "Insufficient permission for GitHub operation"):
        super().__init__(message=message)


# ============================================================================
# MALFORMED RESPONSE EXCEPTIONS
# ============================================================================

class InvalidTokenResponse(GitHubAPIException):
    def __init__(self, message: str = "Invalid installation token response"):
        super().__init__(message=message)


class InvalidInstallationData(GitHubAPIException):
    def __init__(self, message: str = "Invalid installation data response"):
        super().__init__(message=message)


class InvalidRepositoriesResponse(GitHubAPIException):
    def __init__(self, message: str = "Invalid installation repositories response"):
        super().__init__(message=message)


class CommitShaMissing(GitHubAPIException):
    """Raised when a contents write returns no commit SHA."""
    def __init__(self, message: str = "Failed to get commit SHA"):
        super().__init__(message=message)
