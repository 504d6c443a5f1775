from .installation import (
    Installation,
    InstallationAccount,
    InstallationRecord,
    InstallationRepository,
    InstallationToken,
    PermissionCheckResult,
)
from .repository import ForkStatus, RepositoryFork
from .session import SessionClaims, UserSession
from .workflow import (
    FileValidationResult,
    RegistrationState,
    RegistrationStatus,
    RegistrationTriggerResult,
    UploadResult,
    WorkflowRunInfo,
    WorkflowRunStatus,
)

__all__ = [
    # Installations
    'Installation',
    'InstallationAccount',
    'InstallationRecord',
    'InstallationRepository',
    'InstallationToken',
    'PermissionCheckResult',
    # Forks
    'ForkStatus',
    'RepositoryFork',
    # Sessions
    'SessionClaims',
    'UserSession',
    # Workflows
    'FileValidationResult',
    'RegistrationState',
    'RegistrationStatus',
    'RegistrationTriggerResult',
    'UploadResult',
    'WorkflowRunInfo',
    'WorkflowRunStatus',
]
