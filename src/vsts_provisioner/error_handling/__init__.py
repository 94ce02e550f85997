"""
Error handling utilities for the VSTS provisioner.

Provides the error hierarchy, request validators and HTTP error mapping.
"""

from .errors import (
    ProvisionError,
    ValidationError,
    InvalidAccountFormat,
    InvalidWorkDirectory,
    InvalidDriveLetter,
    MissingLogonPassword,
    MissingLogonAccount,
    ConfigurationError,
    StateConflictError,
    AgentAlreadyConfigured,
    InstallIOError,
    InstallPathCreationFailed,
    PackageExtractionFailed,
    InstallerNotFound,
    NetworkError,
    PackageDownloadFailed,
    ToolInstallFailed,
    AgentProcessError,
    AgentConfigurationFailed,
    AutologonError,
    ConfigurationWarning,
)
from .validators import (
    LEGACY_SERVICE_DOMAIN,
    validate_account_name,
    validate_drive_letter,
    validate_work_directory,
    validate_logon_credentials,
)
from .http_handlers import (
    is_retryable_http_error,
    map_http_error,
)

__all__ = [
    # Errors
    "ProvisionError",
    "ValidationError",
    "InvalidAccountFormat",
    "InvalidWorkDirectory",
    "InvalidDriveLetter",
    "MissingLogonPassword",
    "MissingLogonAccount",
    "ConfigurationError",
    "StateConflictError",
    "AgentAlreadyConfigured",
    "InstallIOError",
    "InstallPathCreationFailed",
    "PackageExtractionFailed",
    "InstallerNotFound",
    "NetworkError",
    "PackageDownloadFailed",
    "ToolInstallFailed",
    "AgentProcessError",
    "AgentConfigurationFailed",
    "AutologonError",
    "ConfigurationWarning",
    # Validators
    "LEGACY_SERVICE_DOMAIN",
    "validate_account_name",
    "validate_drive_letter",
    "validate_work_directory",
    "validate_logon_credentials",
    # HTTP handlers
    "is_retryable_http_error",
    "map_http_error",
]
