"""
Exception hierarchy for agent provisioning.

Every error kind maps to a deterministic process exit code so the CLI can act
as the single error boundary for a provisioning run.
"""

from typing import Optional


class ProvisionError(Exception):
    """Base class for all provisioning failures.

    Attributes:
        exit_code: Process exit code used by the CLI for this error kind
        hint: Actionable hint for resolving the issue
    """

    exit_code = 1
    default_hint = "Check the provisioner log output for details."

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.hint = hint or self.default_hint


# ==================== Validation ====================


class ValidationError(ProvisionError):
    """Request or configuration failed validation."""

    exit_code = 2
    default_hint = "Fix the reported parameter and run the provisioner again."


class InvalidAccountFormat(ValidationError):
    default_hint = (
        "Pass the bare account name (e.g. 'contoso'), "
        "not 'https://contoso.visualstudio.com'."
    )


class InvalidWorkDirectory(ValidationError):
    default_hint = "Use an absolute Windows path (e.g. 'D:\\work') or a plain relative path."


class InvalidDriveLetter(ValidationError):
    default_hint = "The install drive must be a single letter such as 'C'."


class MissingLogonPassword(ValidationError):
    default_hint = "Interactive logon mode requires the logon account password."


class MissingLogonAccount(ValidationError):
    default_hint = "Interactive logon mode requires a Windows logon account."


class ConfigurationError(ValidationError):
    default_hint = (
        "Set VSTS_PROVISIONER_CONFIG to a YAML file, "
        "or export VSTS_ACCOUNT, VSTS_TOKEN and VSTS_POOL."
    )


# ==================== State ====================


class StateConflictError(ProvisionError):
    exit_code = 3


class AgentAlreadyConfigured(StateConflictError):
    default_hint = (
        "An agent is already registered in this directory. "
        "Remove it with 'config.cmd remove' or choose another agent name."
    )


# ==================== Filesystem ====================


class InstallIOError(ProvisionError):
    exit_code = 4


class InstallPathCreationFailed(InstallIOError):
    default_hint = "Check that the install drive exists and is writable."


class PackageExtractionFailed(InstallIOError):
    default_hint = "The downloaded agent package may be corrupt; retry the provisioning run."


class InstallerNotFound(InstallIOError):
    default_hint = "The agent package layout changed; expected config.cmd at the install root."


# ==================== Network ====================


class NetworkError(ProvisionError):
    exit_code = 5


class PackageDownloadFailed(NetworkError):
    """Agent package could not be acquired after all retry attempts.

    Attributes:
        cause: The last exception raised by the download
        attempts: Number of attempts performed
    """

    def __init__(self, cause: BaseException, attempts: int, hint: Optional[str] = None):
        super().__init__(
            f"Agent package download failed after {attempts} attempts: {cause}",
            hint=hint,
        )
        self.cause = cause
        self.attempts = attempts


class ToolInstallFailed(NetworkError):
    def __init__(self, tool: str, cause: BaseException, hint: Optional[str] = None):
        super().__init__(f"Installing tool '{tool}' failed: {cause}", hint=hint)
        self.tool = tool
        self.cause = cause


# ==================== Child process ====================


class AgentProcessError(ProvisionError):
    exit_code = 6


class AgentConfigurationFailed(AgentProcessError):
    default_hint = "Inspect the agent's _diag folder under the install path."

    def __init__(self, exit_code: int, hint: Optional[str] = None):
        super().__init__(
            f"Agent configuration exited with code {exit_code}",
            hint=hint,
        )
        self.child_exit_code = exit_code


# ==================== Autologon ====================


class AutologonError(ProvisionError):
    exit_code = 7
    default_hint = "Verify the logon account exists and the password is correct."


class ConfigurationWarning(UserWarning):
    """Best-effort configuration step did not complete. Logged, never raised."""
