"""
Provisioning request and the values derived from it.

A request is validated once, then turned into an install layout on disk and an
immutable argument list for the agent's own configuration script.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from ..config import DEFAULT_DRIVE_LETTER, ProvisionerConfig
from ..error_handling import (
    validate_account_name,
    validate_drive_letter,
    validate_work_directory,
    validate_logon_credentials,
)

SERVICE_DOMAIN_TEMPLATE = "https://{account}.visualstudio.com"
BUILTIN_SERVICE_ACCOUNT = "NT AUTHORITY\\NETWORK SERVICE"
MARKER_FILE_NAME = ".agent"
INSTALLER_FILE_NAME = "config.cmd"

_REDACTED = "********"


class LogonMode(Enum):
    """How the agent process is hosted after configuration."""
    SERVICE = "service"
    AUTOLOGON = "autologon"


@dataclass
class ProvisioningRequest:
    """Parameters for registering one build agent.

    Attributes:
        account_name: Azure DevOps account (bare name, not a URL)
        auth_token: Personal access token
        agent_name: Name the agent registers under
        pool_name: Agent pool to register into
        install_drive_letter: Drive holding <drive>:\\<agent_name>
        work_directory: Agent work directory (agent default when unset)
        run_interactive_logon: Run under an autologon session instead of a service
        logon_account: Windows account the agent runs as
        logon_password: Password for logon_account
    """
    account_name: str
    auth_token: str = field(repr=False)
    agent_name: str
    pool_name: str
    install_drive_letter: str = DEFAULT_DRIVE_LETTER
    work_directory: Optional[str] = None
    run_interactive_logon: bool = False
    logon_account: Optional[str] = None
    logon_password: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_config(cls, config: ProvisionerConfig) -> "ProvisioningRequest":
        return cls(
            account_name=config.account_name,
            auth_token=config.auth_token,
            agent_name=config.resolved_agent_name(),
            pool_name=config.pool_name,
            install_drive_letter=config.drive_letter,
            work_directory=config.work_directory,
            run_interactive_logon=config.run_interactive_logon,
            logon_account=config.logon_account,
            logon_password=config.logon_password,
        )

    def validate(self) -> None:
        """Validate the request, raising a ValidationError subclass on failure."""
        validate_account_name(self.account_name)
        self.install_drive_letter = validate_drive_letter(self.install_drive_letter)
        validate_work_directory(self.work_directory)
        validate_logon_credentials(
            self.run_interactive_logon, self.logon_account, self.logon_password
        )

    @property
    def logon_mode(self) -> LogonMode:
        return LogonMode.AUTOLOGON if self.run_interactive_logon else LogonMode.SERVICE

    @property
    def server_url(self) -> str:
        return SERVICE_DOMAIN_TEMPLATE.format(account=self.account_name)

    @property
    def effective_logon_account(self) -> str:
        """The account the agent runs as; the built-in service identity when unset."""
        return self.logon_account or BUILTIN_SERVICE_ACCOUNT


@dataclass(frozen=True)
class InstallLayout:
    """Where the agent lives on disk.

    Attributes:
        install_path: <drive>:\\<agent_name>
        marker_file_path: <install_path>\\.agent, written by the agent on registration
    """
    install_path: Path
    marker_file_path: Path

    @classmethod
    def for_request(
        cls,
        request: ProvisioningRequest,
        install_root: Optional[Path] = None,
    ) -> "InstallLayout":
        """Compute the layout for a request.

        Args:
            request: Validated provisioning request
            install_root: Directory replacing '<drive>:\\' (defaults to the drive root)
        """
        root = install_root or Path(f"{request.install_drive_letter}:\\")
        install_path = root / request.agent_name
        return cls(
            install_path=install_path,
            marker_file_path=install_path / MARKER_FILE_NAME,
        )

    @property
    def installer_path(self) -> Path:
        return self.install_path / INSTALLER_FILE_NAME

    def is_configured(self) -> bool:
        return self.marker_file_path.exists()


@dataclass
class AgentPackageReference:
    """A resolved agent package and where it is downloaded to.

    Attributes:
        download_url: Artifact URL taken from the package listing
        local_archive_path: Archive location inside a per-attempt temp directory
    """
    download_url: str
    local_archive_path: Path


@dataclass(frozen=True)
class AgentLaunchConfig:
    """The exact argument list passed to config.cmd."""
    arguments: tuple[str, ...]
    secrets: tuple[str, ...] = field(default=(), repr=False, compare=False)

    @classmethod
    def from_request(cls, request: ProvisioningRequest) -> "AgentLaunchConfig":
        """Build the configuration arguments for a request.

        Both modes share the connection arguments; autologon mode adds
        --runAsAutoLogon/--overwriteAutoLogon where service mode adds
        --runasservice. The password and work directory are appended only
        when set.
        """
        args = [
            "--unattended",
            "--url", request.server_url,
            "--auth", "PAT",
            "--token", request.auth_token,
            "--pool", request.pool_name,
            "--agent", request.agent_name,
        ]

        if request.logon_mode is LogonMode.AUTOLOGON:
            args += [
                "--runAsAutoLogon",
                "--overwriteAutoLogon",
                "--windowslogonaccount", request.logon_account,
            ]
        else:
            args += [
                "--runasservice",
                "--windowslogonaccount", request.effective_logon_account,
            ]

        if request.logon_password:
            args += ["--windowslogonpassword", request.logon_password]

        if request.work_directory:
            args += ["--work", request.work_directory]

        secrets = tuple(s for s in (request.auth_token, request.logon_password) if s)
        return cls(arguments=tuple(args), secrets=secrets)

    def command(self, installer_path: Path) -> list[str]:
        return [str(installer_path), *self.arguments]

    def redacted(self) -> list[str]:
        """Argument list safe for logging, with the token and password masked."""
        return [_REDACTED if arg in self.secrets else arg for arg in self.arguments]

    def __contains__(self, flag: str) -> bool:
        return flag in self.arguments
