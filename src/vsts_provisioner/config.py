"""
Configuration management for the VSTS provisioner.

Handles loading the provisioning parameters from a YAML file or from
environment variables.
"""

import os
import socket
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from .error_handling import ConfigurationError

CONFIG_PATH_ENV = "VSTS_PROVISIONER_CONFIG"

DEFAULT_DRIVE_LETTER = "C"
DEFAULT_SERVICE_PREFIX = "vstsagent"

_TRUE_VALUES = ("1", "true", "yes", "on")


def _as_bool(value: Any) -> bool:
    # Quoted YAML values ("false", "no") arrive as strings.
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    return bool(value)


def default_agent_name(suffix: Optional[str] = None) -> str:
    """Build the default agent name: the host name plus an optional suffix."""
    name = socket.gethostname()
    if suffix:
        name = f"{name}-{suffix}"
    return name


@dataclass
class ToolSpec:
    """A tool to install from the latest GitHub release of a repository.

    Attributes:
        name: Tool name, also the directory name under the tools root
        repository: GitHub repository as 'owner/repo'
        asset_pattern: Regular expression matched against release asset names
        executable: Executable name to verify after install (optional)
    """
    name: str
    repository: str
    asset_pattern: str
    executable: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolSpec":
        missing = [key for key in ("name", "repository", "asset_pattern") if not data.get(key)]
        if missing:
            raise ConfigurationError(
                f"Tool entry {data!r} is missing required keys: {', '.join(missing)}"
            )
        return cls(
            name=data["name"],
            repository=data["repository"],
            asset_pattern=data["asset_pattern"],
            executable=data.get("executable"),
        )


@dataclass
class ProvisionerConfig:
    """Configuration for a provisioning run.

    Attributes:
        account_name: Azure DevOps account (bare name, not a URL)
        auth_token: Personal access token
        pool_name: Agent pool to register into
        agent_name: Agent name (defaults to host name + suffix)
        agent_name_suffix: Suffix appended to the host name for the default agent name
        drive_letter: Drive holding the agent install directory
        work_directory: Agent work directory (agent default when unset)
        run_interactive_logon: Run the agent under an autologon session instead of a service
        logon_account: Windows account the agent runs as
        logon_password: Password for logon_account
        service_prefix: Windows service name prefix watched after provisioning
        tools_root: Directory receiving installed tools
        tools: Tools installed before the agent
    """
    account_name: str
    auth_token: str
    pool_name: str
    agent_name: Optional[str] = None
    agent_name_suffix: Optional[str] = None
    drive_letter: str = DEFAULT_DRIVE_LETTER
    work_directory: Optional[str] = None
    run_interactive_logon: bool = False
    logon_account: Optional[str] = None
    logon_password: Optional[str] = None
    service_prefix: str = DEFAULT_SERVICE_PREFIX
    tools_root: Optional[str] = None
    tools: list[ToolSpec] = field(default_factory=list)

    @classmethod
    def from_config_file(cls, config_path: str) -> "ProvisionerConfig":
        """Load configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            ProvisionerConfig instance
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {config_path} must contain a mapping")

        return cls(
            account_name=data.get("account", ""),
            auth_token=data.get("token", ""),
            pool_name=data.get("pool", ""),
            agent_name=data.get("agent_name"),
            agent_name_suffix=data.get("agent_name_suffix"),
            drive_letter=str(data.get("drive_letter", DEFAULT_DRIVE_LETTER)),
            work_directory=data.get("work_directory"),
            run_interactive_logon=_as_bool(data.get("run_interactive_logon", False)),
            logon_account=data.get("logon_account"),
            logon_password=data.get("logon_password"),
            service_prefix=data.get("service_prefix", DEFAULT_SERVICE_PREFIX),
            tools_root=data.get("tools_root"),
            tools=[ToolSpec.from_dict(entry) for entry in data.get("tools") or []],
        )

    @classmethod
    def from_env(cls) -> "ProvisionerConfig":
        """Load configuration from environment variables.

        Environment variables:
            VSTS_ACCOUNT: Account name
            VSTS_TOKEN: Personal access token
            VSTS_POOL: Agent pool
            VSTS_AGENT_NAME: Agent name
            VSTS_AGENT_NAME_SUFFIX: Suffix for the default agent name
            VSTS_DRIVE_LETTER: Install drive letter
            VSTS_WORK_DIRECTORY: Agent work directory
            VSTS_RUN_AUTOLOGON: Run under an interactive logon session
            VSTS_LOGON_ACCOUNT: Windows logon account
            VSTS_LOGON_PASSWORD: Windows logon password
            VSTS_SERVICE_PREFIX: Watched service name prefix
            VSTS_TOOLS_ROOT: Tools install directory

        Returns:
            ProvisionerConfig instance
        """
        return cls(
            account_name=os.environ.get("VSTS_ACCOUNT", ""),
            auth_token=os.environ.get("VSTS_TOKEN", ""),
            pool_name=os.environ.get("VSTS_POOL", ""),
            agent_name=os.environ.get("VSTS_AGENT_NAME") or None,
            agent_name_suffix=os.environ.get("VSTS_AGENT_NAME_SUFFIX") or None,
            drive_letter=os.environ.get("VSTS_DRIVE_LETTER", DEFAULT_DRIVE_LETTER),
            work_directory=os.environ.get("VSTS_WORK_DIRECTORY") or None,
            run_interactive_logon=_as_bool(os.environ.get("VSTS_RUN_AUTOLOGON", "")),
            logon_account=os.environ.get("VSTS_LOGON_ACCOUNT") or None,
            logon_password=os.environ.get("VSTS_LOGON_PASSWORD") or None,
            service_prefix=os.environ.get("VSTS_SERVICE_PREFIX", DEFAULT_SERVICE_PREFIX),
            tools_root=os.environ.get("VSTS_TOOLS_ROOT") or None,
        )

    def validate(self) -> None:
        """Validate that the required configuration is present."""
        if not self.account_name:
            raise ConfigurationError("Account name is required")
        if not self.auth_token:
            raise ConfigurationError("Personal access token is required")
        if not self.pool_name:
            raise ConfigurationError("Agent pool name is required")

    def resolved_agent_name(self) -> str:
        return self.agent_name or default_agent_name(self.agent_name_suffix)

    def resolved_tools_root(self) -> Path:
        if self.tools_root:
            return Path(self.tools_root)
        return Path(f"{self.drive_letter.rstrip(':')}:\\") / "tools"


def load_config() -> ProvisionerConfig:
    """Load configuration from the best available source.

    Priority:
    1. VSTS_PROVISIONER_CONFIG environment variable (path to YAML)
    2. Individual VSTS_* environment variables

    Returns:
        ProvisionerConfig instance

    Raises:
        ConfigurationError: If no configuration is found
    """
    config_path = os.environ.get(CONFIG_PATH_ENV)
    if config_path:
        return ProvisionerConfig.from_config_file(config_path)

    if os.environ.get("VSTS_ACCOUNT"):
        return ProvisionerConfig.from_env()

    raise ConfigurationError(
        "No provisioner configuration found. Set VSTS_PROVISIONER_CONFIG "
        "or VSTS_ACCOUNT, VSTS_TOKEN and VSTS_POOL."
    )
