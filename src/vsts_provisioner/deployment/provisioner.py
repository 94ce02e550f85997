"""
Agent provisioning.

Downloads the Azure DevOps agent package, unpacks it into
<drive>:\\<agent_name> and registers the agent with its pool by running the
package's config.cmd.
"""

import logging
import subprocess
import tempfile
import zipfile
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence

from ..client import AgentPackageClient
from ..error_handling import (
    AgentAlreadyConfigured,
    AgentConfigurationFailed,
    InstallerNotFound,
    InstallPathCreationFailed,
    PackageExtractionFailed,
)
from ..toolchain import ToolContext
from .autologon import AutologonPreparer
from .request import AgentLaunchConfig, InstallLayout, LogonMode, ProvisioningRequest

logger = logging.getLogger(__name__)

InstallerRunner = Callable[[Sequence[str], Path, Optional[Mapping[str, str]]], int]


def run_installer(command: Sequence[str], cwd: Path, env: Optional[Mapping[str, str]] = None) -> int:
    """Run the agent installer synchronously and return its exit code."""
    result = subprocess.run(list(command), cwd=str(cwd), env=env)
    return result.returncode


class AgentProvisioner:
    """Installs and registers one Azure DevOps build agent.

    Every failure is raised as a ProvisionError subclass and ends the
    operation; directories created before the failure are left in place.
    """

    def __init__(
        self,
        client_factory: Optional[Callable[[ProvisioningRequest], AgentPackageClient]] = None,
        *,
        runner: InstallerRunner = run_installer,
        autologon: Optional[AutologonPreparer] = None,
        tool_context: Optional[ToolContext] = None,
        install_root: Optional[Path] = None,
    ):
        """Initialize the provisioner.

        Args:
            client_factory: Builds the package client for a request
            runner: Runs the installer command and returns its exit code
            autologon: Autologon preparer (created on demand for autologon mode)
            tool_context: Search path handed to the installer process
            install_root: Replaces '<drive>:\\' as the parent of the install path
        """
        self.client_factory = client_factory or (
            lambda request: AgentPackageClient(request.account_name, request.auth_token)
        )
        self.runner = runner
        self.autologon = autologon
        self.tool_context = tool_context
        self.install_root = install_root

    def provision(self, request: ProvisioningRequest) -> InstallLayout:
        """Provision the agent described by a request.

        Args:
            request: Provisioning parameters

        Returns:
            The install layout of the configured agent

        Raises:
            ValidationError: Invalid request parameters
            AgentAlreadyConfigured: The marker file already exists
            InstallPathCreationFailed: The install directory cannot be created
            PackageDownloadFailed: The package could not be downloaded
            PackageExtractionFailed: The package could not be unpacked
            InstallerNotFound: config.cmd is missing from the package
            AutologonError: The autologon account cannot be prepared
            AgentConfigurationFailed: config.cmd exited non-zero
        """
        request.validate()
        layout = InstallLayout.for_request(request, self.install_root)

        self._prepare_install_path(layout)

        if layout.is_configured():
            raise AgentAlreadyConfigured(
                f"Agent already configured: {layout.marker_file_path} exists"
            )

        with tempfile.TemporaryDirectory(prefix="vsts-agent-") as temp_dir:
            with self.client_factory(request) as client:
                reference = client.acquire(Path(temp_dir))
            self._extract(reference.local_archive_path, layout.install_path)

        if not layout.installer_path.is_file():
            raise InstallerNotFound(f"Agent installer not found: {layout.installer_path}")

        launch = AgentLaunchConfig.from_request(request)

        if request.logon_mode is LogonMode.AUTOLOGON:
            preparer = self.autologon or AutologonPreparer()
            outcome = preparer.prepare(request.logon_account, request.logon_password)
            logger.info(f"Autologon preparation: {outcome.value}")

        self._configure(layout, launch)
        logger.info(f"Agent '{request.agent_name}' registered in pool '{request.pool_name}'")
        return layout

    def _prepare_install_path(self, layout: InstallLayout) -> None:
        try:
            layout.install_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InstallPathCreationFailed(
                f"Cannot create install path {layout.install_path}: {e}"
            ) from e
        logger.info(f"Install path: {layout.install_path}")

    def _extract(self, archive_path: Path, install_path: Path) -> None:
        logger.info(f"Extracting {archive_path.name} into {install_path}")
        try:
            with zipfile.ZipFile(archive_path) as archive:
                archive.extractall(install_path)
        except (OSError, zipfile.BadZipFile) as e:
            raise PackageExtractionFailed(
                f"Cannot extract {archive_path.name} into {install_path}: {e}"
            ) from e

    def _configure(self, layout: InstallLayout, launch: AgentLaunchConfig) -> None:
        logger.info(f"Running {layout.installer_path.name} {' '.join(launch.redacted())}")
        env = self.tool_context.environment() if self.tool_context else None
        exit_code = self.runner(launch.command(layout.installer_path), layout.install_path, env)
        if exit_code != 0:
            raise AgentConfigurationFailed(exit_code)
