"""
Build agent deployment.

Provides the provisioning request model; the provisioner, autologon
preparer and liveness watcher live in their own modules.
"""

from .request import (
    AgentLaunchConfig,
    AgentPackageReference,
    InstallLayout,
    LogonMode,
    ProvisioningRequest,
)

__all__ = [
    "AgentLaunchConfig",
    "AgentPackageReference",
    "InstallLayout",
    "LogonMode",
    "ProvisioningRequest",
]
