"""
Tool installation ahead of agent provisioning.

Provides the installer protocol, a GitHub release installer and the explicit
search-path context installers update.
"""

from .context import ToolContext
from .installer import (
    ReleaseToolInstaller,
    ToolInstaller,
    build_installers,
    run_tool_installers,
    select_release_asset,
)

__all__ = [
    "ToolContext",
    "ToolInstaller",
    "ReleaseToolInstaller",
    "build_installers",
    "run_tool_installers",
    "select_release_asset",
]
