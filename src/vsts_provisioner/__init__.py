"""
VSTS Provisioner - build agent provisioning for Windows container images.

This package installs the tooling a Windows build image needs, registers an
Azure DevOps (VSTS) build agent with an agent pool, and then watches the
agent's Windows service until it stops.
"""

__version__ = "0.1.0"
