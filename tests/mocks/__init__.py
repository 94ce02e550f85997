"""Mock implementations for vsts-provisioner tests.

Provides fakes for:
- Azure DevOps agent package endpoints (httpx.MockTransport)
- The agent's config.cmd
- Windows account, profile and registry operations
- The service control manager
"""

from .fakes import (
    DOWNLOAD_URL,
    FakeAccountBackend,
    FakeClock,
    PackageEndpoint,
    RecordingRunner,
    ScriptedStatusQuery,
    build_agent_zip,
)

__all__ = [
    "DOWNLOAD_URL",
    "FakeAccountBackend",
    "FakeClock",
    "PackageEndpoint",
    "RecordingRunner",
    "ScriptedStatusQuery",
    "build_agent_zip",
]
