"""Shared pytest fixtures for vsts-provisioner tests.

All fixtures run without network access or Windows APIs: HTTP goes through
httpx.MockTransport and the install drive is redirected to a temp directory.
"""

from pathlib import Path
from typing import Generator

import pytest

from vsts_provisioner.client import AgentPackageClient
from vsts_provisioner.deployment.provisioner import AgentProvisioner
from vsts_provisioner.deployment.request import ProvisioningRequest

from tests.mocks import FakeAccountBackend, FakeClock, PackageEndpoint, RecordingRunner


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")


@pytest.fixture
def clean_env(monkeypatch):
    """Provide a clean environment without provisioner config vars.

    Removes environment variables that might interfere with config tests.
    """
    env_vars = [
        "VSTS_PROVISIONER_CONFIG",
        "VSTS_ACCOUNT",
        "VSTS_TOKEN",
        "VSTS_POOL",
        "VSTS_AGENT_NAME",
        "VSTS_AGENT_NAME_SUFFIX",
        "VSTS_DRIVE_LETTER",
        "VSTS_WORK_DIRECTORY",
        "VSTS_RUN_AUTOLOGON",
        "VSTS_LOGON_ACCOUNT",
        "VSTS_LOGON_PASSWORD",
        "VSTS_SERVICE_PREFIX",
        "VSTS_TOOLS_ROOT",
    ]
    for var in env_vars:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def install_root(tmp_path: Path) -> Generator[Path, None, None]:
    """Provide a directory standing in for the install drive root.

    Yields:
        Path to a temporary 'C:\\' replacement
    """
    root = tmp_path / "drive"
    root.mkdir()
    yield root


@pytest.fixture
def service_request() -> ProvisioningRequest:
    """A service-mode request for the 'contoso' account."""
    return ProvisioningRequest(
        account_name="contoso",
        auth_token="abc",
        agent_name="agent1",
        pool_name="Default",
        install_drive_letter="C",
    )


@pytest.fixture
def autologon_request() -> ProvisioningRequest:
    """An autologon-mode request for a local build user."""
    return ProvisioningRequest(
        account_name="contoso",
        auth_token="abc",
        agent_name="agent1",
        pool_name="Default",
        install_drive_letter="C",
        run_interactive_logon=True,
        logon_account="BUILD01\\builder",
        logon_password="P@ssw0rd!",
    )


@pytest.fixture
def endpoint() -> PackageEndpoint:
    """Package listing and artifact endpoints serving a valid agent package."""
    return PackageEndpoint()


@pytest.fixture
def runner() -> RecordingRunner:
    """config.cmd stand-in exiting with code 0."""
    return RecordingRunner()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def account_backend() -> FakeAccountBackend:
    return FakeAccountBackend()


@pytest.fixture
def retry_sleeps() -> list:
    """Collects the pauses taken between download attempts."""
    return []


@pytest.fixture
def make_provisioner(install_root, endpoint, runner, retry_sleeps):
    """Factory for provisioners wired to the fake endpoint and runner."""

    def factory(**kwargs) -> AgentProvisioner:
        def client_factory(request: ProvisioningRequest) -> AgentPackageClient:
            return AgentPackageClient(
                request.account_name,
                request.auth_token,
                transport=endpoint.transport(),
                sleep=retry_sleeps.append,
            )

        kwargs.setdefault("runner", runner)
        kwargs.setdefault("install_root", install_root)
        return AgentProvisioner(client_factory, **kwargs)

    return factory
