"""Tests for the tool context and tool installers."""

import io
import os
import zipfile
from pathlib import Path

import httpx
import pytest

from vsts_provisioner.config import ToolSpec
from vsts_provisioner.error_handling import ToolInstallFailed
from vsts_provisioner.toolchain import (
    ReleaseToolInstaller,
    ToolContext,
    build_installers,
    run_tool_installers,
    select_release_asset,
)

JQ_SPEC = ToolSpec(name="jq", repository="jqlang/jq", asset_pattern=r"jq-windows-amd64\.exe$")
NUGET_SPEC = ToolSpec(name="nuget", repository="NuGet/NuGet.Client", asset_pattern=r"nuget.*\.zip$")


def _zip_bytes(files: dict) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()


class ReleaseHost:
    """Mock of the GitHub releases API and its asset downloads."""

    def __init__(self, assets: dict, fail_times: int = 0):
        self.assets = assets
        self.fail_times = fail_times
        self.release_requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/releases/latest"):
            self.release_requests.append(request)
            if len(self.release_requests) <= self.fail_times:
                return httpx.Response(502)
            return httpx.Response(
                200,
                json={
                    "tag_name": "v1.0",
                    "assets": [
                        {"name": name, "browser_download_url": f"https://downloads.example.invalid/{name}"}
                        for name in self.assets
                    ],
                },
            )

        name = request.url.path.rsplit("/", 1)[-1]
        if request.url.host == "downloads.example.invalid" and name in self.assets:
            return httpx.Response(200, content=self.assets[name])
        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.mark.unit
class TestToolContext:
    """Tests for ToolContext."""

    def test_from_environment(self, tmp_path):
        """Test the search path is seeded from PATH."""
        environ = {"PATH": os.pathsep.join([str(tmp_path / "a"), "", str(tmp_path / "b")])}

        context = ToolContext.from_environment(environ)

        assert context.search_path == [tmp_path / "a", tmp_path / "b"]

    def test_prepend_path_deduplicates(self, tmp_path):
        """Test prepending moves an existing entry to the front."""
        context = ToolContext(search_path=[tmp_path / "a", tmp_path / "b"])

        context.prepend_path(tmp_path / "b")

        assert context.search_path == [tmp_path / "b", tmp_path / "a"]

    def test_environment_does_not_touch_os_environ(self, tmp_path):
        """Test rendering an environment leaves the process environment alone."""
        before = os.environ.get("PATH")
        context = ToolContext(search_path=[tmp_path])

        env = context.environment({"PATH": "/usr/bin", "HOME": "/root"})

        assert env == {"PATH": str(tmp_path), "HOME": "/root"}
        assert os.environ.get("PATH") == before

    def test_which_uses_search_path(self, tmp_path):
        """Test executables are found only on the context's search path."""
        tool = tmp_path / "mytool"
        tool.write_text("#!/bin/sh\n")
        tool.chmod(0o755)

        assert ToolContext(search_path=[tmp_path]).which("mytool") is not None
        assert ToolContext(search_path=[]).which("mytool") is None


@pytest.mark.unit
def test_select_release_asset():
    """The first asset matching the pattern is selected."""
    release = {
        "tag_name": "jq-1.7.1",
        "assets": [
            {"name": "jq-linux-amd64", "browser_download_url": "https://example.invalid/jq-linux-amd64"},
            {"name": "jq-windows-amd64.exe", "browser_download_url": "https://example.invalid/jq.exe"},
        ],
    }

    assert select_release_asset(release, JQ_SPEC.asset_pattern) == (
        "jq-windows-amd64.exe",
        "https://example.invalid/jq.exe",
    )


@pytest.mark.unit
def test_select_release_asset_no_match():
    """A release without a matching asset raises ValueError."""
    with pytest.raises(ValueError, match="jq-1.7.1"):
        select_release_asset({"tag_name": "jq-1.7.1", "assets": []}, JQ_SPEC.asset_pattern)


@pytest.mark.unit
class TestReleaseToolInstaller:
    """Tests for ReleaseToolInstaller."""

    def test_installs_single_file_asset(self, tmp_path):
        """Test a plain asset is copied into the tool directory and put on the path."""
        host = ReleaseHost({"jq-windows-amd64.exe": b"MZ"})
        context = ToolContext(search_path=[Path("/usr/bin")])
        installer = ReleaseToolInstaller(JQ_SPEC, tmp_path, transport=host.transport(), sleep=lambda _: None)

        installed = installer.install(context)

        assert installed == tmp_path / "jq"
        assert (tmp_path / "jq" / "jq-windows-amd64.exe").read_bytes() == b"MZ"
        assert context.search_path[0] == tmp_path / "jq"

    def test_release_request_targets_repository(self, tmp_path):
        """Test the latest release of the configured repository is queried."""
        host = ReleaseHost({"jq-windows-amd64.exe": b"MZ"})
        installer = ReleaseToolInstaller(JQ_SPEC, tmp_path, transport=host.transport(), sleep=lambda _: None)

        installer.install(ToolContext())

        request = host.release_requests[0]
        assert str(request.url) == "https://api.github.com/repos/jqlang/jq/releases/latest"
        assert request.headers["Accept"] == "application/vnd.github+json"

    def test_extracts_zip_asset(self, tmp_path):
        """Test zip assets are unpacked into the tool directory."""
        host = ReleaseHost({"nuget-6.9.zip": _zip_bytes({"nuget.exe": "MZ", "LICENSE.txt": "MIT"})})
        installer = ReleaseToolInstaller(NUGET_SPEC, tmp_path, transport=host.transport(), sleep=lambda _: None)

        installer.install(ToolContext())

        assert (tmp_path / "nuget" / "nuget.exe").exists()
        assert not (tmp_path / "nuget" / "nuget-6.9.zip").exists()

    def test_retries_transient_failures(self, tmp_path):
        """Test release discovery is retried with a fixed pause."""
        host = ReleaseHost({"jq-windows-amd64.exe": b"MZ"}, fail_times=2)
        sleeps = []
        installer = ReleaseToolInstaller(JQ_SPEC, tmp_path, transport=host.transport(), sleep=sleeps.append)

        installer.install(ToolContext())

        assert len(host.release_requests) == 3
        assert sleeps == [1.0, 1.0]

    def test_persistent_failure_raises(self, tmp_path):
        """Test exhausting all attempts raises ToolInstallFailed."""
        host = ReleaseHost({"jq-windows-amd64.exe": b"MZ"}, fail_times=10)
        context = ToolContext()
        installer = ReleaseToolInstaller(JQ_SPEC, tmp_path, transport=host.transport(), sleep=lambda _: None)

        with pytest.raises(ToolInstallFailed) as exc_info:
            installer.install(context)

        assert "jq" in str(exc_info.value)
        assert exc_info.value.exit_code == 5
        assert len(host.release_requests) == 4
        assert context.search_path == []

    def test_missing_executable_raises(self, tmp_path):
        """Test a declared executable must be found after installation."""
        spec = ToolSpec(
            name="jq", repository="jqlang/jq",
            asset_pattern=JQ_SPEC.asset_pattern, executable="jq-missing.exe",
        )
        host = ReleaseHost({"jq-windows-amd64.exe": b"MZ"})
        installer = ReleaseToolInstaller(spec, tmp_path, transport=host.transport(), sleep=lambda _: None)

        with pytest.raises(ToolInstallFailed, match="jq-missing.exe"):
            installer.install(ToolContext())


class RecordingInstaller:
    """Tool installer that records its run order."""

    def __init__(self, name: str, order: list, error: Exception = None):
        self.name = name
        self._order = order
        self._error = error

    def install(self, context: ToolContext) -> Path:
        self._order.append(self.name)
        if self._error:
            raise self._error
        directory = Path("/opt/tools") / self.name
        context.prepend_path(directory)
        return directory


@pytest.mark.unit
class TestRunToolInstallers:
    """Tests for run_tool_installers."""

    def test_runs_in_order(self):
        """Test installers run sequentially and later tools take precedence."""
        order = []
        context = ToolContext()

        installed = run_tool_installers(
            [RecordingInstaller("git", order), RecordingInstaller("nuget", order)], context
        )

        assert order == ["git", "nuget"]
        assert installed == [Path("/opt/tools/git"), Path("/opt/tools/nuget")]
        assert context.search_path == [Path("/opt/tools/nuget"), Path("/opt/tools/git")]

    def test_stops_at_first_failure(self):
        """Test a failing installer stops the remaining ones."""
        order = []
        failure = ToolInstallFailed("git", OSError("disk full"))

        with pytest.raises(ToolInstallFailed):
            run_tool_installers(
                [RecordingInstaller("git", order, failure), RecordingInstaller("nuget", order)],
                ToolContext(),
            )

        assert order == ["git"]

    def test_build_installers(self, tmp_path):
        """Test one release installer is built per spec."""
        installers = build_installers([JQ_SPEC, NUGET_SPEC], tmp_path)

        assert [i.name for i in installers] == ["jq", "nuget"]
        assert all(i.tools_root == tmp_path for i in installers)
