"""
Tool installers run before the agent is provisioned.

Each installer discovers the latest release of a tool, downloads it, places it
under the tools root and puts it on the ToolContext search path.
"""

import logging
import re
import shutil
import tempfile
import time
import zipfile
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Protocol

import httpx
from tenacity import Retrying, RetryError, retry_if_exception, stop_after_attempt, wait_fixed

from ..client import DOWNLOAD_ATTEMPTS, RETRY_PAUSE_SECONDS
from ..config import ToolSpec
from ..error_handling import ToolInstallFailed, is_retryable_http_error, map_http_error
from .context import ToolContext

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"


class ToolInstaller(Protocol):
    """Installs one tool and exposes it on a ToolContext."""

    name: str

    def install(self, context: ToolContext) -> Path:
        """Install the tool and return the directory added to the search path."""
        ...


def select_release_asset(release: Any, pattern: str) -> tuple[str, str]:
    """Pick the first release asset whose name matches a pattern.

    Args:
        release: Decoded GitHub release JSON
        pattern: Regular expression searched in asset names

    Returns:
        Tuple of (asset name, download URL)

    Raises:
        ValueError: If the release has no matching asset
    """
    if not isinstance(release, dict):
        raise ValueError("Release response is not a JSON object")

    regex = re.compile(pattern)
    for asset in release.get("assets") or []:
        name = asset.get("name", "")
        if regex.search(name) and asset.get("browser_download_url"):
            return name, asset["browser_download_url"]

    tag = release.get("tag_name", "<unknown>")
    raise ValueError(f"No asset matching '{pattern}' in release {tag}")


class ReleaseToolInstaller:
    """Installs a tool from the latest GitHub release of a repository."""

    def __init__(
        self,
        spec: ToolSpec,
        tools_root: Path,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = 120.0,
        attempts: int = DOWNLOAD_ATTEMPTS,
        retry_pause: float = RETRY_PAUSE_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.spec = spec
        self.name = spec.name
        self.tools_root = tools_root
        self._transport = transport
        self._timeout = timeout
        self.attempts = attempts
        self.retry_pause = retry_pause
        self._sleep = sleep

    @property
    def install_dir(self) -> Path:
        return self.tools_root / self.spec.name

    def install(self, context: ToolContext) -> Path:
        """Download the latest release asset and expose it on the context.

        Raises:
            ToolInstallFailed: If discovery, download or placement fails
        """
        retrying = Retrying(
            retry=retry_if_exception(is_retryable_http_error),
            wait=wait_fixed(self.retry_pause),
            stop=stop_after_attempt(self.attempts),
            sleep=self._sleep,
        )

        try:
            with httpx.Client(
                transport=self._transport,
                timeout=self._timeout,
                follow_redirects=True,
                headers={"Accept": "application/vnd.github+json"},
            ) as client:
                with tempfile.TemporaryDirectory(prefix=f"tool-{self.spec.name}-") as temp_dir:
                    asset = retrying(self._download, client, Path(temp_dir))
                    self._place(asset)
        except RetryError as e:
            cause = e.last_attempt.exception()
            raise ToolInstallFailed(
                self.spec.name, cause, hint=map_http_error(cause, "tool download")["hint"]
            ) from cause
        except (OSError, zipfile.BadZipFile) as e:
            raise ToolInstallFailed(self.spec.name, e) from e

        context.prepend_path(self.install_dir)

        if self.spec.executable and context.which(self.spec.executable) is None:
            raise ToolInstallFailed(
                self.spec.name,
                FileNotFoundError(f"{self.spec.executable} not found in {self.install_dir}"),
            )

        logger.info(f"Installed {self.spec.name} into {self.install_dir}")
        return self.install_dir

    def _download(self, client: httpx.Client, download_dir: Path) -> Path:
        url = f"{GITHUB_API}/repos/{self.spec.repository}/releases/latest"
        logger.info(f"Fetching {url} to determine {self.spec.name} release asset")
        response = client.get(url)
        response.raise_for_status()
        asset_name, asset_url = select_release_asset(response.json(), self.spec.asset_pattern)

        target = download_dir / asset_name
        with client.stream("GET", asset_url) as asset_response:
            asset_response.raise_for_status()
            with open(target, "wb") as f:
                for chunk in asset_response.iter_bytes():
                    f.write(chunk)
        return target

    def _place(self, asset: Path) -> None:
        self.install_dir.mkdir(parents=True, exist_ok=True)
        if asset.suffix.lower() == ".zip":
            with zipfile.ZipFile(asset) as archive:
                archive.extractall(self.install_dir)
        else:
            shutil.copy2(asset, self.install_dir / asset.name)


def build_installers(
    specs: Iterable[ToolSpec],
    tools_root: Path,
    **kwargs: Any,
) -> list[ReleaseToolInstaller]:
    """Create release installers for tool specs, in order."""
    return [ReleaseToolInstaller(spec, tools_root, **kwargs) for spec in specs]


def run_tool_installers(installers: Iterable[ToolInstaller], context: ToolContext) -> list[Path]:
    """Run installers sequentially, stopping at the first failure.

    Returns:
        Directories added to the search path, in install order
    """
    installed = []
    for installer in installers:
        logger.info(f"Installing tool: {installer.name}")
        installed.append(installer.install(context))
    return installed
