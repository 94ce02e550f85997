"""
Azure DevOps agent package client.

Resolves the latest win-x64 agent package from the distributed task API and
downloads it with HTTP Basic authentication.
"""

import logging
import time
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
from tenacity import Retrying, RetryError, retry_if_exception, stop_after_attempt, wait_fixed

from .deployment.request import SERVICE_DOMAIN_TEMPLATE, AgentPackageReference
from .error_handling import PackageDownloadFailed, is_retryable_http_error, map_http_error

logger = logging.getLogger(__name__)

PACKAGE_LISTING_PATH = "/_apis/distributedtask/packages/agent/win-x64?$top=1&api-version=3.0"

# The service ignores the user name for PAT authentication; any fixed value works.
BASIC_AUTH_USER = "AzureDevTestLabs"

DOWNLOAD_ATTEMPTS = 4
RETRY_PAUSE_SECONDS = 1.0
DEFAULT_ARCHIVE_NAME = "agent.zip"


class PackageListingError(ValueError):
    """The package listing response did not contain a download URL."""


def parse_package_listing(payload: Any) -> str:
    """Extract the download URL from a package listing response.

    The 'value' field is either a single package object or an array of them;
    the first package wins.

    Args:
        payload: Decoded JSON response body

    Returns:
        The package download URL

    Raises:
        PackageListingError: If no download URL can be found
    """
    if not isinstance(payload, dict):
        raise PackageListingError(f"Expected a JSON object, got {type(payload).__name__}")

    value = payload.get("value")
    if isinstance(value, list):
        value = value[0] if value else None

    if not isinstance(value, dict) or not value.get("downloadUrl"):
        raise PackageListingError("Package listing contains no downloadUrl")

    url = value["downloadUrl"]
    if not isinstance(url, str):
        raise PackageListingError(f"downloadUrl must be a string, got {type(url).__name__}")
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as e:
        raise PackageListingError(f"Invalid downloadUrl '{url}': {e}") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise PackageListingError(f"downloadUrl is not an absolute HTTP URL: '{url}'")

    return url


class AgentPackageClient:
    """Client for the agent package endpoints of an Azure DevOps account."""

    def __init__(
        self,
        account_name: str,
        auth_token: str,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = 60.0,
        attempts: int = DOWNLOAD_ATTEMPTS,
        retry_pause: float = RETRY_PAUSE_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the package client.

        Args:
            account_name: Bare Azure DevOps account name
            auth_token: Personal access token, sent as the Basic auth password
            transport: httpx transport override (tests use httpx.MockTransport)
            timeout: Per-request timeout in seconds
            attempts: Total download attempts before giving up
            retry_pause: Fixed pause between attempts in seconds
            sleep: Sleep function used between attempts
        """
        self.server_url = SERVICE_DOMAIN_TEMPLATE.format(account=account_name)
        self._auth = (BASIC_AUTH_USER, auth_token)
        self._transport = transport
        self._timeout = timeout
        self.attempts = attempts
        self.retry_pause = retry_pause
        self._sleep = sleep
        self._client: Optional[httpx.Client] = None

    def connect(self) -> None:
        """Create the underlying HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.server_url,
                auth=self._auth,
                transport=self._transport,
                timeout=self._timeout,
                follow_redirects=True,
            )

    def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        # A rejected PAT yields 203 with an HTML sign-in page instead of 401.
        if response.status_code == 203:
            raise httpx.HTTPStatusError(
                "Non-authoritative response (token rejected)",
                request=response.request,
                response=response,
            )
        response.raise_for_status()

    def get_download_url(self) -> str:
        """Query the listing for the latest win-x64 agent package URL."""
        if self._client is None:
            self.connect()

        logger.info(f"Fetching {self.server_url}{PACKAGE_LISTING_PATH} to determine agent package url")
        response = self._client.get(PACKAGE_LISTING_PATH)
        self._raise_for_status(response)
        return parse_package_listing(response.json())

    def download(self, download_url: str, download_dir: Path) -> AgentPackageReference:
        """Download a package artifact into a directory.

        Args:
            download_url: Artifact URL from the package listing
            download_dir: Existing directory receiving the archive

        Returns:
            Reference to the downloaded archive
        """
        if self._client is None:
            self.connect()

        archive_name = Path(httpx.URL(download_url).path).name or DEFAULT_ARCHIVE_NAME
        reference = AgentPackageReference(
            download_url=download_url,
            local_archive_path=download_dir / archive_name,
        )

        logger.info(f"Downloading agent package from {download_url}")
        with self._client.stream("GET", download_url) as response:
            self._raise_for_status(response)
            with open(reference.local_archive_path, "wb") as f:
                for chunk in response.iter_bytes():
                    f.write(chunk)

        return reference

    def acquire(self, download_dir: Path) -> AgentPackageReference:
        """Resolve and download the agent package, retrying on failure.

        Every attempt repeats both the listing query and the artifact
        download. Attempts are separated by a fixed pause.

        Args:
            download_dir: Existing directory receiving the archive

        Returns:
            Reference to the downloaded archive

        Raises:
            PackageDownloadFailed: After all attempts failed
        """
        retrying = Retrying(
            retry=retry_if_exception(is_retryable_http_error),
            wait=wait_fixed(self.retry_pause),
            stop=stop_after_attempt(self.attempts),
            sleep=self._sleep,
            before_sleep=self._log_retry,
        )

        try:
            return retrying(self._acquire_once, download_dir)
        except RetryError as e:
            cause = e.last_attempt.exception()
            mapped = map_http_error(cause, "agent package download")
            raise PackageDownloadFailed(
                cause, attempts=e.last_attempt.attempt_number, hint=mapped["hint"]
            ) from cause

    def _acquire_once(self, download_dir: Path) -> AgentPackageReference:
        return self.download(self.get_download_url(), download_dir)

    def _log_retry(self, retry_state) -> None:
        error = retry_state.outcome.exception()
        logger.warning(
            f"Agent package download attempt {retry_state.attempt_number}/{self.attempts} "
            f"failed: {map_http_error(error, 'agent package download')['error']}; retrying"
        )

    def __enter__(self) -> "AgentPackageClient":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
