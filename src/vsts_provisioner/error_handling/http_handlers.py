"""
HTTP error handling utilities.

Maps httpx failures to user-friendly error messages and determines which
errors are retried by the package and tool downloaders.
"""

from typing import Any

import httpx


def is_retryable_http_error(exception: Any) -> bool:
    """Determine if a download failure is retryable.

    The agent package endpoint is retried on any transport failure, any
    non-success status (including 401/403, which the service returns
    transiently while a freshly created PAT propagates) and any malformed
    response body.

    Args:
        exception: The exception to check

    Returns:
        True if the error is retryable, False otherwise
    """
    return isinstance(exception, (httpx.HTTPError, ValueError))


def map_http_error(error: BaseException, operation: str) -> dict[str, str]:
    """Map an HTTP failure to a user-friendly message with hints.

    Args:
        error: The exception raised by httpx or by response parsing
        operation: Description of the operation that failed (e.g., "agent package download")

    Returns:
        Dictionary with keys:
        - error: User-friendly error message
        - hint: Actionable hint for resolving the issue
        - http_status: The HTTP status code, or a transport error name
    """
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code

        if status in (401, 203):
            return {
                "error": f"Authentication failed during {operation}",
                "hint": (
                    "1. Check the personal access token has not expired\n"
                    "2. Verify the token has the 'Agent Pools (read, manage)' scope\n"
                    "3. Make sure the token belongs to the given account"
                ),
                "http_status": str(status),
            }

        if status == 403:
            return {
                "error": f"Permission denied during {operation}",
                "hint": (
                    "1. Verify the token owner can administer the agent pool\n"
                    "2. Check organisation-level conditional access policies"
                ),
                "http_status": str(status),
            }

        if status == 404:
            return {
                "error": f"Resource not found during {operation}",
                "hint": (
                    "1. Verify the account name is spelled correctly\n"
                    "2. The account must be the bare name, not a URL"
                ),
                "http_status": str(status),
            }

        if status >= 500:
            return {
                "error": f"Server error during {operation}",
                "hint": (
                    "1. The service may be degraded, try again after a delay\n"
                    "2. Check the Azure DevOps status page"
                ),
                "http_status": str(status),
            }

        return {
            "error": f"HTTP error during {operation}: {status}",
            "hint": "Check the request URL and the service response body.",
            "http_status": str(status),
        }

    if isinstance(error, httpx.TimeoutException):
        return {
            "error": f"Request timeout during {operation}",
            "hint": (
                "1. Check outbound connectivity from the container\n"
                "2. Check proxy settings (HTTPS_PROXY)"
            ),
            "http_status": "TIMEOUT",
        }

    if isinstance(error, httpx.TransportError):
        return {
            "error": f"Connection failed during {operation}",
            "hint": (
                "1. Check DNS resolution and outbound connectivity\n"
                "2. Check proxy settings (HTTPS_PROXY)\n"
                "3. Verify the account name is spelled correctly"
            ),
            "http_status": type(error).__name__.upper(),
        }

    if isinstance(error, ValueError):
        return {
            "error": f"Malformed response during {operation}: {error}",
            "hint": "The service returned an unexpected payload; retry later.",
            "http_status": "INVALID_RESPONSE",
        }

    return {
        "error": f"Unexpected error during {operation}: {error}",
        "hint": "Check the provisioner log output for details.",
        "http_status": "UNKNOWN",
    }
