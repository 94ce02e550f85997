"""
Platform-specific operations used during provisioning.
"""

from .windows import (
    RUN_KEY_PATH,
    RegistryUnavailable,
    ServiceStatus,
    WindowsAccountBackend,
    query_service_status,
    split_account,
)

__all__ = [
    "RUN_KEY_PATH",
    "RegistryUnavailable",
    "ServiceStatus",
    "WindowsAccountBackend",
    "query_service_status",
    "split_account",
]
