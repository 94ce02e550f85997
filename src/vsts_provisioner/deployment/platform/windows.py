"""
Windows platform operations.

Wraps the pywin32 and winreg calls the provisioner needs: service status by
name prefix, account SID resolution, a throwaway logon session to materialise
a user profile, and per-user registry hive access under HKEY_USERS.
"""

import logging
from enum import Enum
from typing import Optional

try:
    import win32api
    import win32profile
    import win32security
    import win32service
    HAS_PYWIN32 = True
except ImportError:
    HAS_PYWIN32 = False

try:
    import winreg
    HAS_WINREG = True
except ImportError:
    HAS_WINREG = False

logger = logging.getLogger(__name__)

RUN_KEY_PATH = "Software\\Microsoft\\Windows\\CurrentVersion\\Run"


class ServiceStatus(Enum):
    """Windows service states (SERVICE_STATUS.dwCurrentState) plus lookup outcomes."""
    UNKNOWN = -1
    NOT_FOUND = 0
    STOPPED = 1
    START_PENDING = 2
    STOP_PENDING = 3
    RUNNING = 4
    CONTINUE_PENDING = 5
    PAUSE_PENDING = 6
    PAUSED = 7

    @classmethod
    def from_win32(cls, state: int) -> "ServiceStatus":
        try:
            return cls(state)
        except ValueError:
            return cls.UNKNOWN


class RegistryUnavailable(Exception):
    """The HKEY_USERS hive cannot be enumerated on this system."""


def _require_pywin32() -> None:
    if not HAS_PYWIN32:
        raise ImportError(
            "pywin32 package required for Windows account and service operations. "
            "Install with: pip install pywin32"
        )


def split_account(account: str, default_domain: str) -> tuple[Optional[str], str]:
    """Split a logon account into (domain, user).

    'DOMAIN\\user' splits on the separator. A UPN ('user@domain') is passed
    through whole with no domain, as LogonUser expects. A bare user name gets
    the local host name as its domain.
    """
    if "\\" in account:
        domain, user = account.split("\\", 1)
        return domain, user
    if "@" in account:
        return None, account
    return default_domain, account


def query_service_status(prefix: str) -> ServiceStatus:
    """Return the status of the first Win32 service whose name starts with prefix.

    Args:
        prefix: Case-insensitive service name prefix (e.g. 'vstsagent')

    Returns:
        The service status, or NOT_FOUND when no service matches
    """
    _require_pywin32()

    scm = win32service.OpenSCManager(None, None, win32service.SC_MANAGER_ENUMERATE_SERVICE)
    try:
        services = win32service.EnumServicesStatus(
            scm, win32service.SERVICE_WIN32, win32service.SERVICE_STATE_ALL
        )
    finally:
        win32service.CloseServiceHandle(scm)

    wanted = prefix.lower()
    for name, _display_name, status in services:
        if name.lower().startswith(wanted):
            return ServiceStatus.from_win32(status[1])

    return ServiceStatus.NOT_FOUND


class WindowsAccountBackend:
    """Account, profile and registry operations backed by pywin32 and winreg."""

    def __init__(self):
        """Initialize the backend.

        Raises:
            ImportError: If pywin32 is not installed
        """
        _require_pywin32()

    def lookup_sid(self, account: str) -> str:
        """Resolve an account name to its string SID."""
        sid, _, _ = win32security.LookupAccountName(None, account)
        return win32security.ConvertSidToStringSid(sid)

    def touch_profile(self, user: str, domain: Optional[str], password: str) -> None:
        """Log on as the user and load its profile, then tear both down.

        Loading the profile once is what makes Windows create the user's
        profile directory and NTUSER.DAT hive.
        """
        logon_token = None
        user_profile = None
        try:
            logon_token = win32security.LogonUser(
                user,
                domain,
                password,
                win32security.LOGON32_LOGON_INTERACTIVE,
                win32security.LOGON32_PROVIDER_DEFAULT,
            )
            user_profile = win32profile.LoadUserProfile(
                logon_token,
                {
                    "UserName": user,
                    "Flags": win32profile.PI_NOUI,
                    "ProfilePath": None,
                },
            )
            logger.info(f"Loaded user profile for '{user}'")
        finally:
            if user_profile is not None:
                win32profile.UnloadUserProfile(logon_token, user_profile)
            if logon_token is not None:
                win32api.CloseHandle(logon_token)

    def open_users_hive(self) -> None:
        """Check that HKEY_USERS can be opened.

        Raises:
            RegistryUnavailable: If winreg is missing or the hive cannot be opened
        """
        if not HAS_WINREG:
            raise RegistryUnavailable("winreg is not available on this platform")
        try:
            handle = winreg.ConnectRegistry(None, winreg.HKEY_USERS)
        except OSError as e:
            raise RegistryUnavailable(f"Cannot open HKEY_USERS: {e}") from e
        winreg.CloseKey(handle)

    def user_hive_loaded(self, sid: str) -> bool:
        """Return True if HKEY_USERS\\<sid> is present."""
        try:
            key = winreg.OpenKey(winreg.HKEY_USERS, sid)
        except FileNotFoundError:
            return False
        winreg.CloseKey(key)
        return True

    def ensure_run_key(self, sid: str) -> None:
        """Create HKEY_USERS\\<sid>\\...\\CurrentVersion\\Run if it is missing."""
        key = winreg.CreateKeyEx(
            winreg.HKEY_USERS, f"{sid}\\{RUN_KEY_PATH}", 0, winreg.KEY_WRITE
        )
        winreg.CloseKey(key)
