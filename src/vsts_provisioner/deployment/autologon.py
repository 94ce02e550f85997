"""
Autologon preparation.

Before the agent is configured to run under an interactive logon session, the
target user's profile and registry hive must exist, and the hive needs a
CurrentVersion\\Run key for the agent to register itself under.
"""

import logging
import socket
import time
import warnings
from enum import Enum
from typing import Callable, Optional, Protocol

from ..error_handling import AutologonError, ConfigurationWarning, MissingLogonPassword
from .platform import RUN_KEY_PATH, RegistryUnavailable, split_account

logger = logging.getLogger(__name__)

HIVE_WAIT_SECONDS = 120.0
HIVE_POLL_SECONDS = 10.0


class AccountBackend(Protocol):
    """Operating system operations needed to prime a user's registry hive."""

    def lookup_sid(self, account: str) -> str: ...

    def touch_profile(self, user: str, domain: Optional[str], password: str) -> None: ...

    def open_users_hive(self) -> None: ...

    def user_hive_loaded(self, sid: str) -> bool: ...

    def ensure_run_key(self, sid: str) -> None: ...


class AutologonOutcome(Enum):
    """Result of autologon preparation."""
    READY = "ready"          # hive found, Run key ensured
    SKIPPED = "skipped"      # registry could not be enumerated
    TIMED_OUT = "timed_out"  # hive never appeared within the wait budget
    REGISTRY_ERROR = "registry_error"  # hive check or Run key creation failed


def _warn(message: str) -> None:
    logger.warning(message)
    warnings.warn(message, ConfigurationWarning, stacklevel=3)


class AutologonPreparer:
    """Primes a user's profile and registry hive for autologon.

    Only the password check, SID resolution and the logon session are fatal.
    Everything after that is best-effort: provisioning continues with a
    warning when the registry cannot be used or the hive never shows up.
    """

    def __init__(
        self,
        backend: Optional[AccountBackend] = None,
        *,
        wait_seconds: float = HIVE_WAIT_SECONDS,
        poll_seconds: float = HIVE_POLL_SECONDS,
        hostname: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the preparer.

        Args:
            backend: Account backend (defaults to the pywin32 implementation)
            wait_seconds: Total time budget for the hive to appear
            poll_seconds: Interval between hive checks
            hostname: Domain used for accounts without one (defaults to this host)
            clock: Monotonic clock
            sleep: Sleep function
        """
        if backend is None:
            from .platform import WindowsAccountBackend
            backend = WindowsAccountBackend()

        self.backend = backend
        self.wait_seconds = wait_seconds
        self.poll_seconds = poll_seconds
        self.hostname = hostname or socket.gethostname()
        self._clock = clock
        self._sleep = sleep

    def prepare(self, account: str, password: str) -> AutologonOutcome:
        """Prepare autologon for an account.

        Args:
            account: Windows account ('DOMAIN\\user', 'user@domain' or 'user')
            password: The account password

        Returns:
            How far preparation got

        Raises:
            MissingLogonPassword: If password is empty
            AutologonError: If the account cannot be resolved or logged on
        """
        if not password:
            raise MissingLogonPassword(f"A password for '{account}' is required for autologon.")

        try:
            sid = self.backend.lookup_sid(account)
        except Exception as e:
            raise AutologonError(f"Cannot resolve account '{account}' to a SID: {e}") from e

        domain, user = split_account(account, self.hostname)
        logger.info(f"Preparing autologon for {domain or ''}\\{user} (SID {sid})")

        try:
            self.backend.touch_profile(user, domain, password)
        except Exception as e:
            raise AutologonError(f"Cannot log on as '{account}': {e}") from e

        try:
            self.backend.open_users_hive()
        except RegistryUnavailable as e:
            _warn(f"Skipping autologon registry preparation: {e}")
            return AutologonOutcome.SKIPPED

        try:
            return self._await_hive(sid)
        except OSError as e:
            _warn(f"Registry preparation for {sid} failed: {e}; continuing without it")
            return AutologonOutcome.REGISTRY_ERROR

    def _await_hive(self, sid: str) -> AutologonOutcome:
        deadline = self._clock() + self.wait_seconds
        while True:
            if self.backend.user_hive_loaded(sid):
                self.backend.ensure_run_key(sid)
                logger.info(f"Ensured HKEY_USERS\\{sid}\\{RUN_KEY_PATH}")
                return AutologonOutcome.READY

            if self._clock() >= deadline:
                _warn(
                    f"Registry hive for {sid} did not load within "
                    f"{self.wait_seconds:.0f}s; continuing without it"
                )
                return AutologonOutcome.TIMED_OUT

            self._sleep(self.poll_seconds)
