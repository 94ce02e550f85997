"""
Input validation functions for provisioning requests.

Provides validation for the account name, install drive letter, agent work
directory and logon credentials.
"""

import re
from pathlib import PureWindowsPath
from typing import Optional

from .errors import (
    InvalidAccountFormat,
    InvalidDriveLetter,
    InvalidWorkDirectory,
    MissingLogonAccount,
    MissingLogonPassword,
)

LEGACY_SERVICE_DOMAIN = "visualstudio.com"

_URL_SCHEMES = ("http://", "https://")
_INVALID_PATH_CHARS = re.compile(r'[<>"|?*\x00-\x1f]')


def validate_account_name(account_name: str) -> str:
    """Validate an Azure DevOps account name.

    Args:
        account_name: The bare account name (e.g. 'contoso')

    Returns:
        The validated account name

    Raises:
        InvalidAccountFormat: If the name is empty, a URL, or contains the
            legacy service domain
    """
    if not account_name or not account_name.strip():
        raise InvalidAccountFormat("Account name cannot be empty.")

    lowered = account_name.lower()
    if any(scheme in lowered for scheme in _URL_SCHEMES):
        raise InvalidAccountFormat(
            f"Invalid account name: '{account_name}'. "
            "Must be the bare account name, not a URL."
        )

    if LEGACY_SERVICE_DOMAIN in lowered:
        raise InvalidAccountFormat(
            f"Invalid account name: '{account_name}'. "
            f"Must not contain '{LEGACY_SERVICE_DOMAIN}'."
        )

    return account_name


def validate_drive_letter(drive_letter: str) -> str:
    """Validate and normalise an install drive letter.

    Accepts 'C', 'c' or 'C:'.

    Returns:
        The upper-case drive letter without a colon

    Raises:
        InvalidDriveLetter: If the value is not a single ASCII letter
    """
    letter = (drive_letter or "").rstrip(":")
    if len(letter) != 1 or not letter.isascii() or not letter.isalpha():
        raise InvalidDriveLetter(f"Invalid install drive letter: '{drive_letter}'.")
    return letter.upper()


def validate_work_directory(work_directory: Optional[str]) -> Optional[str]:
    """Validate the agent work directory.

    An unset or blank directory is allowed and means the agent default.

    Returns:
        The validated directory, or None when unset

    Raises:
        InvalidWorkDirectory: If the path is not a valid Windows path
    """
    if work_directory is None or not work_directory.strip():
        return None

    path = PureWindowsPath(work_directory)

    # 'C:work' resolves against the per-drive current directory of whichever
    # process reads it, which the agent service does not share with us.
    if path.drive and not path.root:
        raise InvalidWorkDirectory(
            f"Invalid work directory: '{work_directory}'. "
            "Drive-relative paths are not supported."
        )

    for part in path.parts:
        if part in (path.drive, path.anchor):
            continue
        trailing_dot = part.endswith((" ", ".")) and part != ".."
        if _INVALID_PATH_CHARS.search(part) or trailing_dot:
            raise InvalidWorkDirectory(
                f"Invalid work directory: '{work_directory}'. "
                f"Path component '{part}' is not a valid Windows file name."
            )

    return work_directory


def validate_logon_credentials(
    run_interactive_logon: bool,
    logon_account: Optional[str],
    logon_password: Optional[str],
) -> None:
    """Validate logon credentials for interactive-logon mode.

    Service mode accepts any combination; interactive mode needs both.

    Raises:
        MissingLogonAccount: Interactive mode without an account
        MissingLogonPassword: Interactive mode without a password
    """
    if not run_interactive_logon:
        return

    if not logon_account:
        raise MissingLogonAccount("A logon account is required for interactive logon mode.")

    if not logon_password:
        raise MissingLogonPassword(
            f"A password for '{logon_account}' is required for interactive logon mode."
        )
