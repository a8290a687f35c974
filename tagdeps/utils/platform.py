"""Platform and OS detection utilities."""

import platform
from typing import Literal

PlatformOS = Literal["windows", "linux", "macos"]


def get_os() -> PlatformOS:
    """Get the current operating system.

    Returns:
        One of: "windows", "linux", "macos"
    """
    system = platform.system().lower()
    if system == "darwin":
        return "macos"
    elif system == "windows":
        return "windows"
    else:
        return "linux"


def is_unix() -> bool:
    """Check if the current OS is Unix-like (Linux or macOS).

    Returns:
        True if running on Linux or macOS
    """
    return get_os() in ("linux", "macos")


def supports_file_modes() -> bool:
    """Check if POSIX permission bits can be applied to extracted files."""
    return is_unix()
