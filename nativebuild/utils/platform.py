"""Platform, OS and environment helpers."""

import os
import platform
import shutil
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


def is_macos() -> bool:
    """Check if the current OS is macOS."""
    return get_os() == "macos"


def find_executable_dir(name: str) -> str | None:
    """Find the directory holding an executable on the current PATH.

    Args:
        name: Executable name (e.g., "node")

    Returns:
        Directory containing the executable, or None if not found
    """
    found = shutil.which(name)
    if found is None:
        return None
    return os.path.dirname(os.path.realpath(found))


def current_env_with_paths_added(*paths: str) -> dict[str, str]:
    """Copy the current environment with directories prepended to PATH.

    Args:
        *paths: Directories to put in front of the inherited PATH, in order

    Returns:
        New environment mapping; os.environ is not modified
    """
    env = dict(os.environ)
    existing = env.get("PATH", "")
    parts = [p for p in paths if p]
    if existing:
        parts.append(existing)
    env["PATH"] = os.pathsep.join(parts)
    return env
