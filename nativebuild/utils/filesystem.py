"""Filesystem utilities for nativebuild."""

from pathlib import Path


def ensure_directory(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists

    Returns:
        The directory path
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def list_subdirectories(path: Path) -> set[str]:
    """List the names of the immediate subdirectories of a directory.

    Hidden entries are skipped. A missing directory has no subdirectories.

    Args:
        path: Directory to inspect

    Returns:
        Set of subdirectory names
    """
    if not path.is_dir():
        return set()
    return {p.name for p in path.iterdir() if p.is_dir() and not p.name.startswith(".")}
