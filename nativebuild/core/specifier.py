"""Plugin version specifiers.

A plugin's version in nativebuild.yaml can be one of several things:

- nothing at all (install whatever the registry gives us)
- a registry version ("4.1.0")
- a legacy GitHub tarball URL pinned to a commit SHA
- a git URL ("https://github.com/org/repo.git#v1.0.0")
- a local path ("file://../plugins/my-plugin")

This module classifies the raw string once and derives from it both the
target handed to the toolchain and the form compared against what the
toolchain reports as installed.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path

from nativebuild.config.parser import ConfigError

FILE_SCHEME = "file://"

_URL_WITH_SHA = re.compile(r"^https?://.*[0-9a-f]{40}")
_GITHUB_TARBALL = re.compile(r"^https?://github\.com/(.+?)/(.+?)/tarball/([0-9a-f]{40})")


@dataclass(frozen=True)
class Bare:
    """No version constraint."""


@dataclass(frozen=True)
class Registry:
    """A version from the toolchain's package registry."""

    version: str


@dataclass(frozen=True)
class GitShaUrl:
    """A GitHub tarball URL pinned to a commit."""

    url: str
    repository: str
    sha: str

    @property
    def git_url(self) -> str:
        return f"{self.repository}.git#{self.sha}"


@dataclass(frozen=True)
class GitUrl:
    """A URL already in git form."""

    url: str


@dataclass(frozen=True)
class LocalPath:
    """A plugin on the local filesystem."""

    path: str


VersionSpecifier = Bare | Registry | GitShaUrl | GitUrl | LocalPath


def is_url_with_sha(version: str) -> bool:
    """Check if a version is an http(s) URL carrying a 40 character SHA."""
    return bool(_URL_WITH_SHA.match(version))


def is_url_with_file_scheme(version: str | None) -> bool:
    """Check if a version points at the local filesystem."""
    return bool(version) and version.startswith(FILE_SCHEME) and len(version) > len(FILE_SCHEME)


def classify(version: str | None) -> VersionSpecifier:
    """Classify a raw version specifier.

    Args:
        version: Raw specifier from the project configuration

    Returns:
        The matching VersionSpecifier

    Raises:
        ConfigError: For SHA-pinned URLs that are neither GitHub tarball
            URLs nor git URLs
    """
    if not version:
        return Bare()

    if is_url_with_file_scheme(version):
        return LocalPath(path=version[len(FILE_SCHEME) :])

    if is_url_with_sha(version):
        match = _GITHUB_TARBALL.match(version)
        if match:
            organization, repository, sha = match.groups()
            return GitShaUrl(
                url=version,
                repository=f"https://github.com/{organization}/{repository}",
                sha=sha,
            )
        if ".git" in version:
            return GitUrl(url=version)
        raise ConfigError(
            "Installing plugins from tarball URLs is no longer supported. "
            f"Use a Git URL instead of {version}"
        )

    if ".git" in version and _looks_like_url(version):
        return GitUrl(url=version)

    return Registry(version=version)


def _looks_like_url(version: str) -> bool:
    return "://" in version or version.startswith(("git@", "git+"))


def comparable_version(version: str | None) -> str | None:
    """Get the form of a specifier that is compared to installed versions.

    Tarball URLs compare as the git URL they are installed from. A bare
    specifier has no comparable form.

    Args:
        version: Raw specifier

    Returns:
        Normalized version string, or None for a bare specifier
    """
    spec = classify(version)
    if isinstance(spec, Bare):
        return None
    if isinstance(spec, GitShaUrl):
        return spec.git_url
    if isinstance(spec, GitUrl):
        return spec.url
    if isinstance(spec, LocalPath):
        return spec.path
    return spec.version


def resolve_local_path(path: str, source_root: Path, build_root: Path) -> str:
    """Re-root a relative local plugin path onto the build project.

    Paths in the project configuration are relative to the source
    project, but the toolchain runs from the build project.

    Args:
        path: Path with the file:// scheme already stripped
        source_root: Root of the source project
        build_root: Root of the build project

    Returns:
        Path pointing at the same location, relative to build_root
        (absolute paths are returned unchanged)
    """
    if os.path.isabs(path):
        return path
    target = os.path.normpath(os.path.join(str(source_root), path))
    return os.path.relpath(target, str(build_root))


def resolve_target(
    name: str,
    version: str | None,
    source_root: Path,
    build_root: Path,
) -> str:
    """Turn a plugin name and raw specifier into a toolchain install target.

    Args:
        name: Plugin name
        version: Raw version specifier
        source_root: Root of the source project
        build_root: Root of the build project

    Returns:
        Installation target for the toolchain's plugin add command

    Raises:
        ConfigError: If the specifier is an unsupported URL
    """
    spec = classify(version)
    if isinstance(spec, Bare):
        return name
    if isinstance(spec, GitShaUrl):
        return spec.git_url
    if isinstance(spec, GitUrl):
        return spec.url
    if isinstance(spec, LocalPath):
        return resolve_local_path(spec.path, source_root, build_root)
    return f"{name}@{spec.version}"
