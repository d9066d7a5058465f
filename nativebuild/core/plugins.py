"""Plugin synchronization between the app and its build project.

Plugins can depend on each other, and the toolchain resolves those
dependencies when a plugin is added. Changing the version of one plugin
in place can therefore leave another plugin's pinned dependency broken.
To stay safe, any change to a plugin that is not installed from a local
path (added, removed, or a different version) reinstalls every plugin.
Local-path plugins skip dependency resolution, so on their own they are
simply removed and added again on every synchronization.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from nativebuild.config.parser import load_fetch_metadata
from nativebuild.config.schemas import FetchMetadataEntry
from nativebuild.core.specifier import comparable_version, is_url_with_file_scheme

if TYPE_CHECKING:
    from nativebuild.core.build_project import BuildProject

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass
class PluginChanges:
    """What a plugin synchronization has to do."""

    reinstall_all: bool = False
    to_remove: list[str] = field(default_factory=list)
    to_install: dict[str, str | None] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.to_remove and not self.to_install


def installed_version(entry: FetchMetadataEntry) -> str | None:
    """Get the normalized version of an installed plugin.

    Args:
        entry: The plugin's fetch metadata

    Returns:
        Registry version, "url#ref" for git, or the path for local plugins
    """
    source = entry.source
    if source.type == "registry":
        # Split on the last "@" so scoped ids like "@scope/name@1.0.0" work
        head, sep, version = (source.id or "").rpartition("@")
        return version if sep and head else None
    if source.type == "git":
        return f"{source.url}#{source.ref}" if source.ref else source.url
    return source.path


def list_installed_plugins(fetch_metadata_path: Path) -> dict[str, str | None]:
    """Read the installed plugins and their normalized versions.

    Args:
        fetch_metadata_path: Path to the build project's plugins/fetch.json

    Returns:
        Mapping of plugin name to normalized version
    """
    metadata = load_fetch_metadata(fetch_metadata_path)
    return {name: installed_version(entry) for name, entry in metadata.items()}


def plan_plugin_changes(
    desired: Mapping[str, str | None],
    installed: Mapping[str, str | None],
) -> PluginChanges:
    """Decide which plugins to remove and install.

    Args:
        desired: Plugin name to raw version specifier, as configured
        installed: Plugin name to normalized version, as installed

    Returns:
        PluginChanges; empty when the build project is already in sync

    Raises:
        ConfigError: If a specifier is an unsupported URL
    """
    from_local_path: dict[str, str | None] = {}
    reinstall_all = False

    for name, version in desired.items():
        if is_url_with_file_scheme(version):
            from_local_path[name] = version
            continue

        wanted = comparable_version(version)
        if name not in installed:
            reinstall_all = True
        # A bare specifier accepts any installed version, otherwise an
        # unpinned plugin would trigger a full reinstall on every sync.
        elif wanted is not None and installed[name] != wanted:
            reinstall_all = True

    if any(name not in desired for name in installed):
        reinstall_all = True

    if reinstall_all:
        return PluginChanges(
            reinstall_all=True,
            to_remove=list(installed),
            to_install=dict(desired),
        )

    if from_local_path:
        return PluginChanges(
            to_remove=[name for name in from_local_path if name in installed],
            to_install=from_local_path,
        )

    return PluginChanges()


class PluginReconciler:
    """Brings the build project's plugins in line with the app's."""

    def __init__(self, build_project: BuildProject):
        self.build_project = build_project

    def synchronize(
        self,
        plugins: Mapping[str, str | None],
        plugins_configuration: Mapping[str, Mapping[str, str]] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> PluginChanges:
        """Remove and install plugins until the build project matches.

        Removals happen in a single toolchain command, then each plugin is
        added on its own. A failure stops the synchronization; plugins
        added before it stay installed and are diffed again next time.

        Args:
            plugins: Plugin name to raw version specifier
            plugins_configuration: Optional per-plugin install variables
            on_progress: Called with (installed so far, total), starting at 0

        Returns:
            The changes that were applied
        """
        plugins_configuration = plugins_configuration or {}
        report = on_progress or _log_progress

        installed = self.build_project.list_installed_plugins()
        changes = plan_plugin_changes(plugins, installed)

        if changes.is_empty:
            logger.debug("Plugins already synchronized")
            return changes

        if changes.reinstall_all:
            logger.info("Plugin set changed, reinstalling all %d plugin(s)", len(plugins))
        else:
            logger.debug("Reinstalling plugins added from a local path")

        self.build_project.remove_plugins(changes.to_remove)

        total = len(changes.to_install)
        completed = 0
        report(completed, total)
        for name, version in changes.to_install.items():
            self.build_project.add_plugin(name, version, plugins_configuration.get(name))
            completed += 1
            report(completed, total)

        return changes


def _log_progress(current: int, total: int) -> None:
    logger.info("Installed %d of %d plugin(s)", current, total)
