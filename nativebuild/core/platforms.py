"""Platform synchronization between the app and its build project."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from nativebuild.config.schemas import AVAILABLE_PLATFORMS

if TYPE_CHECKING:
    from nativebuild.core.build_project import BuildProject

logger = logging.getLogger(__name__)


@dataclass
class PlatformChanges:
    """Platforms to add to and remove from the build project."""

    to_add: list[str] = field(default_factory=list)
    to_remove: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove


def plan_platform_changes(desired: Iterable[str], installed: Iterable[str]) -> PlatformChanges:
    """Work out which platforms to add and remove.

    Installed platforms we don't know about are left alone, since
    something other than this tool put them there.

    Args:
        desired: Platforms the app wants
        installed: Platforms present in the build project

    Returns:
        PlatformChanges with additions in desired order and removals sorted
    """
    desired = list(dict.fromkeys(desired))
    installed = set(installed)

    to_add = [platform for platform in desired if platform not in installed]
    to_remove = sorted(
        platform
        for platform in installed
        if platform not in desired and platform in AVAILABLE_PLATFORMS
    )
    return PlatformChanges(to_add=to_add, to_remove=to_remove)


class PlatformReconciler:
    """Brings the build project's platforms in line with the app's."""

    def __init__(self, build_project: BuildProject):
        self.build_project = build_project

    def synchronize(self, desired: Iterable[str]) -> PlatformChanges:
        """Add missing platforms and remove unwanted ones.

        Every add and remove is its own toolchain command. The first one
        that fails stops the synchronization.

        Args:
            desired: Platforms the app wants

        Returns:
            The changes that were applied
        """
        installed = self.build_project.list_installed_platforms()
        changes = plan_platform_changes(desired, installed)

        if changes.is_empty:
            logger.debug("Platforms already synchronized: %s", sorted(installed))
            return changes

        for platform in changes.to_add:
            self.build_project.add_platform(platform)

        for platform in changes.to_remove:
            self.build_project.remove_platform(platform)

        return changes
