"""Abstract base class for build toolchains.

A toolchain is the external program that actually creates the build
project and adds, removes, prepares, builds and runs things in it. The
core never talks to it directly; every call goes through the command
execution context, which hands the toolchain an ExecutionContext naming
the working directory and environment to use.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from nativebuild.config.schemas import Requirement
from nativebuild.utils.filesystem import list_subdirectories

if TYPE_CHECKING:
    from nativebuild.core.execution import ExecutionContext

logger = logging.getLogger(__name__)

PlatformCommand = Literal["add", "rm", "update"]
PluginCommand = Literal["add", "rm"]
EventKind = Literal["log", "warn", "results"]


class ToolchainError(Exception):
    """Error reported by the external toolchain."""

    def __init__(self, message: str, returncode: int | None = None):
        self.returncode = returncode
        super().__init__(message)


@dataclass
class CommandOptions:
    """Options passed along with a toolchain command."""

    silent: bool = True
    verbose: bool = False
    platforms: list[str] = field(default_factory=list)
    options: list[str] = field(default_factory=list)
    variables: dict[str, str] = field(default_factory=dict)

    def with_platforms(self, *platforms: str) -> "CommandOptions":
        """Copy these options targeting the given platforms."""
        return CommandOptions(
            silent=self.silent,
            verbose=self.verbose,
            platforms=list(platforms),
            options=list(self.options),
            variables=dict(self.variables),
        )


RequirementsReport = dict[str, list[Requirement] | ToolchainError]


class Toolchain(ABC):
    """Abstract base class for build toolchains.

    All command methods are coroutines. Callers join each one at a single
    point (see nativebuild.core.execution), so implementations never see
    two commands running at once against the same project.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short name used in user-facing messages (e.g., "cordova")."""
        ...

    # =========================================================================
    # Project
    # =========================================================================

    @abstractmethod
    async def create(
        self, path: Path, app_id: str, app_name: str, ctx: "ExecutionContext"
    ) -> None:
        """Create a new build project skeleton at path."""
        ...

    def list_installed_platforms(self, project_root: Path) -> set[str]:
        """List platforms currently installed in a build project.

        Args:
            project_root: Root of the build project

        Returns:
            Set of installed platform names
        """
        return list_subdirectories(project_root / "platforms")

    # =========================================================================
    # Platforms and plugins
    # =========================================================================

    @abstractmethod
    async def platform(
        self,
        command: PlatformCommand,
        platforms: list[str],
        options: CommandOptions,
        ctx: "ExecutionContext",
    ) -> None:
        """Add, remove or update platforms."""
        ...

    @abstractmethod
    async def plugin(
        self,
        command: PluginCommand,
        targets: list[str],
        options: CommandOptions,
        ctx: "ExecutionContext",
    ) -> None:
        """Add or remove plugins.

        For "add", targets holds a single installation target and
        options.variables carries the plugin's configuration.
        """
        ...

    @abstractmethod
    async def requirements(
        self,
        platforms: list[str],
        options: CommandOptions,
        ctx: "ExecutionContext",
    ) -> RequirementsReport:
        """Check the host requirements for each platform.

        A platform whose check itself failed maps to a ToolchainError
        instead of a requirement list.
        """
        ...

    # =========================================================================
    # Prepare, build, run
    # =========================================================================

    @abstractmethod
    async def prepare(self, options: CommandOptions, ctx: "ExecutionContext") -> None: ...

    @abstractmethod
    async def build(self, options: CommandOptions, ctx: "ExecutionContext") -> None: ...

    @abstractmethod
    async def run(self, options: CommandOptions, ctx: "ExecutionContext") -> None: ...

    # =========================================================================
    # Events
    # =========================================================================

    def emit(self, kind: EventKind, message: str) -> None:
        """Forward a toolchain notification to the log.

        Plain output only shows up at debug verbosity; warnings always do.
        """
        if kind == "warn":
            logger.warning("%% %s", message)
        else:
            logger.debug("%% %s", message)
