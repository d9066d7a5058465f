"""The generated build project and the commands that act on it."""

import logging
import re
from collections.abc import Awaitable, Callable, Mapping
from pathlib import Path
from typing import TypeVar

from nativebuild.config.schemas import display_name_for_platform
from nativebuild.core.execution import ExecutionContext, run_external
from nativebuild.core.platforms import PlatformChanges, PlatformReconciler
from nativebuild.core.plugins import (
    PluginChanges,
    PluginReconciler,
    ProgressCallback,
    list_installed_plugins,
)
from nativebuild.core.project import Project
from nativebuild.core.specifier import resolve_target
from nativebuild.toolchain.base import CommandOptions, Toolchain, ToolchainError
from nativebuild.utils.filesystem import ensure_directory
from nativebuild.utils.output import (
    print_error,
    print_fail_info,
    print_info,
    print_success,
    print_warning,
)
from nativebuild.utils.platform import (
    current_env_with_paths_added,
    find_executable_dir,
    is_macos,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

APP_ID_PREFIX = "com.nativebuild.userapps."

# Requirements we never rely on: devices are run through Xcode instead.
IGNORED_REQUIREMENTS = frozenset({"ios-deploy"})


def app_id_for_name(app_name: str) -> str:
    """Derive a toolchain-legal application id from an app name.

    App ids have to look like Java namespaces, so anything outside
    letters, digits, "_", "$" and "." becomes an underscore.
    """
    return APP_ID_PREFIX + re.sub(r"[^a-zA-Z\d_$.]", "_", app_name)


class BuildProject:
    """A build project generated from, and kept in sync with, a Project.

    The build project lives in the project's ``build_dir`` and is created
    on first use. Every command against it goes through run_commands,
    which runs it from the build project root with the toolchain's
    environment.
    """

    def __init__(
        self,
        project: Project,
        toolchain: Toolchain,
        verbose: bool = False,
        app_name: str | None = None,
    ):
        """Initialize the build project, creating it if needed.

        Args:
            project: The source project supplying the desired state
            toolchain: Toolchain that operates on the build project
            verbose: Pass toolchain output through and drop its silent mode
            app_name: Application name (defaults to the project's)
        """
        self.project = project
        self.toolchain = toolchain
        self.verbose = verbose
        self.app_name = app_name or project.app_name

        self.project_root = project.build_root
        self.plugins_dir = self.project_root / "plugins"
        self.fetch_metadata_path = self.plugins_dir / "fetch.json"

        self.platform_reconciler = PlatformReconciler(self)
        self.plugin_reconciler = PluginReconciler(self)

        self.create_if_needed()

    def create_if_needed(self) -> None:
        """Create the build project skeleton if it doesn't exist yet."""
        if self.project_root.exists():
            return

        ensure_directory(self.project_root.parent)
        app_id = app_id_for_name(self.app_name)

        logger.debug("Creating build project at %s (%s)", self.project_root, app_id)

        # The project root doesn't exist yet, so stay in the current directory
        self.run_commands(
            lambda ctx: self.toolchain.create(self.project_root, app_id, self.app_name, ctx),
            change_directory=False,
        )

    # =========================================================================
    # Prepare, build, run
    # =========================================================================

    def prepare_for_platform(self, platform: str) -> None:
        options = self.default_options.with_platforms(platform)
        logger.debug("Preparing build project: %s", options)
        self.run_commands(lambda ctx: self.toolchain.prepare(options, ctx))

    def build_for_platform(self, platform: str, options: list[str] | None = None) -> None:
        command_options = self.default_options.with_platforms(platform)
        command_options.options = list(options or [])
        logger.debug("Building build project: %s", command_options)
        self.run_commands(lambda ctx: self.toolchain.build(command_options, ctx))

    def run(
        self,
        platform: str,
        is_device: bool,
        options: list[str] | None = None,
        extra_paths: list[str] | None = None,
    ) -> None:
        """Run the app on a device or emulator (builds first)."""
        command_options = self.default_options.with_platforms(platform)
        command_options.options = [*(options or []), "--device" if is_device else "--emulator"]
        env = self.default_env_with_paths_added(*(extra_paths or []))
        logger.debug("Running build project: %s", command_options)
        self.run_commands(lambda ctx: self.toolchain.run(command_options, ctx), env=env)

    # =========================================================================
    # Platforms
    # =========================================================================

    def check_platform_requirements(self, platform: str) -> bool:
        """Check whether the host can build for a platform.

        Prints what's missing when it can't.

        Args:
            platform: Platform to check

        Returns:
            True if every relevant requirement is satisfied
        """
        display_name = display_name_for_platform(platform)

        if platform == "ios" and not is_macos():
            print_warning("Currently, it is only possible to build iOS apps on macOS.")
            return False

        if platform not in self.list_installed_platforms():
            print_warning(f"Please add the {display_name} platform to your project first.")
            print_info(f"Run: nativebuild add-platform {platform}")
            return False

        report = self.run_commands(
            lambda ctx: self.toolchain.requirements([platform], self.default_options, ctx)
        )
        requirements = report.get(platform) if report else None
        if requirements is None:
            print_error(f"Failed to check requirements for platform {display_name}")
            return False
        if isinstance(requirements, ToolchainError):
            print_error(f"{self.toolchain.name}: {requirements}")
            return False

        requirements = [r for r in requirements if r.id not in IGNORED_REQUIREMENTS]

        satisfied = all(r.installed for r in requirements)
        if not satisfied:
            print_info()
            print_info(
                "Make sure all installation requirements are satisfied "
                f"before running or building for {display_name}:"
            )
            for requirement in requirements:
                if requirement.installed:
                    print_success(requirement.name)
                elif requirement.metadata.reason:
                    print_fail_info(f"{requirement.name}: {requirement.metadata.reason}")
                else:
                    print_fail_info(requirement.name)
        return satisfied

    def list_installed_platforms(self) -> set[str]:
        return self.toolchain.list_installed_platforms(self.project_root)

    def update_platforms(self, platforms: list[str] | None = None) -> None:
        if platforms is None:
            platforms = sorted(self.list_installed_platforms())
        self.run_commands(
            lambda ctx: self.toolchain.platform("update", platforms, self.default_options, ctx)
        )

    def add_platform(self, platform: str) -> None:
        logger.info("Adding platform %s", platform)
        self.run_commands(
            lambda ctx: self.toolchain.platform("add", [platform], self.default_options, ctx)
        )

    def remove_platform(self, platform: str) -> None:
        logger.info("Removing platform %s", platform)
        self.run_commands(
            lambda ctx: self.toolchain.platform("rm", [platform], self.default_options, ctx)
        )

    def ensure_platforms_are_synchronized(
        self, platforms: list[str] | None = None
    ) -> PlatformChanges:
        """Synchronize installed platforms with the app's (or the given) platforms."""
        if platforms is None:
            platforms = self.project.platforms
        return self.platform_reconciler.synchronize(platforms)

    # =========================================================================
    # Plugins
    # =========================================================================

    def list_installed_plugins(self) -> dict[str, str | None]:
        return list_installed_plugins(self.fetch_metadata_path)

    def target_for_plugin(self, name: str, version: str | None) -> str:
        return resolve_target(name, version, self.project.root, self.project_root)

    def add_plugin(
        self,
        name: str,
        version: str | None,
        config: Mapping[str, str] | None = None,
    ) -> None:
        """Add a single plugin, passing its configuration as install variables."""
        logger.debug("Adding plugin %s", name)

        target = self.target_for_plugin(name, version)
        options = self.default_options
        options.variables = dict(config or {})

        self.run_commands(lambda ctx: self.toolchain.plugin("add", [target], options, ctx))

    def remove_plugins(self, plugins: list[str]) -> None:
        logger.debug("Removing plugins %s", plugins)

        if not plugins:
            return

        self.run_commands(
            lambda ctx: self.toolchain.plugin("rm", list(plugins), self.default_options, ctx)
        )

    def ensure_plugins_are_synchronized(
        self,
        plugins: Mapping[str, str | None] | None = None,
        plugins_configuration: Mapping[str, Mapping[str, str]] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> PluginChanges:
        """Synchronize installed plugins with the app's (or the given) plugins."""
        if plugins is None:
            plugins = self.project.plugins
        if plugins_configuration is None:
            plugins_configuration = self.project.plugins_configuration
        return self.plugin_reconciler.synchronize(plugins, plugins_configuration, on_progress)

    # =========================================================================
    # Command support
    # =========================================================================

    @property
    def default_options(self) -> CommandOptions:
        return CommandOptions(silent=not self.verbose, verbose=self.verbose)

    @property
    def default_paths(self) -> list[str]:
        """Directories the toolchain needs on PATH (where node lives)."""
        node_bin_dir = find_executable_dir("node")
        return [node_bin_dir] if node_bin_dir else []

    def default_env_with_paths_added(self, *extra_paths: str) -> dict[str, str]:
        paths = [*extra_paths, *self.project.extra_paths, *self.default_paths]
        return current_env_with_paths_added(*paths)

    def run_commands(
        self,
        action: Callable[[ExecutionContext], Awaitable[T]],
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
        change_directory: bool = True,
    ) -> T:
        """Run a toolchain action from the build project root.

        Args:
            action: Coroutine function receiving the ExecutionContext
            env: Environment override (defaults to the toolchain environment)
            cwd: Working directory override (defaults to the build project root)
            change_directory: Set to False to keep the current directory

        Returns:
            Whatever the action returns

        Raises:
            ExitWithCode: If the toolchain reported an error
        """
        if env is None:
            env = self.default_env_with_paths_added()
        if change_directory and cwd is None:
            cwd = self.project_root
        return run_external(
            action,
            env=env,
            cwd=cwd if change_directory else None,
            toolchain_name=self.toolchain.name,
        )

    def __repr__(self) -> str:
        return f"BuildProject(project_root={self.project_root!r})"
