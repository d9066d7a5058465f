"""Main CLI application for nativebuild."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated

import typer
from rich.logging import RichHandler
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table

from nativebuild import __version__
from nativebuild.config.parser import CONFIG_FILENAME, ConfigError
from nativebuild.config.schemas import AVAILABLE_PLATFORMS, PluginSpec
from nativebuild.core.build_project import BuildProject
from nativebuild.core.execution import ExitWithCode
from nativebuild.core.plugins import list_installed_plugins
from nativebuild.core.project import Project
from nativebuild.core.specifier import classify
from nativebuild.toolchain import get_toolchain
from nativebuild.utils.output import (
    console,
    error_console,
    print_error,
    print_success,
    print_warning,
)

# Create the main Typer app
app = typer.Typer(
    name="nativebuild",
    help="Keep a generated mobile build project in sync with your app",
    add_completion=False,
    no_args_is_help=True,
)

# Set up logger for the nativebuild package
logger = logging.getLogger("nativebuild")

PathOption = Annotated[
    Path | None,
    typer.Option(
        "--path",
        "-p",
        help="Project directory",
    ),
]


def setup_logging(verbosity: int) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbosity: 0=WARNING, 1=INFO, 2+=DEBUG (toolchain output included)
    """
    if verbosity == 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logger.setLevel(level)

    # Only add handler if not already configured
    if not logger.handlers:
        handler = RichHandler(
            console=error_console,
            show_time=verbosity >= 2,
            show_path=verbosity >= 3,
            rich_tracebacks=True,
        )
        handler.setLevel(level)
        logger.addHandler(handler)
    else:
        for h in logger.handlers:
            h.setLevel(level)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn known failures into a clean exit with a non-zero status."""
    try:
        yield
    except ExitWithCode as e:
        # Already reported by the execution context
        raise typer.Exit(e.code) from e
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(1) from e


def get_project(path: Path | None = None) -> Project:
    """Get the current project, raising an error if not found."""
    try:
        return Project.load(path)
    except FileNotFoundError as e:
        print_error(str(e))
        print_error("Run 'nativebuild init' to create a new project")
        raise typer.Exit(1) from e
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(1) from e


def get_build_project(ctx: typer.Context, project: Project) -> BuildProject:
    """Open (creating if needed) the build project for a project."""
    try:
        toolchain = get_toolchain(project.toolchain)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    with handle_errors():
        return BuildProject(project, toolchain, verbose=is_verbose(ctx))


def is_verbose(ctx: typer.Context) -> bool:
    return bool(ctx.obj and ctx.obj.get("verbose", 0) > 0)


def validate_platform(platform: str) -> str:
    if platform not in AVAILABLE_PLATFORMS:
        print_error(f"Unknown platform: {platform}")
        print_error(f"Available platforms: {', '.join(AVAILABLE_PLATFORMS)}")
        raise typer.Exit(1)
    return platform


def parse_plugin_argument(argument: str) -> tuple[str, str | None]:
    """Split "name@version" into its parts.

    The first "@" after the start separates name and version, so scoped
    names ("@scope/name@1.0.0") and URLs containing "@" both work.
    """
    index = argument.find("@", 1)
    if index == -1:
        return argument, None
    return argument[:index], argument[index + 1 :] or None


def parse_variables(variables: list[str] | None) -> dict[str, str]:
    result = {}
    for variable in variables or []:
        key, sep, value = variable.partition("=")
        if not sep or not key:
            print_error(f"Invalid variable (expected KEY=VALUE): {variable}")
            raise typer.Exit(1)
        result[key] = value
    return result


def synchronize(ctx: typer.Context, project: Project) -> BuildProject:
    """Synchronize platforms and plugins, showing plugin install progress."""
    build_project = get_build_project(ctx, project)

    with handle_errors():
        changes = build_project.ensure_platforms_are_synchronized()
        for platform in changes.to_add:
            print_success(f"Added platform {platform}")
        for platform in changes.to_remove:
            print_success(f"Removed platform {platform}")

        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Installing plugins", total=None)

            def on_progress(current: int, total: int) -> None:
                progress.update(task, completed=current, total=total)

            plugin_changes = build_project.ensure_plugins_are_synchronized(
                on_progress=on_progress
            )

        if plugin_changes.to_install:
            print_success(f"Installed {len(plugin_changes.to_install)} plugin(s)")

    return build_project


@app.callback()
def callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            count=True,
            help="Increase verbosity (-v info, -vv debug with toolchain output)",
        ),
    ] = 0,
) -> None:
    """nativebuild - keep a generated mobile build project in sync with your app."""
    ctx.obj = {"verbose": verbose}
    setup_logging(verbose)


@app.command()
def version() -> None:
    """Show the nativebuild version."""
    console.print(f"nativebuild {__version__}")


@app.command()
def init(
    app_name: Annotated[
        str | None,
        typer.Option(
            "--name",
            "-n",
            help="Application name (defaults to directory name)",
        ),
    ] = None,
    platforms: Annotated[
        list[str] | None,
        typer.Option(
            "--platform",
            "-P",
            help="Platform to target (repeatable)",
        ),
    ] = None,
    path: PathOption = None,
) -> None:
    """Initialize a new project.

    Creates a nativebuild.yaml configuration file in the specified directory.
    The build project itself is created on the first sync.
    """
    path = Path.cwd() if path is None else path.resolve()

    if not path.exists():
        print_error(f"Directory does not exist: {path}")
        raise typer.Exit(1)

    if (path / CONFIG_FILENAME).exists():
        print_error(f"Project already initialized in {path}")
        print_error(f"To reinitialize, delete {CONFIG_FILENAME} first")
        raise typer.Exit(1)

    for platform in platforms or []:
        validate_platform(platform)

    project = Project.init(path, app_name, platforms)
    print_success(f"Initialized project {project.app_name}")
    console.print(f"  Created: {path / CONFIG_FILENAME}")


@app.command("add-platform")
def add_platform(
    ctx: typer.Context,
    platforms: Annotated[list[str], typer.Argument(help="Platforms to add")],
    no_sync: Annotated[
        bool,
        typer.Option("--no-sync", help="Only update nativebuild.yaml"),
    ] = False,
    path: PathOption = None,
) -> None:
    """Add platforms to the project."""
    project = get_project(path)

    for platform in platforms:
        validate_platform(platform)
        if project.add_platform(platform):
            print_success(f"Added {platform} to {CONFIG_FILENAME}")
        else:
            print_warning(f"Platform already added: {platform}")
    project.save()

    if not no_sync:
        build_project = get_build_project(ctx, project)
        with handle_errors():
            build_project.ensure_platforms_are_synchronized()


@app.command("remove-platform")
def remove_platform(
    ctx: typer.Context,
    platforms: Annotated[list[str], typer.Argument(help="Platforms to remove")],
    no_sync: Annotated[
        bool,
        typer.Option("--no-sync", help="Only update nativebuild.yaml"),
    ] = False,
    path: PathOption = None,
) -> None:
    """Remove platforms from the project."""
    project = get_project(path)

    for platform in platforms:
        if project.remove_platform(platform):
            print_success(f"Removed {platform} from {CONFIG_FILENAME}")
        else:
            print_warning(f"Platform not found: {platform}")
    project.save()

    if not no_sync:
        build_project = get_build_project(ctx, project)
        with handle_errors():
            build_project.ensure_platforms_are_synchronized()


@app.command("add-plugin")
def add_plugin(
    ctx: typer.Context,
    plugin: Annotated[
        str,
        typer.Argument(
            help="Plugin to add (e.g., 'name', 'name@4.1.0', "
            "'name@https://github.com/org/repo.git#v1', 'name@file://../plugins/name')",
        ),
    ],
    variables: Annotated[
        list[str] | None,
        typer.Option(
            "--variable",
            help="Plugin install variable as KEY=VALUE (repeatable)",
        ),
    ] = None,
    no_sync: Annotated[
        bool,
        typer.Option("--no-sync", help="Only update nativebuild.yaml"),
    ] = False,
    path: PathOption = None,
) -> None:
    """Add a plugin to the project."""
    project = get_project(path)

    name, plugin_version = parse_plugin_argument(plugin)
    config = parse_variables(variables)

    # Reject unsupported specifiers before they reach nativebuild.yaml
    with handle_errors():
        classify(plugin_version)

    if config:
        project.add_plugin(name, PluginSpec(version=plugin_version, config=config))
    else:
        project.add_plugin(name, plugin_version)
    project.save()
    print_success(f"Added {plugin} to {CONFIG_FILENAME}")

    if not no_sync:
        synchronize(ctx, project)


@app.command("remove-plugin")
def remove_plugin(
    ctx: typer.Context,
    plugins: Annotated[list[str], typer.Argument(help="Plugins to remove")],
    no_sync: Annotated[
        bool,
        typer.Option("--no-sync", help="Only update nativebuild.yaml"),
    ] = False,
    path: PathOption = None,
) -> None:
    """Remove plugins from the project."""
    project = get_project(path)

    removed = [name for name in plugins if project.remove_plugin(name)]
    for name in plugins:
        if name in removed:
            print_success(f"Removed {name} from {CONFIG_FILENAME}")
        else:
            print_warning(f"Plugin not found: {name}")

    if not removed:
        return
    project.save()

    if not no_sync:
        synchronize(ctx, project)


@app.command("list")
def list_project(path: PathOption = None) -> None:
    """List desired and installed platforms and plugins.

    Reads the build project if it exists; never creates it.
    """
    project = get_project(path)
    build_root = project.build_root
    built = build_root.exists()

    installed_platforms: set[str] = set()
    installed_plugins: dict[str, str | None] = {}
    if built:
        try:
            toolchain = get_toolchain(project.toolchain)
        except ValueError as e:
            print_error(str(e))
            raise typer.Exit(1) from e
        installed_platforms = toolchain.list_installed_platforms(build_root)
        installed_plugins = list_installed_plugins(build_root / "plugins" / "fetch.json")

    table = Table(title="Platforms")
    table.add_column("Platform", style="cyan")
    table.add_column("Installed", style="green")
    for platform in sorted(set(project.platforms) | installed_platforms):
        wanted = "" if platform in project.platforms else " (not in project)"
        table.add_row(platform + wanted, "yes" if platform in installed_platforms else "no")
    console.print(table)

    table = Table(title="Plugins")
    table.add_column("Plugin", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Installed", style="dim")
    for name, plugin_version in project.plugins.items():
        table.add_row(name, plugin_version or "latest", installed_plugins.get(name) or "")
    for name, installed in installed_plugins.items():
        if name not in project.plugins:
            table.add_row(f"{name} (not in project)", "", installed or "")
    console.print(table)

    if not built:
        console.print(f"\nBuild project not created yet: {build_root}")


@app.command()
def sync(ctx: typer.Context, path: PathOption = None) -> None:
    """Synchronize the build project's platforms and plugins with the app."""
    project = get_project(path)
    synchronize(ctx, project)
    print_success("Build project is up to date")


@app.command()
def prepare(
    ctx: typer.Context,
    platform: Annotated[str, typer.Argument(help="Platform to prepare")],
    path: PathOption = None,
) -> None:
    """Synchronize and prepare the build project for a platform."""
    project = get_project(path)
    validate_platform(platform)
    build_project = synchronize(ctx, project)
    with handle_errors():
        build_project.prepare_for_platform(platform)
    print_success(f"Prepared {platform}")


@app.command()
def build(
    ctx: typer.Context,
    platform: Annotated[str, typer.Argument(help="Platform to build")],
    options: Annotated[
        list[str] | None,
        typer.Argument(help="Extra options passed to the toolchain (after --)"),
    ] = None,
    path: PathOption = None,
) -> None:
    """Synchronize and build the app for a platform."""
    project = get_project(path)
    validate_platform(platform)
    build_project = synchronize(ctx, project)
    with handle_errors():
        build_project.build_for_platform(platform, options)
    print_success(f"Built {platform}")


@app.command()
def run(
    ctx: typer.Context,
    platform: Annotated[str, typer.Argument(help="Platform to run")],
    device: Annotated[
        bool,
        typer.Option("--device", "-d", help="Run on a connected device instead of an emulator"),
    ] = False,
    options: Annotated[
        list[str] | None,
        typer.Argument(help="Extra options passed to the toolchain (after --)"),
    ] = None,
    path: PathOption = None,
) -> None:
    """Synchronize, build and run the app on a device or emulator."""
    project = get_project(path)
    validate_platform(platform)
    build_project = synchronize(ctx, project)
    with handle_errors():
        if not build_project.check_platform_requirements(platform):
            raise typer.Exit(1)
        build_project.run(platform, device, options)


@app.command()
def check(
    ctx: typer.Context,
    platform: Annotated[str, typer.Argument(help="Platform to check")],
    path: PathOption = None,
) -> None:
    """Check that this machine can build for a platform."""
    project = get_project(path)
    validate_platform(platform)
    build_project = get_build_project(ctx, project)
    with handle_errors():
        satisfied = build_project.check_platform_requirements(platform)
    if not satisfied:
        raise typer.Exit(1)
    print_success(f"All requirements for {platform} are satisfied")


if __name__ == "__main__":
    app()
