"""Project model representing an app managed by nativebuild."""

from pathlib import Path

from nativebuild.config.parser import (
    CONFIG_FILENAME,
    find_project_root,
    load_project_config,
    save_project_config,
)
from nativebuild.config.schemas import PluginSpec, ProjectConfig


class Project:
    """Represents the source application project.

    A project is defined by its nativebuild.yaml configuration file. It is
    the source of the desired platform and plugin state; the generated
    build project lives underneath it in ``build_dir``.
    """

    def __init__(self, root: Path, config: ProjectConfig):
        """Initialize a Project.

        Args:
            root: Path to the project root directory
            config: Parsed project configuration
        """
        self._root = root.resolve()
        self._config = config

    @classmethod
    def load(cls, path: Path | None = None) -> "Project":
        """Load a project from disk.

        Args:
            path: Path to the project root, or None to search from cwd

        Returns:
            Loaded Project instance

        Raises:
            FileNotFoundError: If no project is found
        """
        if path is None:
            path = find_project_root()
            if path is None:
                raise FileNotFoundError(
                    f"No {CONFIG_FILENAME} found in current directory or any parent directory"
                )
        else:
            path = path.resolve()
            if not (path / CONFIG_FILENAME).exists():
                raise FileNotFoundError(f"No {CONFIG_FILENAME} found in {path}")

        config = load_project_config(path)
        return cls(path, config)

    @classmethod
    def init(
        cls,
        path: Path,
        app_name: str | None = None,
        platforms: list[str] | None = None,
    ) -> "Project":
        """Initialize a new project.

        Args:
            path: Path to the project root directory
            app_name: Optional application name (defaults to directory name)
            platforms: Optional initial platforms

        Returns:
            New Project instance

        Raises:
            FileExistsError: If nativebuild.yaml already exists
        """
        path = path.resolve()
        config_path = path / CONFIG_FILENAME

        if config_path.exists():
            raise FileExistsError(f"Project already initialized: {config_path}")

        config = ProjectConfig(
            app_name=app_name or path.name,
            platforms=platforms or [],
        )

        project = cls(path, config)
        project.save()
        return project

    def save(self) -> None:
        """Save the project configuration to disk."""
        save_project_config(self._root, self._config)

    @property
    def root(self) -> Path:
        """Get the project root directory."""
        return self._root

    @property
    def build_root(self) -> Path:
        """Get the root of the generated build project."""
        return self._root / self._config.build_dir

    @property
    def app_name(self) -> str:
        """Get the application display name."""
        return self._config.app_name or self._root.name

    @property
    def toolchain(self) -> str:
        return self._config.toolchain

    @property
    def config(self) -> ProjectConfig:
        """Get the underlying configuration."""
        return self._config

    @property
    def platforms(self) -> list[str]:
        """Get the desired platforms."""
        return list(self._config.platforms)

    @property
    def extra_paths(self) -> list[str]:
        """Get extra executable search paths, resolved against the root."""
        return [str(self._root / p) for p in self._config.extra_paths]

    @property
    def plugins(self) -> dict[str, str | None]:
        """Get the desired plugins as a name to raw version specifier map."""
        return {name: self.get_plugin_spec(name).version for name in self._config.plugins}

    @property
    def plugins_configuration(self) -> dict[str, dict[str, str]]:
        """Get per-plugin configuration for plugins that declare any."""
        result = {}
        for name in self._config.plugins:
            config = self.get_plugin_spec(name).config
            if config:
                result[name] = dict(config)
        return result

    def add_platform(self, platform: str) -> bool:
        """Add a platform to the desired set.

        Returns:
            True if the platform was added, False if it was already present
        """
        if platform in self._config.platforms:
            return False
        self._config.platforms.append(platform)
        return True

    def remove_platform(self, platform: str) -> bool:
        """Remove a platform from the desired set.

        Returns:
            True if the platform was removed, False if it wasn't present
        """
        if platform not in self._config.platforms:
            return False
        self._config.platforms.remove(platform)
        return True

    def add_plugin(self, name: str, spec: str | PluginSpec | None) -> None:
        """Add or update a plugin specification.

        Args:
            name: Plugin name
            spec: Version specifier or PluginSpec
        """
        self._config.plugins[name] = spec

    def remove_plugin(self, name: str) -> bool:
        """Remove a plugin specification.

        Args:
            name: Plugin name to remove

        Returns:
            True if the plugin was removed, False if it wasn't present
        """
        if name in self._config.plugins:
            del self._config.plugins[name]
            return True
        return False

    def get_plugin_spec(self, name: str) -> PluginSpec:
        """Get the specification for a plugin.

        Args:
            name: Plugin name

        Returns:
            PluginSpec (empty for unknown plugins or bare entries)
        """
        spec = self._config.plugins.get(name)
        if spec is None:
            return PluginSpec()
        if isinstance(spec, str):
            return PluginSpec(version=spec)
        return spec

    def __repr__(self) -> str:
        return f"Project(root={self._root!r}, app_name={self.app_name!r})"
