"""Configuration file parsing utilities."""

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from nativebuild.config.schemas import FetchMetadataEntry, ProjectConfig

CONFIG_FILENAME = "nativebuild.yaml"


class ConfigError(Exception):
    """Error loading or parsing configuration."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


def load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Parsed YAML as a dictionary

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    if not path.exists():
        raise ConfigError(f"File not found: {path}", path)

    try:
        with open(path, encoding="utf-8") as f:
            result = yaml.safe_load(f)
            if result is None:
                return {}
            if not isinstance(result, dict):
                raise ConfigError(f"YAML file must contain a mapping: {path}", path)
            return result
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}", path) from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}", path) from e


def save_yaml(path: Path, data: dict[str, Any]) -> None:
    """Save data to a YAML file.

    Args:
        path: Path to write to
        data: Data to serialize
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)


def load_project_config(project_root: Path) -> ProjectConfig:
    """Load project configuration from nativebuild.yaml.

    Args:
        project_root: Path to the project root directory

    Returns:
        Parsed ProjectConfig

    Raises:
        ConfigError: If the file is missing or invalid
    """
    config_path = project_root / CONFIG_FILENAME
    data = load_yaml(config_path)

    try:
        return ProjectConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid project config: {e}", config_path) from e


def save_project_config(project_root: Path, config: ProjectConfig) -> None:
    """Save project configuration to nativebuild.yaml.

    Args:
        project_root: Path to the project root directory
        config: ProjectConfig to save
    """
    config_path = project_root / CONFIG_FILENAME
    save_yaml(config_path, config.model_dump(exclude_defaults=True))


def load_fetch_metadata(path: Path) -> dict[str, FetchMetadataEntry]:
    """Load the toolchain's plugin fetch metadata.

    A missing file means nothing has been installed yet. Unreadable or
    malformed metadata is not a configuration problem of the user, so
    those errors propagate as-is.

    Args:
        path: Path to plugins/fetch.json

    Returns:
        Mapping of plugin name to its fetch entry
    """
    if not path.exists():
        return {}

    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    return {name: FetchMetadataEntry.model_validate(entry) for name, entry in data.items()}


def find_project_root(start_path: Path | None = None) -> Path | None:
    """Find the project root by looking for nativebuild.yaml.

    Args:
        start_path: Directory to start searching from (defaults to cwd)

    Returns:
        Path to project root, or None if not found
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()
    while current != current.parent:
        if (current / CONFIG_FILENAME).exists():
            return current
        current = current.parent

    # Check root
    if (current / CONFIG_FILENAME).exists():
        return current

    return None
