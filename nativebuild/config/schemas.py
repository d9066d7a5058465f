"""Pydantic schemas for nativebuild configuration and toolchain metadata.

This module defines the data models for:
- nativebuild.yaml (project configuration)
- plugins/fetch.json (plugin fetch metadata written by the toolchain)
- requirement reports returned by the toolchain
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

# =============================================================================
# Common Types
# =============================================================================

PlatformName = Literal["android", "ios", "web"]
PluginSourceType = Literal["registry", "git", "local"]

# The fixed universe of platforms this tool manages. Installed platforms
# outside this set are left alone during synchronization.
AVAILABLE_PLATFORMS: tuple[str, ...] = ("android", "ios", "web")

PLATFORM_DISPLAY_NAMES: dict[str, str] = {
    "android": "Android",
    "ios": "iOS",
    "web": "Web",
}


def display_name_for_platform(platform: str) -> str:
    """Get the human readable name for a platform."""
    return PLATFORM_DISPLAY_NAMES.get(platform, platform)


# =============================================================================
# Plugin Spec (within nativebuild.yaml)
# =============================================================================


def _stringify_version(value: Any) -> Any:
    # Unquoted YAML versions like 4.1 or 5 arrive as numbers
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class PluginSpec(BaseModel):
    """Plugin specification in project configuration.

    The version is a raw specifier: a registry version, a git URL, a legacy
    tarball URL carrying a commit SHA, or a file:// path. The config bag is
    passed to the toolchain as install-time variables.
    """

    version: str | None = None
    config: dict[str, str] = Field(default_factory=dict)

    @field_validator("version", mode="before")
    @classmethod
    def stringify_version(cls, v: Any) -> Any:
        return _stringify_version(v)

    @field_validator("config", mode="before")
    @classmethod
    def stringify_config(cls, v: Any) -> Any:
        """Coerce scalar config values (numbers, booleans) to strings."""
        if isinstance(v, dict):
            return {str(key): str(value) for key, value in v.items()}
        return v


# =============================================================================
# Project Configuration (nativebuild.yaml)
# =============================================================================


class ProjectConfig(BaseModel):
    """Project configuration (nativebuild.yaml) schema."""

    app_name: str | None = None
    toolchain: str = "cordova"
    build_dir: str = ".nativebuild/build"
    platforms: list[PlatformName] = Field(default_factory=list)
    plugins: dict[str, str | PluginSpec | None] = Field(default_factory=dict)
    extra_paths: list[str] = Field(default_factory=list)

    @field_validator("platforms")
    @classmethod
    def dedupe_platforms(cls, v: list[str]) -> list[str]:
        """Drop repeated platforms while keeping the declared order."""
        return list(dict.fromkeys(v))

    @field_validator("plugins", mode="before")
    @classmethod
    def stringify_plugin_versions(cls, v: Any) -> Any:
        """Accept numeric plugin versions written without quotes."""
        if isinstance(v, dict):
            return {name: _stringify_version(spec) for name, spec in v.items()}
        return v

    @model_validator(mode="after")
    def validate_build_dir(self) -> "ProjectConfig":
        """The build directory must not be the project root itself."""
        if self.build_dir.strip() in ("", "."):
            raise ValueError("build_dir must name a subdirectory of the project")
        return self


# =============================================================================
# Plugin Fetch Metadata (plugins/fetch.json)
# =============================================================================


class PluginSource(BaseModel):
    """Where the toolchain fetched an installed plugin from."""

    type: PluginSourceType
    id: str | None = None  # registry: "name@version"
    url: str | None = None  # git
    ref: str | None = None  # git
    path: str | None = None  # local


class FetchMetadataEntry(BaseModel):
    """A single plugin entry in fetch.json."""

    source: PluginSource
    is_top_level: bool = True
    variables: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Toolchain Requirements
# =============================================================================


class RequirementMetadata(BaseModel):
    """Extra detail attached to a requirement check."""

    version: str | None = None
    reason: str | None = None


class Requirement(BaseModel):
    """A single platform requirement reported by the toolchain."""

    id: str
    name: str
    installed: bool = False
    metadata: RequirementMetadata = Field(default_factory=RequirementMetadata)
