"""Shared fixtures for nativebuild tests."""

import json
import os
import shutil
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from nativebuild.config.schemas import PluginSpec, Requirement
from nativebuild.core.build_project import BuildProject
from nativebuild.core.execution import ExecutionContext
from nativebuild.core.project import Project
from nativebuild.toolchain.base import (
    CommandOptions,
    RequirementsReport,
    Toolchain,
    ToolchainError,
)


class FakeToolchain(Toolchain):
    """Toolchain that records commands and mimics their effect on disk.

    Platforms are directories under platforms/, plugins are entries in
    plugins/fetch.json, just like a real build project.
    """

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.fail_on: set[str] = set()
        self.fail_after: int | None = None
        self.requirements_report: RequirementsReport = {}

    @property
    def name(self) -> str:
        return "fake"

    def _record(self, method: str, ctx: ExecutionContext, **kwargs: Any) -> None:
        if method in self.fail_on or (
            self.fail_after is not None and len(self.calls) >= self.fail_after
        ):
            raise ToolchainError(f"{method} failed")
        self.calls.append({"method": method, "cwd": os.getcwd(), "ctx": ctx, **kwargs})

    def commands(self, method: str | None = None) -> list[dict[str, Any]]:
        return [c for c in self.calls if method is None or c["method"] == method]

    async def create(self, path: Path, app_id: str, app_name: str, ctx: ExecutionContext) -> None:
        self._record("create", ctx, path=path, app_id=app_id, app_name=app_name)
        (path / "platforms").mkdir(parents=True)
        (path / "plugins").mkdir()

    async def platform(
        self,
        command: str,
        platforms: list[str],
        options: CommandOptions,
        ctx: ExecutionContext,
    ) -> None:
        self._record(f"platform {command}", ctx, platforms=list(platforms), options=options)
        root = Path(os.getcwd())
        for platform in platforms:
            platform_dir = root / "platforms" / platform
            if command == "add":
                platform_dir.mkdir(parents=True)
            elif command == "rm":
                shutil.rmtree(platform_dir)

    async def plugin(
        self,
        command: str,
        targets: list[str],
        options: CommandOptions,
        ctx: ExecutionContext,
    ) -> None:
        self._record(f"plugin {command}", ctx, targets=list(targets), options=options)
        fetch_path = Path(os.getcwd()) / "plugins" / "fetch.json"
        metadata = json.loads(fetch_path.read_text()) if fetch_path.exists() else {}
        if command == "add":
            name, source = fetch_source_for_target(targets[0])
            metadata[name] = {"source": source}
        else:
            for name in targets:
                metadata.pop(name, None)
        fetch_path.parent.mkdir(parents=True, exist_ok=True)
        fetch_path.write_text(json.dumps(metadata))

    async def requirements(
        self,
        platforms: list[str],
        options: CommandOptions,
        ctx: ExecutionContext,
    ) -> RequirementsReport:
        self._record("requirements", ctx, platforms=list(platforms), options=options)
        return self.requirements_report

    async def prepare(self, options: CommandOptions, ctx: ExecutionContext) -> None:
        self._record("prepare", ctx, options=options)

    async def build(self, options: CommandOptions, ctx: ExecutionContext) -> None:
        self._record("build", ctx, options=options)

    async def run(self, options: CommandOptions, ctx: ExecutionContext) -> None:
        self._record("run", ctx, options=options)


def fetch_source_for_target(target: str) -> tuple[str, dict[str, str]]:
    """Work out the fetch.json entry a plugin add target would produce."""
    if ".git#" in target:
        url, ref = target.split("#", 1)
        name = url.rstrip("/").rsplit("/", 1)[-1].removesuffix(".git")
        return name, {"type": "git", "url": url, "ref": ref}
    if "/" in target and not target.startswith("@"):
        return Path(target).name, {"type": "local", "path": target}
    if "@" in target[1:]:
        name = target[: target.index("@", 1)]
        return name, {"type": "registry", "id": target}
    return target, {"type": "registry", "id": f"{target}@1.0.0"}


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory."""
    path = Path(tempfile.mkdtemp(prefix="nativebuild_test_"))
    yield path.resolve()
    if path.exists():
        shutil.rmtree(path)


@pytest.fixture
def temp_project(temp_dir: Path) -> Path:
    """Create a temporary project directory."""
    project_dir = temp_dir / "my-app"
    project_dir.mkdir()
    return project_dir


@pytest.fixture
def initialized_project(temp_project: Path) -> Project:
    """Project with nativebuild.yaml initialized."""
    return Project.init(temp_project, app_name="My App", platforms=["android"])


@pytest.fixture
def project_with_plugins(initialized_project: Project) -> Project:
    """Project with a mix of plugin specifiers configured."""
    initialized_project.add_plugin("cordova-plugin-camera", "4.1.0")
    initialized_project.add_plugin(
        "cordova-plugin-facebook",
        PluginSpec(version="6.0.0", config={"APP_ID": "123"}),
    )
    initialized_project.save()
    return initialized_project


@pytest.fixture
def fake_toolchain() -> FakeToolchain:
    """A recording toolchain."""
    return FakeToolchain()


@pytest.fixture
def build_project(initialized_project: Project, fake_toolchain: FakeToolchain) -> BuildProject:
    """Build project created through the fake toolchain."""
    return BuildProject(initialized_project, fake_toolchain)


@pytest.fixture
def write_fetch_metadata() -> Callable[[Path, dict[str, Any]], Path]:
    """Write a plugins/fetch.json file into a build project."""

    def write(build_root: Path, entries: dict[str, Any]) -> Path:
        path = build_root / "plugins" / "fetch.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(entries))
        return path

    return write


@pytest.fixture
def ios_requirements() -> list[Requirement]:
    """A requirements report with one missing requirement."""
    return [
        Requirement(id="xcode", name="Xcode", installed=True),
        Requirement(id="ios-deploy", name="ios-deploy", installed=False),
        Requirement(
            id="cocoapods",
            name="CocoaPods",
            installed=False,
            metadata={"reason": "pod command not found"},
        ),
    ]
