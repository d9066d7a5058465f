"""Integration tests for CLI commands."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from typer.testing import CliRunner

from nativebuild import __version__
from nativebuild.cli.main import app, parse_plugin_argument
from nativebuild.config.schemas import Requirement
from nativebuild.core.project import Project


@pytest.fixture
def runner():
    """Get a CLI test runner."""
    return CliRunner()


@pytest.fixture
def toolchain(fake_toolchain):
    """Route every CLI command to the fake toolchain."""
    with patch("nativebuild.cli.main.get_toolchain", return_value=fake_toolchain):
        yield fake_toolchain


def read_config(project: Project) -> dict:
    return yaml.safe_load((project.root / "nativebuild.yaml").read_text())


def installed_plugins(project: Project) -> dict:
    fetch_path = project.build_root / "plugins" / "fetch.json"
    return json.loads(fetch_path.read_text()) if fetch_path.exists() else {}


class TestVersionCommand:
    """Tests for 'nativebuild version' command."""

    def test_prints_version(self, runner: CliRunner):
        """Prints the package version."""
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output


class TestInitCommand:
    """Tests for 'nativebuild init' command."""

    def test_init_creates_project(self, runner: CliRunner, temp_dir: Path):
        """Init command creates nativebuild.yaml."""
        result = runner.invoke(app, ["init", "--path", str(temp_dir)])

        assert result.exit_code == 0
        config = yaml.safe_load((temp_dir / "nativebuild.yaml").read_text())
        assert config["app_name"] == temp_dir.name

    def test_init_with_name_and_platforms(self, runner: CliRunner, temp_dir: Path):
        """Name and platforms are written to the config."""
        result = runner.invoke(
            app,
            ["init", "--name", "Demo", "-P", "ios", "-P", "android", "--path", str(temp_dir)],
        )

        assert result.exit_code == 0
        config = yaml.safe_load((temp_dir / "nativebuild.yaml").read_text())
        assert config["app_name"] == "Demo"
        assert config["platforms"] == ["ios", "android"]

    def test_init_does_not_create_build_project(self, runner: CliRunner, temp_dir: Path):
        """The build project waits for the first sync."""
        runner.invoke(app, ["init", "--path", str(temp_dir)])

        assert not (temp_dir / ".nativebuild").exists()

    def test_init_fails_for_existing_project(self, runner: CliRunner, initialized_project):
        """Init fails if project already exists."""
        result = runner.invoke(app, ["init", "--path", str(initialized_project.root)])

        assert result.exit_code == 1
        assert "already initialized" in result.output

    def test_init_rejects_unknown_platform(self, runner: CliRunner, temp_dir: Path):
        """Unknown platforms are refused before anything is written."""
        result = runner.invoke(app, ["init", "-P", "symbian", "--path", str(temp_dir)])

        assert result.exit_code == 1
        assert "Unknown platform" in result.output
        assert not (temp_dir / "nativebuild.yaml").exists()


class TestPlatformCommands:
    """Tests for 'nativebuild add-platform' and 'remove-platform'."""

    def test_add_platform_syncs(self, runner: CliRunner, initialized_project, toolchain):
        """Adding a platform updates the config and the build project."""
        result = runner.invoke(app, ["add-platform", "ios", "--path", str(initialized_project.root)])

        assert result.exit_code == 0
        assert read_config(initialized_project)["platforms"] == ["android", "ios"]
        added = [c["platforms"] for c in toolchain.commands("platform add")]
        assert added == [["android"], ["ios"]]

    def test_add_platform_no_sync(self, runner: CliRunner, initialized_project, toolchain):
        """--no-sync only touches the config."""
        result = runner.invoke(
            app, ["add-platform", "web", "--no-sync", "--path", str(initialized_project.root)]
        )

        assert result.exit_code == 0
        assert toolchain.calls == []

    def test_add_existing_platform_warns(self, runner: CliRunner, initialized_project, toolchain):
        """Adding a platform twice only warns."""
        result = runner.invoke(
            app, ["add-platform", "android", "--no-sync", "--path", str(initialized_project.root)]
        )

        assert result.exit_code == 0
        assert "already added" in result.output

    def test_remove_platform(self, runner: CliRunner, initialized_project, toolchain):
        """Removing a platform removes it from the build project too."""
        root = str(initialized_project.root)
        runner.invoke(app, ["sync", "--path", root])

        result = runner.invoke(app, ["remove-platform", "android", "--path", root])

        assert result.exit_code == 0
        assert toolchain.commands("platform rm")[0]["platforms"] == ["android"]
        assert not (initialized_project.build_root / "platforms" / "android").exists()

    def test_failed_platform_command_exits(self, runner: CliRunner, initialized_project, toolchain):
        """A toolchain failure exits with code 1 and a hint."""
        toolchain.fail_on.add("platform add")

        result = runner.invoke(app, ["add-platform", "ios", "--path", str(initialized_project.root)])

        assert result.exit_code == 1
        assert "fake: platform add failed" in result.output
        assert "--verbose" in result.output


class TestPluginCommands:
    """Tests for 'nativebuild add-plugin' and 'remove-plugin'."""

    def test_add_plugin_with_version(self, runner: CliRunner, initialized_project, toolchain):
        """name@version is stored and installed."""
        result = runner.invoke(
            app, ["add-plugin", "cordova-plugin-camera@4.1.0", "--path", str(initialized_project.root)]
        )

        assert result.exit_code == 0
        assert read_config(initialized_project)["plugins"] == {"cordova-plugin-camera": "4.1.0"}
        assert "cordova-plugin-camera" in installed_plugins(initialized_project)

    def test_add_plugin_with_variables(self, runner: CliRunner, initialized_project, toolchain):
        """Variables are stored as plugin config and passed on install."""
        result = runner.invoke(
            app,
            [
                "add-plugin",
                "cordova-plugin-facebook@6.0.0",
                "--variable",
                "APP_ID=123",
                "--path",
                str(initialized_project.root),
            ],
        )

        assert result.exit_code == 0
        assert read_config(initialized_project)["plugins"]["cordova-plugin-facebook"] == {
            "version": "6.0.0",
            "config": {"APP_ID": "123"},
        }
        assert toolchain.commands("plugin add")[0]["options"].variables == {"APP_ID": "123"}

    def test_add_plugin_bad_variable(self, runner: CliRunner, initialized_project, toolchain):
        """Variables must be KEY=VALUE."""
        result = runner.invoke(
            app,
            ["add-plugin", "x", "--variable", "oops", "--path", str(initialized_project.root)],
        )

        assert result.exit_code == 1
        assert "KEY=VALUE" in result.output

    def test_add_plugin_unsupported_url(self, runner: CliRunner, initialized_project, toolchain):
        """Unsupported URLs are reported as configuration errors."""
        url = "https://example.com/92fe99b7248075318f6446b288995d4381d24cd2.tgz"

        result = runner.invoke(
            app, ["add-plugin", f"bad@{url}", "--path", str(initialized_project.root)]
        )

        assert result.exit_code == 1
        assert "no longer supported" in result.output
        assert toolchain.commands("plugin add") == []
        assert "bad" not in (read_config(initialized_project).get("plugins") or {})

    def test_add_plugin_unsupported_url_no_sync(
        self, runner: CliRunner, initialized_project, toolchain
    ):
        """Unsupported URLs are refused even when not syncing."""
        url = "https://example.com/92fe99b7248075318f6446b288995d4381d24cd2.tgz"

        result = runner.invoke(
            app, ["add-plugin", f"bad@{url}", "--no-sync", "--path", str(initialized_project.root)]
        )

        assert result.exit_code == 1
        assert "Added" not in result.output
        assert Project.load(initialized_project.root).plugins == {}

    def test_remove_plugin_reinstalls_rest(self, runner: CliRunner, project_with_plugins, toolchain):
        """Removing a plugin reinstalls the remaining ones."""
        root = str(project_with_plugins.root)
        runner.invoke(app, ["sync", "--path", root])

        result = runner.invoke(app, ["remove-plugin", "cordova-plugin-facebook", "--path", root])

        assert result.exit_code == 0
        assert list(installed_plugins(project_with_plugins)) == ["cordova-plugin-camera"]

    def test_remove_unknown_plugin(self, runner: CliRunner, initialized_project, toolchain):
        """Removing a plugin that isn't configured only warns."""
        result = runner.invoke(
            app, ["remove-plugin", "missing", "--path", str(initialized_project.root)]
        )

        assert result.exit_code == 0
        assert "Plugin not found" in result.output
        assert toolchain.calls == []


class TestSyncCommand:
    """Tests for 'nativebuild sync' command."""

    def test_sync_creates_and_populates(self, runner: CliRunner, project_with_plugins, toolchain):
        """The first sync creates the build project and installs everything."""
        result = runner.invoke(app, ["sync", "--path", str(project_with_plugins.root)])

        assert result.exit_code == 0
        assert "up to date" in result.output
        assert [c["method"] for c in toolchain.calls] == [
            "create",
            "platform add",
            "plugin add",
            "plugin add",
        ]

    def test_second_sync_is_noop(self, runner: CliRunner, project_with_plugins, toolchain):
        """Syncing an up to date build project runs no commands."""
        root = str(project_with_plugins.root)
        runner.invoke(app, ["sync", "--path", root])
        count = len(toolchain.calls)

        result = runner.invoke(app, ["sync", "--path", root])

        assert result.exit_code == 0
        assert len(toolchain.calls) == count

    def test_sync_without_project(self, runner: CliRunner, temp_dir: Path):
        """Sync outside a project fails with a hint."""
        result = runner.invoke(app, ["sync", "--path", str(temp_dir)])

        assert result.exit_code == 1
        assert "nativebuild init" in result.output

    def test_sync_with_unknown_toolchain(self, runner: CliRunner, temp_dir: Path):
        """An unknown toolchain name fails cleanly."""
        (temp_dir / "nativebuild.yaml").write_text("toolchain: capacitor\n")

        result = runner.invoke(app, ["sync", "--path", str(temp_dir)])

        assert result.exit_code == 1
        assert "Unknown toolchain" in result.output


class TestListCommand:
    """Tests for 'nativebuild list' command."""

    def test_list_before_sync(self, runner: CliRunner, project_with_plugins, toolchain):
        """Listing never creates the build project."""
        result = runner.invoke(app, ["list", "--path", str(project_with_plugins.root)])

        assert result.exit_code == 0
        assert "cordova-plugin-camera" in result.output
        assert "not created yet" in result.output
        assert not project_with_plugins.build_root.exists()
        assert toolchain.calls == []

    def test_list_after_sync(self, runner: CliRunner, project_with_plugins, toolchain):
        """Installed versions are shown after a sync."""
        root = str(project_with_plugins.root)
        runner.invoke(app, ["sync", "--path", root])

        result = runner.invoke(app, ["list", "--path", root])

        assert result.exit_code == 0
        assert "6.0.0" in result.output
        assert "not created yet" not in result.output


class TestBuildCommands:
    """Tests for 'nativebuild prepare', 'build', 'run' and 'check'."""

    def test_prepare(self, runner: CliRunner, initialized_project, toolchain):
        """Prepare syncs first, then prepares."""
        result = runner.invoke(app, ["prepare", "android", "--path", str(initialized_project.root)])

        assert result.exit_code == 0
        assert [c["method"] for c in toolchain.calls][-1] == "prepare"

    def test_build_with_options(self, runner: CliRunner, initialized_project, toolchain):
        """Options after -- go to the toolchain."""
        result = runner.invoke(
            app,
            ["build", "android", "--path", str(initialized_project.root), "--", "--release"],
        )

        assert result.exit_code == 0
        assert toolchain.commands("build")[0]["options"].options == ["--release"]

    def test_build_unknown_platform(self, runner: CliRunner, initialized_project, toolchain):
        """Unknown platforms are rejected."""
        result = runner.invoke(app, ["build", "symbian", "--path", str(initialized_project.root)])

        assert result.exit_code == 1
        assert toolchain.calls == []

    def test_run_on_device(self, runner: CliRunner, initialized_project, toolchain):
        """Run checks requirements, then runs on the device."""
        toolchain.requirements_report = {
            "android": [Requirement(id="java", name="Java JDK", installed=True)]
        }

        result = runner.invoke(
            app, ["run", "android", "--device", "--path", str(initialized_project.root)]
        )

        assert result.exit_code == 0
        assert toolchain.commands("run")[0]["options"].options == ["--device"]

    def test_run_stops_on_missing_requirements(
        self, runner: CliRunner, initialized_project, toolchain
    ):
        """Unsatisfied requirements stop the run."""
        toolchain.requirements_report = {
            "android": [Requirement(id="gradle", name="Gradle", installed=False)]
        }

        result = runner.invoke(app, ["run", "android", "--path", str(initialized_project.root)])

        assert result.exit_code == 1
        assert "Gradle" in result.output
        assert toolchain.commands("run") == []

    def test_check(self, runner: CliRunner, initialized_project, toolchain):
        """Check reports a missing platform without syncing."""
        result = runner.invoke(app, ["check", "android", "--path", str(initialized_project.root)])

        assert result.exit_code == 1
        assert "add-platform android" in result.output
        assert toolchain.commands("platform add") == []


class TestParsePluginArgument:
    """Tests for parse_plugin_argument function."""

    @pytest.mark.parametrize(
        "argument,expected",
        [
            ("cordova-plugin-camera", ("cordova-plugin-camera", None)),
            ("cordova-plugin-camera@4.1.0", ("cordova-plugin-camera", "4.1.0")),
            ("@scope/plugin@1.0.0", ("@scope/plugin", "1.0.0")),
            ("@scope/plugin", ("@scope/plugin", None)),
            ("plugin@", ("plugin", None)),
            (
                "plugin@git@github.com:org/plugin.git",
                ("plugin", "git@github.com:org/plugin.git"),
            ),
        ],
    )
    def test_parses(self, argument, expected):
        """Name and version are split at the first @ after the start."""
        assert parse_plugin_argument(argument) == expected
