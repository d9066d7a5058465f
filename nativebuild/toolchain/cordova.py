"""Toolchain driving the Cordova command line interface."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from nativebuild.config.schemas import Requirement
from nativebuild.toolchain import register_toolchain
from nativebuild.toolchain.base import (
    CommandOptions,
    EventKind,
    PlatformCommand,
    PluginCommand,
    RequirementsReport,
    Toolchain,
    ToolchainError,
)

if TYPE_CHECKING:
    from nativebuild.core.execution import ExecutionContext

logger = logging.getLogger(__name__)


@register_toolchain("cordova")
class CordovaToolchain(Toolchain):
    """Runs the ``cordova`` executable as a subprocess.

    The executable is looked up on the PATH of the environment handed in
    through the ExecutionContext, so a toolchain binary directory
    prepended there takes precedence over the user's own install.
    Standard output is forwarded as "log" events and standard error as
    "warn" events while the command runs.
    """

    def __init__(self, executable: str = "cordova"):
        """Initialize the toolchain.

        Args:
            executable: Name or path of the cordova executable
        """
        self._executable = executable

    @property
    def name(self) -> str:
        return "cordova"

    @property
    def executable(self) -> str:
        return self._executable

    # =========================================================================
    # Commands
    # =========================================================================

    async def create(self, path: Path, app_id: str, app_name: str, ctx: ExecutionContext) -> None:
        await self._execute(["create", str(path), app_id, app_name], ctx)

    async def platform(
        self,
        command: PlatformCommand,
        platforms: list[str],
        options: CommandOptions,
        ctx: ExecutionContext,
    ) -> None:
        args = ["platform", command, *platforms, *self._common_flags(options)]
        await self._execute(args, ctx)

    async def plugin(
        self,
        command: PluginCommand,
        targets: list[str],
        options: CommandOptions,
        ctx: ExecutionContext,
    ) -> None:
        args = ["plugin", command, *targets]
        for key, value in options.variables.items():
            args.extend(["--variable", f"{key}={value}"])
        args.extend(self._common_flags(options))
        await self._execute(args, ctx)

    async def requirements(
        self,
        platforms: list[str],
        options: CommandOptions,
        ctx: ExecutionContext,
    ) -> RequirementsReport:
        # cordova exits non-zero when a requirement is missing, but still
        # prints the full report, so the exit code alone is not a failure.
        returncode, stdout, stderr = await self._execute(
            ["requirements", *platforms, "--json"], ctx, check=False
        )

        data = self._parse_json_report(stdout)
        if data is None:
            message = stderr.strip() or f"Could not read requirements report (exit code {returncode})"
            raise ToolchainError(message, returncode)

        return {platform: self._parse_platform_report(value) for platform, value in data.items()}

    async def prepare(self, options: CommandOptions, ctx: ExecutionContext) -> None:
        await self._execute(self._project_args("prepare", options), ctx)

    async def build(self, options: CommandOptions, ctx: ExecutionContext) -> None:
        await self._execute(self._project_args("build", options), ctx)

    async def run(self, options: CommandOptions, ctx: ExecutionContext) -> None:
        await self._execute(self._project_args("run", options), ctx)

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _common_flags(options: CommandOptions) -> list[str]:
        if options.verbose:
            return ["--verbose"]
        if options.silent:
            return ["--silent"]
        return []

    def _project_args(self, command: str, options: CommandOptions) -> list[str]:
        return [command, *options.platforms, *self._common_flags(options), *options.options]

    @staticmethod
    def _parse_json_report(stdout: str) -> dict[str, Any] | None:
        """Extract the JSON object from requirements output.

        Verbose runs may print log lines before the report, so parsing
        starts at the first opening brace.
        """
        start = stdout.find("{")
        if start == -1:
            return None
        try:
            data = json.loads(stdout[start:])
        except json.JSONDecodeError:
            return None
        return data if isinstance(data, dict) else None

    @staticmethod
    def _parse_platform_report(value: Any) -> list[Requirement] | ToolchainError:
        if isinstance(value, list):
            try:
                return [Requirement.model_validate(item) for item in value]
            except ValidationError as e:
                return ToolchainError(f"Malformed requirements report: {e}")
        if isinstance(value, dict) and "message" in value:
            return ToolchainError(str(value["message"]))
        return ToolchainError(str(value))

    async def _execute(
        self,
        args: list[str],
        ctx: ExecutionContext,
        check: bool = True,
    ) -> tuple[int, str, str]:
        """Run the cordova executable and wait for it to finish.

        Args:
            args: Arguments after the executable name
            ctx: Working directory and environment to run with
            check: Raise ToolchainError on a non-zero exit code

        Returns:
            Tuple of (returncode, stdout, stderr)

        Raises:
            ToolchainError: If the executable is missing or the command fails
        """
        command = [self._executable, *args]
        logger.debug("Running %s (cwd=%s)", " ".join(command), ctx.cwd)

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                cwd=str(ctx.cwd) if ctx.cwd else None,
                env=dict(ctx.env) if ctx.env is not None else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise ToolchainError(
                f"Could not find '{self._executable}'. Is it installed and on your PATH?"
            ) from e

        stdout_lines: list[str] = []
        stderr_lines: list[str] = []
        await asyncio.gather(
            self._pump(process.stdout, "log", stdout_lines),
            self._pump(process.stderr, "warn", stderr_lines),
        )
        returncode = await process.wait()

        stdout = "\n".join(stdout_lines)
        stderr = "\n".join(stderr_lines)

        if check and returncode != 0:
            message = stderr.strip() or f"{args[0]} failed with exit code {returncode}"
            raise ToolchainError(message, returncode)

        return returncode, stdout, stderr

    async def _pump(
        self,
        stream: asyncio.StreamReader | None,
        kind: EventKind,
        sink: list[str],
    ) -> None:
        if stream is None:
            return
        while True:
            line = await stream.readline()
            if not line:
                break
            text = line.decode("utf-8", errors="replace").rstrip("\r\n")
            sink.append(text)
            self.emit(kind, text)
