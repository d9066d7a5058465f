"""Scoped execution of external toolchain commands.

Toolchain commands are coroutines. Each one is run to completion here,
inside a scope that fixes the working directory and environment the
toolchain observes. The environment is never written to os.environ; it
travels in the ExecutionContext handed to the command. The process
working directory is changed for the duration of the command and always
restored afterwards, since it is shared by everything else running in
the process.
"""

import asyncio
import logging
import os
import threading
from collections.abc import Awaitable, Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypeVar

from nativebuild.toolchain.base import ToolchainError
from nativebuild.utils.output import print_error, print_hint

logger = logging.getLogger(__name__)

T = TypeVar("T")

VERBOSE_HINT = "Try running again with the --verbose option to help diagnose the issue."

# Only one override of the process working directory may be active at a time.
_scope_lock = threading.Lock()


class ExitWithCode(Exception):
    """Request to stop the current invocation with an exit code.

    Raised after the failure has already been reported to the user, so
    callers should exit quietly without a traceback.
    """

    def __init__(self, code: int = 1):
        self.code = code
        super().__init__(f"Exit with code {code}")


@dataclass(frozen=True)
class ExecutionContext:
    """Working directory and environment for one toolchain command."""

    cwd: Path | None
    env: Mapping[str, str] = field(default_factory=dict)


@contextmanager
def execution_scope(
    cwd: Path | None,
    env: Mapping[str, str],
) -> Iterator[ExecutionContext]:
    """Scope the process working directory around a toolchain command.

    Args:
        cwd: Directory to switch to, or None to stay where we are
        env: Environment the toolchain command should run with

    Yields:
        ExecutionContext describing the scope
    """
    with _scope_lock:
        previous_cwd = os.getcwd()
        if cwd is not None:
            logger.debug("Changing directory to %s", cwd)
            os.chdir(cwd)
        try:
            yield ExecutionContext(cwd=Path(cwd) if cwd is not None else Path(previous_cwd), env=env)
        finally:
            os.chdir(previous_cwd)


def run_external(
    action: Callable[[ExecutionContext], Awaitable[T]],
    env: Mapping[str, str],
    cwd: Path | None,
    toolchain_name: str = "toolchain",
) -> T:
    """Run a toolchain action to completion inside an execution scope.

    Args:
        action: Coroutine function receiving the ExecutionContext
        env: Environment for the toolchain
        cwd: Working directory, or None to keep the current one
        toolchain_name: Prefix for reported toolchain errors

    Returns:
        Whatever the action returns

    Raises:
        ExitWithCode: If the toolchain reported an error
    """
    with execution_scope(cwd, env) as ctx:
        try:
            return asyncio.run(_await(action(ctx)))
        except ToolchainError as e:
            print_error(f"{toolchain_name}: {e}")
            print_hint(VERBOSE_HINT)
            raise ExitWithCode(1) from e


async def _await(awaitable: Awaitable[T]) -> T:
    return await awaitable
