"""Build toolchains.

A project names its toolchain in the ``toolchain`` field of
nativebuild.yaml. Toolchain classes register themselves under that name
when their module is imported.
"""

from __future__ import annotations

import importlib
from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nativebuild.toolchain.base import Toolchain

_TOOLCHAINS: dict[str, type[Toolchain]] = {}

# Imported on first lookup so the CLI starts without loading every toolchain
_BUILTIN_MODULE = "nativebuild.toolchain.cordova"


def register_toolchain(name: str) -> Callable[[type[Toolchain]], type[Toolchain]]:
    """Class decorator registering a toolchain under ``name``."""

    def decorator(cls: type[Toolchain]) -> type[Toolchain]:
        _TOOLCHAINS[name] = cls
        return cls

    return decorator


def get_toolchain(name: str) -> Toolchain:
    """Instantiate the toolchain a project asks for.

    Args:
        name: Value of the project's ``toolchain`` setting

    Returns:
        A fresh toolchain instance

    Raises:
        ValueError: If no toolchain is registered under that name
    """
    importlib.import_module(_BUILTIN_MODULE)

    try:
        toolchain_class = _TOOLCHAINS[name]
    except KeyError:
        available = ", ".join(sorted(_TOOLCHAINS)) or "none"
        raise ValueError(f"Unknown toolchain: {name}. Available toolchains: {available}") from None
    return toolchain_class()


def list_toolchains() -> list[str]:
    importlib.import_module(_BUILTIN_MODULE)
    return sorted(_TOOLCHAINS)
