"""Lazy loading of optional third-party dependencies."""

from __future__ import annotations

import importlib
from types import ModuleType

from gesture_liveness.exceptions import DependencyError

__all__ = ["import_optional"]


def import_optional(module_name: str, *, extra: str) -> ModuleType:
    """Import an optional dependency or explain which extra provides it.

    :raises DependencyError:
        If the module is not installed.
    """
    try:
        return importlib.import_module(module_name)
    except ModuleNotFoundError as exc:
        raise DependencyError(
            f"{module_name} is not installed. Install with: pip install gesture-liveness[{extra}]"
        ) from exc
