"""Archive sources for tagdeps.

This module provides the source registration system. Each source kind
(currently only "github") is a SourceClient subclass registered under its
kind name, so new kinds plug in without changes to the installer.
"""

from __future__ import annotations

import importlib
from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tagdeps.sources.base import SourceClient

_SOURCES: dict[str, type[SourceClient]] = {}
_LOADED = False

# Known source modules - add new sources here
_SOURCE_MODULES = [
    "tagdeps.sources.github",
]


def register_source(
    kind: str,
) -> Callable[[type[SourceClient]], type[SourceClient]]:
    """Decorator for source registration.

    Usage:
        @register_source("github")
        class GitHubSource(SourceClient):
            ...
    """

    def decorator(cls: type[SourceClient]) -> type[SourceClient]:
        _SOURCES[kind] = cls
        return cls

    return decorator


def _load_sources() -> None:
    """Load all source modules to trigger registration."""
    global _LOADED
    if _LOADED:
        return

    for module_name in _SOURCE_MODULES:
        importlib.import_module(module_name)

    _LOADED = True


def get_source_class(kind: str) -> type[SourceClient] | None:
    """Get the registered client class for a source kind, if any."""
    _load_sources()
    return _SOURCES.get(kind)


def list_sources() -> list[str]:
    """List all registered source kinds."""
    _load_sources()
    return list(_SOURCES.keys())
