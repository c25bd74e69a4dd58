# === NAVMAP v1 ===
# {
#   "module": "PropsAgent.PropertyLoad",
#   "purpose": "Package initialization for PropsAgent.PropertyLoad",
#   "sections": [
#     {
#       "id": "getattr",
#       "name": "__getattr__",
#       "anchor": "function-getattr",
#       "kind": "function"
#     },
#     {
#       "id": "dir",
#       "name": "__dir__",
#       "anchor": "function-dir",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Public API for the PropsAgent property loader.

This facade exposes the start-up pipeline that fetches flat key/value
properties from URLs or files, keeps a timestamped local snapshot of every
source, and merges the snapshot into a process-wide configuration namespace.
Exports are imported lazily so that ``import PropsAgent.PropertyLoad`` stays
cheap inside start-up hooks.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any, Dict, Tuple

__version__ = "1.0.0"

_EXPORTS: Dict[str, Tuple[str, str]] = {
    "SourceSpec": (".specs", "SourceSpec"),
    "parse_source_specs": (".specs", "parse_source_specs"),
    "PropertyLoader": (".loader", "PropertyLoader"),
    "LoadOutcome": (".loader", "LoadOutcome"),
    "load_properties": (".loader", "load_properties"),
    "ConfigNamespace": (".namespace", "ConfigNamespace"),
    "PropertyStore": (".namespace", "PropertyStore"),
    "MappingNamespace": (".namespace", "MappingNamespace"),
    "EnvironNamespace": (".namespace", "EnvironNamespace"),
    "SYSTEM_PROPERTIES": (".namespace", "SYSTEM_PROPERTIES"),
    "LoaderSettings": (".settings", "LoaderSettings"),
    "load_settings": (".settings", "load_settings"),
    "get_default_settings": (".settings", "get_default_settings"),
    "PropertyLoadError": (".errors", "PropertyLoadError"),
    "FetchFailure": (".errors", "FetchFailure"),
    "CachePromotionFailure": (".errors", "CachePromotionFailure"),
    "CacheReadFailure": (".errors", "CacheReadFailure"),
    "ConfigError": (".errors", "ConfigError"),
    "premain": (".hook", "premain"),
    "agentmain": (".hook", "agentmain"),
}

__all__ = [*_EXPORTS, "__version__"]

if TYPE_CHECKING:  # pragma: no cover - import for static analysis only
    from .errors import (
        CachePromotionFailure,
        CacheReadFailure,
        ConfigError,
        FetchFailure,
        PropertyLoadError,
    )
    from .hook import agentmain, premain
    from .loader import LoadOutcome, PropertyLoader, load_properties
    from .namespace import (
        SYSTEM_PROPERTIES,
        ConfigNamespace,
        EnvironNamespace,
        MappingNamespace,
        PropertyStore,
    )
    from .settings import LoaderSettings, get_default_settings, load_settings
    from .specs import SourceSpec, parse_source_specs


def __getattr__(name: str) -> Any:
    """Lazily import API exports on first access."""

    target = _EXPORTS.get(name)
    if target is None:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
    module = import_module(target[0], __name__)
    value = getattr(module, target[1])
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    """Expose lazily-populated attributes in ``dir()`` results."""

    return sorted(set(globals()) | set(__all__))
