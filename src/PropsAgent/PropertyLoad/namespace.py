"""Configuration namespaces the loader merges properties into.

The loader never touches a hidden global: it receives a :class:`ConfigNamespace`
and uses only ``get`` (existence checks) and ``set``. Two process-wide
implementations are provided. :data:`SYSTEM_PROPERTIES` is an in-process store
that plays the role of a runtime's system properties, and
:class:`EnvironNamespace` targets ``os.environ`` so child processes inherit the
loaded values.
"""

from __future__ import annotations

import os
import threading
from typing import Dict, Iterator, MutableMapping, Optional, Protocol, runtime_checkable

__all__ = [
    "ConfigNamespace",
    "PropertyStore",
    "MappingNamespace",
    "EnvironNamespace",
    "SYSTEM_PROPERTIES",
]


@runtime_checkable
class ConfigNamespace(Protocol):
    """Minimal interface consumed by the loader."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class PropertyStore:
    """Thread-safe string-keyed property store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._lock = threading.Lock()
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def snapshot(self) -> Dict[str, str]:
        """Return a copy of the current contents."""

        with self._lock:
            return dict(self._values)

    def clear(self) -> None:
        with self._lock:
            self._values.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)

    def __repr__(self) -> str:
        return f"PropertyStore({len(self)} properties)"


class MappingNamespace:
    """Adapter exposing any mutable mapping as a :class:`ConfigNamespace`."""

    def __init__(self, mapping: MutableMapping[str, str]) -> None:
        self.mapping = mapping

    def get(self, key: str) -> Optional[str]:
        return self.mapping.get(key)

    def set(self, key: str, value: str) -> None:
        self.mapping[key] = value


class EnvironNamespace(MappingNamespace):
    """Namespace backed by the process environment."""

    def __init__(self) -> None:
        super().__init__(os.environ)


SYSTEM_PROPERTIES = PropertyStore()
