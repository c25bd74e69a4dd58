# === NAVMAP v1 ===
# {
#   "module": "PropsAgent.PropertyLoad.loader",
#   "purpose": "Fetch, cache, parse, and merge property sources",
#   "sections": [
#     {
#       "id": "loadoutcome",
#       "name": "LoadOutcome",
#       "anchor": "class-loadoutcome",
#       "kind": "class"
#     },
#     {
#       "id": "propertyloader",
#       "name": "PropertyLoader",
#       "anchor": "class-propertyloader",
#       "kind": "class"
#     },
#     {
#       "id": "load-properties",
#       "name": "load_properties",
#       "anchor": "function-load-properties",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Fetch-then-cache-then-apply pipeline.

For each :class:`~PropsAgent.PropertyLoad.specs.SourceSpec` the loader:

1. derives the stable snapshot path from the location,
2. tries the fetch strategies in order and, if one yields a stream, writes a
   new snapshot beside the stable file and promotes it,
3. reads the stable snapshot whether or not the refresh worked,
4. parses it and merges the keys into the namespace, overwriting existing keys
   only for forced specs.

Every recoverable failure is logged and recorded on the returned
:class:`LoadOutcome`; a failing source contributes nothing and the next source
is processed normally. Fatal runtime conditions propagate.
"""

from __future__ import annotations

import logging
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

import httpx

from .cache import cache_path_for, promote_snapshot, read_snapshot_bytes, write_snapshot
from .errors import recover_or_raise
from .fetchers import FetchAttempt, FetchStrategy, default_strategies, describe_attempts, open_first
from .namespace import SYSTEM_PROPERTIES, ConfigNamespace
from .properties import parse_properties_bytes
from .settings import LoaderSettings, get_default_settings
from .specs import SourceSpec, parse_source_specs

LOGGER = logging.getLogger("PropsAgent.PropertyLoad.loader")

__all__ = ["LoadOutcome", "PropertyLoader", "load_properties"]


@dataclass
class LoadOutcome:
    """Report describing what a single source contributed.

    Attributes:
        spec: The processed spec.
        cache_path: Stable snapshot path, ``None`` for empty locations.
        fetched: ``True`` when a fresh snapshot was promoted.
        fetch_source: Name of the strategy that produced the stream.
        attempts: Every strategy attempt in order.
        cache_loaded: ``True`` when the stable snapshot was read and parsed.
        applied: Keys written to the namespace.
        skipped: Keys left alone because they already existed.
        error: Description of the last recovered failure.
    """

    spec: SourceSpec
    cache_path: Optional[Path] = None
    fetched: bool = False
    fetch_source: Optional[str] = None
    attempts: List[FetchAttempt] = field(default_factory=list)
    cache_loaded: bool = False
    applied: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def from_cache_only(self) -> bool:
        return self.cache_loaded and not self.fetched


class PropertyLoader:
    """Apply property sources to a :class:`ConfigNamespace`.

    Args:
        namespace: Target store; the process-wide :data:`SYSTEM_PROPERTIES`
            when omitted.
        settings: Loader settings; the memoised defaults when omitted.
        strategies: Ordered fetch strategies; the HTTP, ``file:`` URL, and bare
            path chain when omitted.
        client: HTTPX client for the default HTTP strategy.
    """

    def __init__(
        self,
        namespace: Optional[ConfigNamespace] = None,
        settings: Optional[LoaderSettings] = None,
        *,
        strategies: Optional[Iterable[FetchStrategy]] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.namespace = namespace if namespace is not None else SYSTEM_PROPERTIES
        self.settings = settings or get_default_settings()
        if strategies is None:
            self.strategies: List[FetchStrategy] = default_strategies(self.settings.http, client=client)
        else:
            self.strategies = list(strategies)

    def cache_path(self, location: str) -> Path:
        return cache_path_for(location, self.settings.cache_dir, self.settings.cache_suffix)

    def refresh(self, spec: SourceSpec, outcome: LoadOutcome) -> bool:
        """Fetch ``spec`` and promote a fresh snapshot; return ``True`` on success."""

        cache_path = outcome.cache_path or self.cache_path(spec.location)
        with ExitStack() as stack:
            opened, attempts = open_first(spec.location, self.strategies, stack)
            outcome.attempts = attempts
            if opened is None:
                outcome.error = f"no fetch strategy could open {spec.location} ({describe_attempts(attempts)})"
                LOGGER.warning(
                    "unable to fetch source; falling back to cached snapshot",
                    extra={"stage": "fetch", "location": spec.location, "cache": str(cache_path)},
                )
                return False
            outcome.fetch_source = opened.strategy
            try:
                temp_path = write_snapshot(opened.chunks, cache_path)
            except BaseException as exc:  # noqa: BLE001 - classified by recover_or_raise
                classified = recover_or_raise(
                    exc,
                    logger=LOGGER,
                    message=f"Unable to create cache file={cache_path}",
                    stage="cache",
                    location=spec.location,
                )
                outcome.error = classified.describe()
                return False
        try:
            promote_snapshot(temp_path, cache_path)
        except BaseException as exc:  # noqa: BLE001
            classified = recover_or_raise(
                exc,
                logger=LOGGER,
                message=f"Unable to promote cache file={cache_path}",
                stage="promote",
                location=spec.location,
            )
            outcome.error = classified.describe()
            return False
        outcome.fetched = True
        return True

    def read_cache(self, cache_path: Path, outcome: LoadOutcome) -> Optional[Dict[str, str]]:
        """Parse the stable snapshot, returning ``None`` when it cannot be read."""

        LOGGER.debug("reading properties from cache", extra={"stage": "read", "cache": str(cache_path)})
        try:
            data = read_snapshot_bytes(cache_path)
            table = parse_properties_bytes(data, self.settings.encoding)
        except BaseException as exc:  # noqa: BLE001
            classified = recover_or_raise(
                exc,
                logger=LOGGER,
                message=f"Unable to load file={cache_path}",
                stage="read",
                location=outcome.spec.location,
            )
            outcome.error = classified.describe()
            return None
        outcome.cache_loaded = True
        return table

    def merge(self, table: Mapping[str, str], force: bool, outcome: LoadOutcome) -> None:
        """Write ``table`` into the namespace honouring ``force``."""

        for key, value in table.items():
            if not force and self.namespace.get(key) is not None:
                outcome.skipped.append(key)
                continue
            LOGGER.debug(
                f"setting{' (forced)' if force else ''} property name={key}",
                extra={"stage": "merge", "key": key},
            )
            try:
                self.namespace.set(key, value)
            except BaseException as exc:  # noqa: BLE001
                classified = recover_or_raise(
                    exc,
                    logger=LOGGER,
                    message=f"Unable to set property name={key}",
                    stage="merge",
                    level=logging.WARNING,
                    key=key,
                )
                outcome.error = classified.describe()
                continue
            outcome.applied.append(key)

    def refresh_and_apply(self, spec: SourceSpec) -> LoadOutcome:
        """Refresh the snapshot for ``spec`` and merge its keys into the namespace."""

        outcome = LoadOutcome(spec=spec)
        if not spec.location:
            LOGGER.debug("skipping empty source location", extra={"stage": "parse"})
            return outcome
        outcome.cache_path = self.cache_path(spec.location)
        self.refresh(spec, outcome)
        table = self.read_cache(outcome.cache_path, outcome)
        if table is not None:
            self.merge(table, spec.force, outcome)
        LOGGER.info(
            f"applied {len(outcome.applied)} properties from {spec.location}",
            extra={
                "stage": "apply",
                "location": spec.location,
                "force": spec.force,
                "fetched": outcome.fetched,
                "fetch_source": outcome.fetch_source,
                "applied": len(outcome.applied),
                "skipped": len(outcome.skipped),
            },
        )
        return outcome

    def load(self, raw: Optional[str]) -> List[LoadOutcome]:
        """Parse ``raw`` and process every source strictly in order."""

        specs = parse_source_specs(
            raw,
            delimiter=self.settings.delimiter,
            force_marker=self.settings.force_marker,
        )
        return [self.refresh_and_apply(spec) for spec in specs]


def load_properties(
    raw: Optional[str],
    namespace: Optional[ConfigNamespace] = None,
    settings: Optional[LoaderSettings] = None,
    **kwargs,
) -> List[LoadOutcome]:
    """Convenience wrapper building a :class:`PropertyLoader` and running :meth:`PropertyLoader.load`."""

    return PropertyLoader(namespace, settings, **kwargs).load(raw)
