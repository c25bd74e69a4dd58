# === NAVMAP v1 ===
# {
#   "module": "PropsAgent.PropertyLoad.fetchers",
#   "purpose": "Ordered fetch strategies for property sources",
#   "sections": [
#     {
#       "id": "fetchattempt",
#       "name": "FetchAttempt",
#       "anchor": "class-fetchattempt",
#       "kind": "class"
#     },
#     {
#       "id": "openedsource",
#       "name": "OpenedSource",
#       "anchor": "class-openedsource",
#       "kind": "class"
#     },
#     {
#       "id": "fetchstrategy",
#       "name": "FetchStrategy",
#       "anchor": "class-fetchstrategy",
#       "kind": "class"
#     },
#     {
#       "id": "httpfetcher",
#       "name": "HttpFetcher",
#       "anchor": "class-httpfetcher",
#       "kind": "class"
#     },
#     {
#       "id": "fileurlfetcher",
#       "name": "FileUrlFetcher",
#       "anchor": "class-fileurlfetcher",
#       "kind": "class"
#     },
#     {
#       "id": "pathfetcher",
#       "name": "PathFetcher",
#       "anchor": "class-pathfetcher",
#       "kind": "class"
#     },
#     {
#       "id": "default-strategies",
#       "name": "default_strategies",
#       "anchor": "function-default-strategies",
#       "kind": "function"
#     },
#     {
#       "id": "open-first",
#       "name": "open_first",
#       "anchor": "function-open-first",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Fetch strategies for property sources.

Locations are opened by an ordered chain of strategies. Scheme-prefixed
locations (``http:``, ``https:``, ``file:``) are tried first with the matching
network or file primitive; whatever happens there, the bare-path strategy then
gets a chance to open the location string as a local file. The first strategy
that yields a stream wins, and every failed attempt is recorded as a
:class:`FetchAttempt` rather than raised.

Each strategy returns an iterator of byte chunks whose underlying handle is
registered on the caller's :class:`contextlib.ExitStack`, so the stream is
released on every exit path.
"""

from __future__ import annotations

import functools
import logging
from abc import ABC, abstractmethod
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence
from urllib.parse import urlsplit
from urllib.request import url2pathname

import httpx

from .errors import FetchFailure, recover_or_raise
from .net import get_http_client
from .settings import HttpConfiguration

LOGGER = logging.getLogger("PropsAgent.PropertyLoad.fetchers")

__all__ = [
    "FetchAttempt",
    "OpenedSource",
    "FetchStrategy",
    "HttpFetcher",
    "FileUrlFetcher",
    "PathFetcher",
    "default_strategies",
    "open_first",
    "describe_attempts",
]

_READ_CHUNK = 64 * 1024


@dataclass(frozen=True)
class FetchAttempt:
    """Outcome of a single strategy trying to open a location."""

    strategy: str
    location: str
    ok: bool
    error: Optional[str] = None


@dataclass
class OpenedSource:
    """Stream produced by the first successful strategy."""

    strategy: str
    location: str
    chunks: Iterator[bytes]
    attempts: List[FetchAttempt] = field(default_factory=list)


class FetchStrategy(ABC):
    """One way of turning a location string into a byte stream."""

    name: str = "strategy"

    @abstractmethod
    def accepts(self, location: str) -> bool:
        """Return ``True`` when this strategy should try ``location``."""

    @abstractmethod
    def open(self, location: str, stack: ExitStack) -> Iterator[bytes]:
        """Open ``location`` and return its chunks, registering cleanup on ``stack``.

        Raises:
            FetchFailure: If the location cannot be opened.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def _iter_file(handle, chunk_size: int) -> Iterator[bytes]:
    return iter(functools.partial(handle.read, chunk_size), b"")


class HttpFetcher(FetchStrategy):
    """Stream ``http:`` and ``https:`` sources through the shared HTTPX client."""

    name = "http"
    schemes = ("http:", "https:")

    def __init__(
        self,
        config: Optional[HttpConfiguration] = None,
        *,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.config = config or HttpConfiguration()
        self._client = client

    def accepts(self, location: str) -> bool:
        return location.startswith(self.schemes)

    def open(self, location: str, stack: ExitStack) -> Iterator[bytes]:
        client = self._client or get_http_client(self.config)
        LOGGER.debug("loading data from url", extra={"stage": "fetch", "location": location})
        try:
            response = stack.enter_context(client.stream("GET", location))
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise FetchFailure(
                f"HTTP {exc.response.status_code} fetching {location}",
                location=location,
                strategy=self.name,
                status_code=exc.response.status_code,
            ) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise FetchFailure(
                f"Unable to open url={location}: {exc}", location=location, strategy=self.name
            ) from exc
        return response.iter_bytes(self.config.chunk_size)


class FileUrlFetcher(FetchStrategy):
    """Open ``file:`` URLs from the local filesystem."""

    name = "file-url"

    def accepts(self, location: str) -> bool:
        return location.startswith("file:")

    @staticmethod
    def to_path(location: str) -> Path:
        """Return the local path named by a ``file:`` URL."""

        parts = urlsplit(location)
        if parts.netloc not in ("", "localhost"):
            raise FetchFailure(
                f"file URL host {parts.netloc!r} is not local",
                location=location,
                strategy=FileUrlFetcher.name,
            )
        if not parts.path:
            raise FetchFailure("file URL has no path", location=location, strategy=FileUrlFetcher.name)
        return Path(url2pathname(parts.path))

    def open(self, location: str, stack: ExitStack) -> Iterator[bytes]:
        path = self.to_path(location)
        LOGGER.debug(
            "loading data from file url",
            extra={"stage": "fetch", "location": location, "path": str(path)},
        )
        try:
            handle = stack.enter_context(path.open("rb"))
        except OSError as exc:
            raise FetchFailure(
                f"Unable to open url={location}: {exc}", location=location, strategy=self.name
            ) from exc
        return _iter_file(handle, _READ_CHUNK)


class PathFetcher(FetchStrategy):
    """Treat the location string itself as a filesystem path."""

    name = "path"

    def accepts(self, location: str) -> bool:
        return bool(location)

    def open(self, location: str, stack: ExitStack) -> Iterator[bytes]:
        LOGGER.debug("loading data from path", extra={"stage": "fetch", "location": location})
        try:
            handle = stack.enter_context(open(location, "rb"))
        except (OSError, ValueError) as exc:
            raise FetchFailure(
                f"Unable to open file={location}: {exc}", location=location, strategy=self.name
            ) from exc
        return _iter_file(handle, _READ_CHUNK)


def default_strategies(
    config: Optional[HttpConfiguration] = None,
    *,
    client: Optional[httpx.Client] = None,
) -> List[FetchStrategy]:
    """Return the standard chain: HTTP(S), then ``file:`` URLs, then bare paths."""

    return [HttpFetcher(config, client=client), FileUrlFetcher(), PathFetcher()]


def open_first(
    location: str,
    strategies: Sequence[FetchStrategy],
    stack: ExitStack,
) -> tuple[Optional[OpenedSource], List[FetchAttempt]]:
    """Try ``strategies`` in order and return the first stream that opens.

    Args:
        location: Source location from the spec.
        strategies: Ordered strategies; those that do not accept ``location``
            are skipped.
        stack: Exit stack that takes ownership of the winning stream.

    Returns:
        tuple: ``(opened, attempts)`` where ``opened`` is ``None`` when every
        accepting strategy failed.

    Raises:
        BaseException: Fatal runtime conditions raised by a strategy.
    """

    attempts: List[FetchAttempt] = []
    for strategy in strategies:
        if not strategy.accepts(location):
            continue
        if attempts:
            # Structural failures (e.g. a malformed URL) are retried here too.
            LOGGER.debug(
                "falling back to next fetch strategy",
                extra={"stage": "fetch", "location": location, "strategy": strategy.name},
            )
        with ExitStack() as attempt_stack:
            try:
                chunks = strategy.open(location, attempt_stack)
            except BaseException as exc:  # noqa: BLE001 - classified below
                classified = recover_or_raise(
                    exc,
                    logger=LOGGER,
                    message=f"Unable to open {location} via {strategy.name}",
                    stage="fetch",
                    location=location,
                    strategy=strategy.name,
                )
                attempts.append(
                    FetchAttempt(strategy.name, location, ok=False, error=classified.describe())
                )
                continue
            stack.enter_context(attempt_stack.pop_all())
        attempts.append(FetchAttempt(strategy.name, location, ok=True))
        return OpenedSource(strategy.name, location, chunks, list(attempts)), attempts
    return None, attempts


def describe_attempts(attempts: Iterable[FetchAttempt]) -> str:
    """Render attempts as ``strategy=ok|error`` pairs for log messages."""

    parts = []
    for attempt in attempts:
        parts.append(f"{attempt.strategy}={'ok' if attempt.ok else attempt.error}")
    return ", ".join(parts)
