# === NAVMAP v1 ===
# {
#   "module": "PropsAgent.PropertyLoad.errors",
#   "purpose": "Exception hierarchy and failure classification for property loading",
#   "sections": [
#     {
#       "id": "propertyloaderror",
#       "name": "PropertyLoadError",
#       "anchor": "class-propertyloaderror",
#       "kind": "class"
#     },
#     {
#       "id": "classified",
#       "name": "Classified",
#       "anchor": "class-classified",
#       "kind": "class"
#     },
#     {
#       "id": "classify-failure",
#       "name": "classify_failure",
#       "anchor": "function-classify-failure",
#       "kind": "function"
#     },
#     {
#       "id": "recover-or-raise",
#       "name": "recover_or_raise",
#       "anchor": "function-recover-or-raise",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Exception hierarchy shared across source parsing, fetching, caching, and merging.

The loader is best-effort: almost every failure is contained to the source that
caused it and surfaces only as a log record. The exceptions below name those
failure modes so callers (and tests) can tell a fetch problem from a cache
problem, while :func:`classify_failure` decides which conditions are too severe
to contain at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Type

__all__ = [
    "PropertyLoadError",
    "FetchFailure",
    "CachePromotionFailure",
    "CacheReadFailure",
    "ConfigError",
    "FATAL_CONDITIONS",
    "Classified",
    "classify_failure",
    "recover_or_raise",
]


class PropertyLoadError(RuntimeError):
    """Base exception for property fetch, cache, and merge failures."""


class FetchFailure(PropertyLoadError):
    """Raised when a fetch strategy cannot open or read a source."""

    def __init__(
        self,
        message: str,
        *,
        location: Optional[str] = None,
        strategy: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.location = location
        self.strategy = strategy
        self.status_code = status_code


class CachePromotionFailure(PropertyLoadError):
    """Raised when a fresh snapshot cannot be written or promoted."""


class CacheReadFailure(PropertyLoadError):
    """Raised when the stable snapshot is missing or unreadable."""


class ConfigError(PropertyLoadError):
    """Raised when settings files or overrides are invalid."""


# Termination signals and resource exhaustion are never contained.
FATAL_CONDITIONS: Tuple[Type[BaseException], ...] = (
    SystemExit,
    KeyboardInterrupt,
    GeneratorExit,
    MemoryError,
    RecursionError,
)


@dataclass(frozen=True)
class Classified:
    """Tagged result of :func:`classify_failure`."""

    error: BaseException
    fatal: bool

    @property
    def recovered(self) -> bool:
        return not self.fatal

    def describe(self) -> str:
        text = str(self.error)
        name = type(self.error).__name__
        return f"{name}: {text}" if text else name


def classify_failure(exc: BaseException) -> Classified:
    """Return whether ``exc`` may be contained (recovered) or must propagate (fatal)."""

    return Classified(error=exc, fatal=isinstance(exc, FATAL_CONDITIONS))


def recover_or_raise(
    exc: BaseException,
    *,
    logger: logging.Logger,
    message: str,
    stage: str,
    level: int = logging.ERROR,
    **context: object,
) -> Classified:
    """Log a recoverable ``exc`` and return its classification, re-raising fatal ones.

    Args:
        exc: Exception caught at a fallible boundary.
        logger: Logger receiving the failure record.
        message: Human readable summary for the log entry.
        stage: Pipeline stage label (``fetch``, ``promote``, ``read``...).
        level: Severity used for recovered failures.
        **context: Extra structured fields attached to the record.

    Returns:
        Classified: The recovered classification.

    Raises:
        BaseException: ``exc`` itself when it is a fatal runtime condition.
    """

    classified = classify_failure(exc)
    if classified.fatal:
        raise exc
    logger.log(
        level,
        message,
        exc_info=(type(exc), exc, exc.__traceback__),
        extra={"stage": stage, "error": classified.describe(), **context},
    )
    return classified
