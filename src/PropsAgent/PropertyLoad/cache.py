# === NAVMAP v1 ===
# {
#   "module": "PropsAgent.PropertyLoad.cache",
#   "purpose": "Snapshot cache naming, atomic promotion, and inspection",
#   "sections": [
#     {
#       "id": "sanitize-location",
#       "name": "sanitize_location",
#       "anchor": "function-sanitize-location",
#       "kind": "function"
#     },
#     {
#       "id": "cache-path-for",
#       "name": "cache_path_for",
#       "anchor": "function-cache-path-for",
#       "kind": "function"
#     },
#     {
#       "id": "write-snapshot",
#       "name": "write_snapshot",
#       "anchor": "function-write-snapshot",
#       "kind": "function"
#     },
#     {
#       "id": "promote-snapshot",
#       "name": "promote_snapshot",
#       "anchor": "function-promote-snapshot",
#       "kind": "function"
#     },
#     {
#       "id": "read-snapshot",
#       "name": "read_snapshot",
#       "anchor": "function-read-snapshot",
#       "kind": "function"
#     },
#     {
#       "id": "iter-snapshots",
#       "name": "iter_snapshots",
#       "anchor": "function-iter-snapshots",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Local snapshot cache for fetched property sources.

Every location maps to one stable file ``<cache_dir>/<sanitized>.cache``. A
fresh fetch is written to the sibling ``<stable>.new`` and then moved over the
stable file with :func:`os.replace`, so the stable path only ever holds the
last snapshot that was written completely. The layout of a snapshot is::

    # BEGIN # <timestamp>
    <fetched bytes, verbatim>
    # END #

Both marker lines are comments in properties syntax, so the whole file can be
handed to the parser as is.

Sanitization replaces every character outside ``[A-Za-z0-9-]`` with ``_``.
The mapping is not injective (``a/b`` and ``a.b`` share a file); that collision
is accepted.
"""

from __future__ import annotations

import contextlib
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, Optional

from .errors import CachePromotionFailure, CacheReadFailure
from .settings import CACHE_SUFFIX

LOGGER = logging.getLogger("PropsAgent.PropertyLoad.cache")

__all__ = [
    "BEGIN_MARKER",
    "END_MARKER",
    "TEMP_SUFFIX",
    "SnapshotInfo",
    "sanitize_location",
    "cache_path_for",
    "temp_path_for",
    "format_timestamp",
    "write_snapshot",
    "promote_snapshot",
    "read_snapshot_bytes",
    "read_snapshot",
    "iter_snapshots",
    "clear_snapshot",
]

BEGIN_MARKER = b"# BEGIN # "
END_MARKER = b"# END #"
TEMP_SUFFIX = ".new"
_FOOTER = b"\n" + END_MARKER + b"\n"
_UNSAFE = re.compile(r"[^A-Za-z0-9-]")


@dataclass(frozen=True)
class SnapshotInfo:
    """Parsed view of a snapshot file."""

    path: Path
    captured: str
    payload: bytes

    @property
    def size(self) -> int:
        return len(self.payload)


def sanitize_location(location: str) -> str:
    """Return ``location`` with every character outside ``[A-Za-z0-9-]`` replaced by ``_``."""

    return _UNSAFE.sub("_", location)


def cache_path_for(
    location: str,
    cache_dir: Optional[Path] = None,
    suffix: str = CACHE_SUFFIX,
) -> Path:
    """Return the absolute stable snapshot path for ``location``.

    Args:
        location: Source location exactly as given in the specifier string.
        cache_dir: Directory holding snapshots; the temp directory when omitted.
        suffix: File suffix appended after sanitization.

    Returns:
        Path: Absolute path of the stable snapshot.
    """

    if cache_dir is None:
        cache_dir = Path(tempfile.gettempdir())
    return (Path(cache_dir) / f"{sanitize_location(location)}{suffix}").absolute()


def temp_path_for(cache_path: Path) -> Path:
    return cache_path.with_name(cache_path.name + TEMP_SUFFIX)


def format_timestamp(moment: Optional[datetime] = None) -> str:
    """Render the header timestamp, e.g. ``Sun Oct 18 23:18:00 UTC 2026``."""

    moment = moment or datetime.now().astimezone()
    return moment.strftime("%a %b %d %H:%M:%S %Z %Y").replace("  ", " ").strip()


def write_snapshot(
    chunks: Iterable[bytes],
    cache_path: Path,
    *,
    captured: Optional[datetime] = None,
) -> Path:
    """Write ``chunks`` framed by the marker lines to the temporary sibling file.

    The file is flushed, fsynced, and closed before returning. On any failure
    the partial temporary file is removed and the exception propagates; the
    stable snapshot is never touched here.

    Returns:
        Path: The completed temporary file, ready for :func:`promote_snapshot`.
    """

    temp_path = temp_path_for(cache_path)
    temp_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with temp_path.open("wb") as stream:
            stream.write(BEGIN_MARKER + format_timestamp(captured).encode("utf-8") + b"\n")
            for chunk in chunks:
                if chunk:
                    stream.write(chunk)
            stream.write(_FOOTER)
            stream.flush()
            os.fsync(stream.fileno())
    except BaseException:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise
    return temp_path


def promote_snapshot(temp_path: Path, cache_path: Path) -> None:
    """Move ``temp_path`` over ``cache_path`` in a single rename.

    Raises:
        CachePromotionFailure: If the rename fails; ``cache_path`` keeps its
            previous content and ``temp_path`` is left in place.
    """

    try:
        os.replace(temp_path, cache_path)
    except OSError as exc:
        raise CachePromotionFailure(
            f"Unable to promote {temp_path} to {cache_path}: {exc}"
        ) from exc
    LOGGER.debug(
        "promoted snapshot",
        extra={"stage": "promote", "path": str(cache_path)},
    )


def read_snapshot_bytes(cache_path: Path) -> bytes:
    """Return the raw snapshot file contents.

    Raises:
        CacheReadFailure: If the file is missing or unreadable.
    """

    try:
        return cache_path.read_bytes()
    except FileNotFoundError as exc:
        raise CacheReadFailure(f"No cached snapshot at {cache_path}") from exc
    except OSError as exc:
        raise CacheReadFailure(f"Unable to read cached snapshot {cache_path}: {exc}") from exc


def read_snapshot(cache_path: Path) -> SnapshotInfo:
    """Parse the snapshot at ``cache_path`` into header timestamp and payload.

    Raises:
        CacheReadFailure: If the file is unreadable or its markers are missing.
    """

    data = read_snapshot_bytes(cache_path)
    if not data.startswith(BEGIN_MARKER):
        raise CacheReadFailure(f"Snapshot {cache_path} has no begin marker")
    newline = data.find(b"\n")
    if newline < 0 or not data.endswith(_FOOTER) or len(data) < newline + len(_FOOTER):
        raise CacheReadFailure(f"Snapshot {cache_path} is truncated")
    captured = data[len(BEGIN_MARKER):newline].decode("utf-8", errors="replace")
    payload = data[newline + 1 : len(data) - len(_FOOTER)]
    return SnapshotInfo(path=cache_path, captured=captured, payload=payload)


def iter_snapshots(cache_dir: Path, suffix: str = CACHE_SUFFIX) -> Iterator[Path]:
    """Yield stable snapshot files in ``cache_dir`` in name order."""

    if not cache_dir.is_dir():
        return
    for path in sorted(cache_dir.glob(f"*{suffix}")):
        if path.is_file():
            yield path


def clear_snapshot(cache_path: Path) -> bool:
    """Delete the stable snapshot and any orphaned temporary file.

    Returns:
        bool: ``True`` when a stable snapshot existed.
    """

    existed = cache_path.exists()
    cache_path.unlink(missing_ok=True)
    temp_path_for(cache_path).unlink(missing_ok=True)
    return existed
