# === NAVMAP v1 ===
# {
#   "module": "PropsAgent.PropertyLoad.properties",
#   "purpose": "Tolerant parser and writer for flat key/value properties text",
#   "sections": [
#     {
#       "id": "iter-logical-lines",
#       "name": "iter_logical_lines",
#       "anchor": "function-iter-logical-lines",
#       "kind": "function"
#     },
#     {
#       "id": "split-key-value",
#       "name": "split_key_value",
#       "anchor": "function-split-key-value",
#       "kind": "function"
#     },
#     {
#       "id": "parse-properties",
#       "name": "parse_properties",
#       "anchor": "function-parse-properties",
#       "kind": "function"
#     },
#     {
#       "id": "dump-properties",
#       "name": "dump_properties",
#       "anchor": "function-dump-properties",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Line-oriented ``.properties`` parsing.

The accepted syntax is the classic properties file format:

* ``key=value``, ``key: value`` and ``key value`` all define ``key``;
  whitespace around the separator is ignored, trailing whitespace is kept.
* Lines whose first non-blank character is ``#`` or ``!`` are comments.
* A line ending in an odd number of backslashes continues on the next line;
  leading whitespace of the continuation is dropped.
* ``\\t``, ``\\n``, ``\\r``, ``\\f`` and ``\\uXXXX`` escapes are decoded; any other
  escaped character stands for itself (``\\=``, ``\\:``, ``\\ ``, ``\\\\``).
* A line holding only a key defines it with an empty value.

The parser never rejects input. Malformed ``\\u`` escapes are kept literally and
logged, so a single bad line cannot prevent the rest of a snapshot from loading.
Snapshot marker lines are ordinary comments and need no special handling.
"""

from __future__ import annotations

import logging
import re
import string
from typing import Dict, Iterable, Iterator, Mapping, Tuple

LOGGER = logging.getLogger("PropsAgent.PropertyLoad.properties")

__all__ = [
    "DEFAULT_ENCODING",
    "iter_logical_lines",
    "split_key_value",
    "unescape",
    "iter_properties",
    "parse_properties",
    "parse_properties_bytes",
    "escape",
    "dump_properties",
]

DEFAULT_ENCODING = "iso-8859-1"
_WHITESPACE = " \t\f"
_SEPARATORS = "=:"
_COMMENT_PREFIXES = "#!"
_NATURAL_LINE = re.compile(r"\r\n|\r|\n")
_SIMPLE_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}
_HEX = frozenset(string.hexdigits)


def _continues(line: str) -> bool:
    count = len(line) - len(line.rstrip("\\"))
    return count % 2 == 1


def iter_logical_lines(text: str) -> Iterator[str]:
    """Yield logical lines with comments and blanks removed and continuations joined."""

    pending = None
    for natural in _NATURAL_LINE.split(text):
        stripped = natural.lstrip(_WHITESPACE)
        if pending is None:
            if not stripped or stripped[0] in _COMMENT_PREFIXES:
                continue
            line = stripped
        else:
            line = pending + stripped
        if _continues(line):
            pending = line[:-1]
            continue
        pending = None
        yield line
    if pending:
        yield pending


def unescape(text: str) -> str:
    """Decode backslash escapes in a key or value."""

    if "\\" not in text:
        return text
    out = []
    index = 0
    length = len(text)
    while index < length:
        char = text[index]
        if char != "\\":
            out.append(char)
            index += 1
            continue
        index += 1
        if index >= length:
            break
        char = text[index]
        if char == "u":
            digits = text[index + 1 : index + 5]
            if len(digits) == 4 and _HEX.issuperset(digits):
                out.append(chr(int(digits, 16)))
                index += 5
                continue
            LOGGER.warning(
                "malformed \\uXXXX escape kept literally",
                extra={"stage": "parse", "fragment": text[index - 1 : index + 5]},
            )
            out.append("\\u")
            index += 1
            continue
        out.append(_SIMPLE_ESCAPES.get(char, char))
        index += 1
    decoded = "".join(out)
    if any("\ud800" <= ch <= "\udfff" for ch in decoded):
        # Recombine surrogate pairs written as two \u escapes.
        decoded = decoded.encode("utf-16", "surrogatepass").decode("utf-16", "replace")
    return decoded


def split_key_value(line: str) -> Tuple[str, str]:
    """Split a logical line into its unescaped key and value."""

    length = len(line)
    has_separator = False
    escaped = False
    index = 0
    key_end = length
    value_start = length
    while index < length:
        char = line[index]
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char in _SEPARATORS or char in _WHITESPACE:
            has_separator = char in _SEPARATORS
            key_end = index
            value_start = index + 1
            break
        index += 1
    while value_start < length:
        char = line[value_start]
        if char in _WHITESPACE:
            value_start += 1
        elif not has_separator and char in _SEPARATORS:
            has_separator = True
            value_start += 1
        else:
            break
    return unescape(line[:key_end]), unescape(line[value_start:])


def iter_properties(text: str) -> Iterator[Tuple[str, str]]:
    """Yield ``(key, value)`` pairs in file order, duplicates included."""

    for line in iter_logical_lines(text):
        yield split_key_value(line)


def parse_properties(text: str) -> Dict[str, str]:
    """Parse properties text into a dict; later duplicates win."""

    table: Dict[str, str] = {}
    for key, value in iter_properties(text):
        table[key] = value
    return table


def parse_properties_bytes(data: bytes, encoding: str = DEFAULT_ENCODING) -> Dict[str, str]:
    """Decode ``data`` (ISO-8859-1 by default) and parse it."""

    return parse_properties(data.decode(encoding, errors="replace"))


def escape(text: str, *, is_key: bool) -> str:
    """Escape ``text`` so that :func:`split_key_value` reads it back unchanged."""

    out = []
    for position, char in enumerate(text):
        if char == "\\":
            out.append("\\\\")
        elif char == "\t":
            out.append("\\t")
        elif char == "\n":
            out.append("\\n")
        elif char == "\r":
            out.append("\\r")
        elif char == "\f":
            out.append("\\f")
        elif char in _SEPARATORS or char in _COMMENT_PREFIXES:
            out.append("\\" + char)
        elif char == " " and (is_key or position == 0):
            out.append("\\ ")
        elif ord(char) < 0x20 or ord(char) > 0x7E:
            out.append(f"\\u{ord(char):04x}" if ord(char) <= 0xFFFF else _escape_astral(char))
        else:
            out.append(char)
    return "".join(out)


def _escape_astral(char: str) -> str:
    units = char.encode("utf-16-be")
    high = int.from_bytes(units[:2], "big")
    low = int.from_bytes(units[2:], "big")
    return f"\\u{high:04x}\\u{low:04x}"


def dump_properties(
    properties: Mapping[str, str],
    *,
    header: Iterable[str] = (),
    sort_keys: bool = True,
) -> str:
    """Render ``properties`` as ASCII-safe properties text."""

    lines = [f"# {line}" for line in header]
    keys = sorted(properties) if sort_keys else list(properties)
    for key in keys:
        lines.append(f"{escape(key, is_key=True)}={escape(properties[key], is_key=False)}")
    return "\n".join(lines) + ("\n" if lines else "")
