# === NAVMAP v1 ===
# {
#   "module": "PropsAgent.PropertyLoad.specs",
#   "purpose": "Parse delimited source specifier strings",
#   "sections": [
#     {
#       "id": "sourcespec",
#       "name": "SourceSpec",
#       "anchor": "class-sourcespec",
#       "kind": "class"
#     },
#     {
#       "id": "parse-source-specs",
#       "name": "parse_source_specs",
#       "anchor": "function-parse-source-specs",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Source specifier parsing.

A specifier string looks like ``!https://host/app.properties,/etc/app.properties``:
comma separated locations, each optionally prefixed with ``!`` to force its keys
over values already present in the namespace. Parsing never fails; a malformed
location simply fails later when it is fetched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

__all__ = ["DELIMITER", "FORCE_MARKER", "SourceSpec", "parse_source_specs"]

DELIMITER = ","
FORCE_MARKER = "!"


@dataclass(frozen=True)
class SourceSpec:
    """One location to load properties from.

    Attributes:
        location: URL (``http:``, ``https:``, ``file:``) or filesystem path.
        force: Overwrite keys that already exist in the namespace.
    """

    location: str
    force: bool = False

    def __str__(self) -> str:
        return f"{FORCE_MARKER}{self.location}" if self.force else self.location


def parse_source_specs(
    raw: Optional[str],
    *,
    delimiter: str = DELIMITER,
    force_marker: str = FORCE_MARKER,
) -> List[SourceSpec]:
    """Split ``raw`` into ordered :class:`SourceSpec` entries.

    Args:
        raw: Delimited specifier string; ``None`` or ``""`` yields no specs.
        delimiter: Single character separating specifiers.
        force_marker: Prefix that marks a specifier as force-overwrite.

    Returns:
        List[SourceSpec]: Specs in input order. Tokens are not stripped or
        validated, so an empty token becomes a spec with an empty location.

    Examples:
        >>> parse_source_specs("!a.properties,b.properties")
        [SourceSpec(location='a.properties', force=True), SourceSpec(location='b.properties', force=False)]
    """

    if not raw:
        return []
    specs: List[SourceSpec] = []
    for token in raw.split(delimiter):
        force = token.startswith(force_marker)
        location = token[len(force_marker):] if force else token
        specs.append(SourceSpec(location=location, force=force))
    return specs
