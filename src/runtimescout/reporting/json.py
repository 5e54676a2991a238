"""JSON rendering for catalog results.

Output is deterministic: locations are ordered by real path, metadata keys
are sorted, and classifications keep classifier definition order. Two runs
over the same tree therefore serialise to identical bytes.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional, TextIO

from ..core.types import CatalogResult


def catalog_payload(
    result: CatalogResult,
    *,
    source: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Return a JSON-ready mapping describing ``result``."""

    locations: List[Dict[str, Any]] = []
    for location in result.locations():
        entry = location.to_dict()
        entry["classifications"] = [
            classification.to_dict() for classification in result[location]
        ]
        locations.append(entry)
    payload: Dict[str, Any] = {"locations": locations}
    if source:
        payload["source"] = dict(source)
    return payload


def render_json(
    result: CatalogResult,
    *,
    source: Optional[Mapping[str, Any]] = None,
    indent: Optional[int] = 2,
) -> str:
    return json.dumps(catalog_payload(result, source=source), indent=indent, sort_keys=True)


def write_json(
    result: CatalogResult,
    stream: TextIO,
    *,
    source: Optional[Mapping[str, Any]] = None,
) -> None:
    stream.write(render_json(result, source=source))
    stream.write("\n")


__all__ = ["catalog_payload", "render_json", "write_json"]
