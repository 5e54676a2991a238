"""Plain text table rendering for catalog results."""

from __future__ import annotations

from typing import List, Sequence, Tuple

from ..core.types import CatalogResult

_COLUMNS = ("Path", "Class", "Metadata")
_MAX_PATH_WIDTH = 72


def _ellipsize(value: str, limit: int) -> str:
    if len(value) <= limit:
        return value
    if limit <= 1:
        return value[:limit]
    return f"{value[: limit - 1]}…"


def _rows(result: CatalogResult) -> List[Tuple[str, str, str]]:
    rows: List[Tuple[str, str, str]] = []
    for location in result.locations():
        path = location.real_path
        if location.virtual_path != location.real_path:
            path = f"{location.virtual_path} -> {location.real_path}"
        for classification in result[location]:
            metadata = ", ".join(
                f"{key}={value}" for key, value in sorted(classification.metadata.items())
            )
            rows.append((path, classification.class_name, metadata or "—"))
    return rows


def render_table(result: CatalogResult) -> str:
    """Render ``result`` as aligned columns, one row per classification."""

    rows = _rows(result)
    if not rows:
        return "No classifications found."
    widths = [len(column) for column in _COLUMNS]
    for row in rows:
        for index, value in enumerate(row):
            widths[index] = max(widths[index], len(value))
    widths[0] = min(widths[0], _MAX_PATH_WIDTH)

    lines: List[str] = [_format_row(_COLUMNS, widths)]
    lines.append("  ".join("-" * width for width in widths))
    for row in rows:
        lines.append(_format_row(row, widths))
    return "\n".join(lines)


def _format_row(row: Sequence[str], widths: Sequence[int]) -> str:
    cells = []
    for index, value in enumerate(row):
        if index == len(row) - 1:
            cells.append(value)
        else:
            cells.append(_ellipsize(value, widths[index]).ljust(widths[index]))
    return "  ".join(cells).rstrip()


__all__ = ["render_table"]
