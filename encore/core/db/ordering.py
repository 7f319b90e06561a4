"""
ORDER BY / WHERE helpers for record store queries.

These helpers translate the store's generic `order_by` and `filters`
arguments into SQL snippets.

Important:
- Column names are never interpolated unless they appear in the table's
  whitelist (see `TableSpec.columns`). Values are always bound parameters.
- Unknown columns or directions raise `ValueError`; callers translate that
  into a validation error.
"""

from __future__ import annotations

from typing import Any, Literal, Mapping, Sequence

from encore.core.db.models import TableSpec

Direction = Literal["asc", "desc"]

OrderBy = Sequence[tuple[str, Direction]]

# Collate text columns case-insensitively so "abba" sorts next to "ABBA".
_TEXT_COLLATE_COLUMNS = frozenset({"name", "artist", "album"})


def order_clause(spec: TableSpec, order_by: OrderBy | None) -> str:
    """
    Return an ORDER BY clause for a list query.

    `id ASC` is always appended as the final tie-breaker so that results are
    stable even when every requested key is equal.
    """
    parts: list[str] = []
    for column, direction in order_by or ():
        if column not in spec.columns:
            raise ValueError(f"Cannot order {spec.name} by unknown column {column!r}")
        d = str(direction).lower()
        if d not in ("asc", "desc"):
            raise ValueError(f"Invalid sort direction {direction!r} for {column!r}")
        collate = " COLLATE NOCASE" if column in _TEXT_COLLATE_COLUMNS else ""
        parts.append(f"{column}{collate} {d.upper()}")

    if not any(p.startswith("id ") for p in parts):
        parts.append("id ASC")
    return "ORDER BY " + ", ".join(parts)


def where_clause(spec: TableSpec, filters: Mapping[str, Any] | None) -> tuple[str, list[Any]]:
    """
    Return a WHERE clause (possibly empty) and its bound parameters.

    Filters are equality only; `None` matches SQL NULL.
    """
    if not filters:
        return "", []

    conditions: list[str] = []
    params: list[Any] = []
    for column, value in filters.items():
        if column not in spec.columns:
            raise ValueError(f"Cannot filter {spec.name} by unknown column {column!r}")
        if value is None:
            conditions.append(f"{column} IS NULL")
        else:
            conditions.append(f"{column} = ?")
            params.append(value)
    return "WHERE " + " AND ".join(conditions), params
