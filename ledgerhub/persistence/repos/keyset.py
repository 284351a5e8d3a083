from __future__ import annotations

from typing import Any, Sequence

from sqlalchemy import and_, or_
from sqlalchemy.sql import ColumnElement


def keyset_after(
    columns: Sequence[ColumnElement[Any]],
    values: Sequence[Any],
    *,
    direction: str = "asc",
) -> ColumnElement[bool]:
    # Lexicographic "strictly after" filter for keyset paging over (c1, c2, ...).
    if len(columns) != len(values) or not columns:
        raise ValueError("keyset columns and values must be non-empty and aligned")

    def _compare(column: ColumnElement[Any], value: Any) -> ColumnElement[bool]:
        return column > value if direction == "asc" else column < value

    conditions: list[ColumnElement[bool]] = []
    for idx, column in enumerate(columns):
        prefix = [columns[p] == values[p] for p in range(idx)]
        conditions.append(and_(*prefix, _compare(column, values[idx])))
    return or_(*conditions)


def order_columns(columns: Sequence[ColumnElement[Any]], *, direction: str = "asc") -> list[Any]:
    return [column.asc() if direction == "asc" else column.desc() for column in columns]
