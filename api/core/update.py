"""
Generic partial UPDATE for any table keyed by an integer `id`.

Only the fields that are present end up in the statement. Values are always
bound as parameters; table and field names are interpolated, so they are
checked against a strict identifier pattern first.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

from . import db

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _check_identifier(name: str) -> str:
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}.")
    return name


def build_update(table: str, row_id: int, pairs: Sequence[tuple[str, Any]]) -> tuple[str, list[Any]]:
    """
    Build `UPDATE <table> SET f1 = $2, ... WHERE id = $1 RETURNING *`.

    The row id is always $1; values follow in field order.
    """
    if not pairs:
        raise RuntimeError("build_update called with no fields.")

    _check_identifier(table)
    # id is $1
    updates = [f"{_check_identifier(name)} = ${i + 2}" for i, (name, _) in enumerate(pairs)]
    sql = f"UPDATE {table} SET {', '.join(updates)} WHERE id = $1 RETURNING *"
    params = [row_id, *(value for _, value in pairs)]
    return sql, params


async def conditional_update(
    database: db.Database,
    table: str,
    row_id: int,
    fields: Sequence[str | None],
    values: Sequence[Any | None],
) -> db.QueryResult | db.QueryFailure | bool:
    """
    Update only the fields that are not None.

    `fields` and `values` are filtered independently; the survivors must line
    up one-to-one. Returns False (no statement issued) when nothing survives.
    """
    filtered_fields = [f for f in fields if isinstance(f, str)]
    filtered_values = [v for v in values if v is not None]

    if not filtered_fields:
        return False

    if len(filtered_fields) != len(filtered_values):
        raise RuntimeError("fields and values must be of equal length.")

    sql, params = build_update(table, row_id, list(zip(filtered_fields, filtered_values)))
    return await database.query(sql, *params)


async def update_fields(
    database: db.Database,
    table: str,
    row_id: int,
    changes: Mapping[str, Any | None],
) -> db.QueryResult | db.QueryFailure | bool:
    """
    Mapping form of `conditional_update`: {field: value}, None means "leave as is".
    """
    pairs = [(name, value) for name, value in changes.items() if value is not None]
    if not pairs:
        return False

    sql, params = build_update(table, row_id, pairs)
    return await database.query(sql, *params)
