"""
Registration persistence (raw SQL).
"""

from __future__ import annotations

from core import db

from .schemas import Registration, registration_from_row


async def get_registrations(database: db.Database, event_id: int) -> list[Registration] | None:
    """
    Registrations for an event, oldest first. None when the query failed.
    """
    result = await database.query(
        """
        SELECT event, username, created
        FROM registrations
        WHERE event = $1
        ORDER BY created, username
        """,
        event_id,
    )
    if not result:
        return None
    return [r for r in map(registration_from_row, result.rows) if r is not None]


async def insert_registration(database: db.Database, event_id: int, username: str) -> Registration | None:
    result = await database.query(
        """
        INSERT INTO registrations (event, username)
        VALUES ($1, $2)
        RETURNING event, username, created
        """,
        event_id,
        username,
    )
    if not result or not result.rows:
        return None
    return registration_from_row(result.rows[0])


async def remove_registration(database: db.Database, event_id: int, username: str) -> bool:
    result = await database.query(
        """
        DELETE FROM registrations
        WHERE event = $1
          AND username = $2
        RETURNING 1
        """,
        event_id,
        username,
    )
    if not result or result.row_count == 0:
        return False
    return True
