"""
Event persistence (raw SQL).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from core import db
from core.update import update_fields

from .schemas import Event, EventCreate, event_from_row

logger = logging.getLogger(__name__)


async def get_events(database: db.Database) -> list[Event]:
    result = await database.query(
        """
        SELECT id, name, slug, description, created, updated
        FROM events
        ORDER BY id
        """
    )
    if not result:
        return []
    return [event for event in map(event_from_row, result.rows) if event is not None]


async def get_event_by_slug(database: db.Database, slug: str) -> Event | None:
    result = await database.query(
        """
        SELECT id, name, slug, description, created, updated
        FROM events
        WHERE slug = $1
        """,
        slug,
    )
    if not result or not result.rows:
        return None
    return event_from_row(result.rows[0])


async def get_event_by_id(database: db.Database, event_id: int) -> Event | None:
    result = await database.query(
        """
        SELECT id, name, slug, description, created, updated
        FROM events
        WHERE id = $1
        """,
        event_id,
    )
    if not result or not result.rows:
        return None
    return event_from_row(result.rows[0])


async def insert_event(database: db.Database, event: EventCreate) -> Event | None:
    result = await database.query(
        """
        INSERT INTO events (name, slug, description)
        VALUES ($1, $2, $3)
        RETURNING id, name, slug, description, created, updated
        """,
        event.name,
        event.slug,
        event.description,
    )
    if not result or not result.rows:
        return None
    return event_from_row(result.rows[0])


async def update_event(
    database: db.Database,
    event_id: int,
    *,
    name: str | None = None,
    slug: str | None = None,
    description: str | None = None,
) -> Event | None:
    """
    Update the given fields of an event and bump `updated`.

    With nothing to change no UPDATE is issued and the current row is returned.
    """
    changes = {"name": name, "slug": slug, "description": description}
    if all(value is None for value in changes.values()):
        return await get_event_by_id(database, event_id)

    changes["updated"] = datetime.now(timezone.utc)
    result = await update_fields(database, "events", event_id, changes)
    if not result or not result.rows:
        return None
    return event_from_row(result.rows[0])


async def delete_event_by_slug(database: db.Database, slug: str) -> bool:
    """
    Delete an event and all of its registrations.

    Registrations go first so none are left pointing at a missing event; both
    deletes share one transaction and roll back together. True only when
    exactly one event row was removed and the transaction committed.
    """
    async with database.transaction() as tx:
        found = await tx.query("SELECT id FROM events WHERE slug = $1", slug)
        if not found or not found.rows:
            return False

        event_id = int(found.rows[0]["id"])
        removed = await tx.query("DELETE FROM registrations WHERE event = $1", event_id)
        if removed:
            logger.debug("event_registrations_removed event_id=%s count=%s", event_id, removed.row_count)

        result = await tx.query("DELETE FROM events WHERE slug = $1", slug)
        if not result or result.row_count != 1:
            tx.rollback_only()

    return tx.committed
