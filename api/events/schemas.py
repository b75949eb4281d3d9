"""
Event models and the row -> model mapper.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class EventCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)
    slug: str = Field(..., min_length=1, max_length=64)
    description: str | None = None


class Event(EventCreate):
    id: int
    created: datetime
    updated: datetime


def event_from_row(row: Mapping[str, Any] | None) -> Event | None:
    """
    Map a DB row to an Event; None for a missing or malformed row.
    """
    if row is None:
        return None
    try:
        return Event.model_validate(dict(row))
    except ValidationError as exc:
        logger.warning("event_row_invalid error=%s", exc)
        return None
