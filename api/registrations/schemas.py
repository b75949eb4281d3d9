"""
Registration model and mapper.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, ValidationError


class Registration(BaseModel):
    event: int
    username: str = Field(..., min_length=1, max_length=64)
    created: datetime | None = None


def registration_from_row(row: Mapping[str, Any] | None) -> Registration | None:
    if row is None:
        return None
    try:
        return Registration.model_validate(dict(row))
    except ValidationError:
        return None
