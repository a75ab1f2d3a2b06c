"""TripAuditLog dataclass for recorded field changes."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class TripAuditLog:
    """One changed field of one trip. Append-only."""

    trip_id: int
    field_name: str
    old_value: Optional[str]
    new_value: Optional[str]
    changed_at: datetime
    id: int = 0
