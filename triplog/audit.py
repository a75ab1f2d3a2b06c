"""AuditTrail - field-level change records for trips."""

import logging
from datetime import date, datetime
from typing import Any, Callable, List, Optional

from .audit_log import TripAuditLog
from .store import AUDIT_LOG, LogbookStore, Subscription
from .trip import AUDITED_FIELDS, Trip

logger = logging.getLogger(__name__)


def render_value(value: Any) -> Optional[str]:
    """Stringify a field value for the audit log. None stays None."""
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def diff_trips(old_trip: Trip, new_trip: Trip) -> List[tuple]:
    """
    Compare the audited fields of two trips.

    Returns (field_name, old_value, new_value) tuples with rendered values,
    omitting fields whose rendering did not change.
    """
    changes = []
    for attr, field_name in AUDITED_FIELDS.items():
        old_value = render_value(getattr(old_trip, attr))
        new_value = render_value(getattr(new_trip, attr))
        if old_value != new_value:
            changes.append((field_name, old_value, new_value))
    return changes


class AuditTrail:
    """Append-only change log for trips, stored alongside them."""

    def __init__(self, store: LogbookStore, clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.clock = clock

    def record_changes(
        self, trip_id: int, old_trip: Trip, new_trip: Trip
    ) -> List[TripAuditLog]:
        """
        Append one entry per changed field.

        Must be called inside the transaction that commits the trip change,
        so both land or neither does.
        """
        changed_at = self.clock()
        entries = []
        with self.store.transaction():
            for field_name, old_value, new_value in diff_trips(old_trip, new_trip):
                entry = TripAuditLog(
                    trip_id=trip_id,
                    field_name=field_name,
                    old_value=old_value,
                    new_value=new_value,
                    changed_at=changed_at,
                )
                entries.append(self.store.insert(AUDIT_LOG, entry))
        if entries:
            logger.info("Recorded %d audit entries for trip %d", len(entries), trip_id)
        return entries

    def get_audit_log_for_trip(self, trip_id: int) -> List[TripAuditLog]:
        """Entries for a trip, oldest first."""
        entries = self.store.find(AUDIT_LOG, lambda log: log.trip_id == trip_id)
        return sorted(entries, key=lambda log: (log.changed_at, log.id))

    def has_audit_log(self, trip_id: int) -> bool:
        return bool(self.store.find(AUDIT_LOG, lambda log: log.trip_id == trip_id))

    def observe_audit_log(
        self, trip_id: int, callback: Optional[Callable[[List[TripAuditLog]], None]] = None
    ) -> Subscription:
        """Live view of a trip's audit log; new entries are re-delivered."""
        return self.store.observe(
            [AUDIT_LOG],
            lambda store: self.get_audit_log_for_trip(trip_id),
            callback,
        )
