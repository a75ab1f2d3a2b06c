"""Trip dataclass - a single logbook entry."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .phase import TripPhase

# Attributes tracked by the audit trail, mapped to their logged field names
AUDITED_FIELDS = {
    "date": "date",
    "start_location": "startLocation",
    "end_location": "endLocation",
    "distance_km": "distanceKm",
    "purpose": "purpose",
    "purpose_id": "purposeId",
    "notes": "notes",
    "start_odometer": "startOdometer",
    "end_odometer": "endOdometer",
    "vehicle_id": "vehicleId",
    "is_cancelled": "isCancelled",
    "cancellation_reason": "cancellationReason",
}


def local_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive local time. Naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


@dataclass
class Trip:
    """A trip from start location to end location with odometer readings."""

    date: datetime
    start_location: str
    end_location: str = ""
    distance_km: float = 0.0
    purpose: str = ""
    purpose_id: Optional[int] = None
    business_trip: bool = False
    notes: Optional[str] = None
    start_odometer: Optional[int] = None
    end_odometer: Optional[int] = None
    vehicle_id: Optional[int] = None
    is_cancelled: bool = False  # Storno: voided but kept in the logbook
    cancellation_reason: Optional[str] = None
    is_active: bool = False
    is_ghost: bool = False
    end_time: Optional[datetime] = None
    id: int = 0

    @property
    def phase(self) -> TripPhase:
        """Derive the lifecycle phase from the active/ghost flags."""
        if self.is_ghost:
            return TripPhase.GHOST
        if self.is_active:
            return TripPhase.STARTED
        return TripPhase.COMPLETED

    @property
    def is_persisted(self) -> bool:
        return bool(self.id)

    @property
    def counts_toward_distance(self) -> bool:
        """Completed and not cancelled."""
        return self.phase is TripPhase.COMPLETED and not self.is_cancelled

    @property
    def odometer_distance(self) -> Optional[float]:
        """Distance implied by the odometer readings, if both are present."""
        if self.start_odometer is None or self.end_odometer is None:
            return None
        return float(self.end_odometer - self.start_odometer)
