"""TripTemplate dataclass for recurring routes."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class TripTemplate:
    """A named, reusable route that prefills a new trip."""

    name: str
    start_location: str
    end_location: str
    distance_km: float
    purpose: str = ""
    purpose_id: Optional[int] = None
    notes: Optional[str] = None
    vehicle_id: Optional[int] = None
    business_partner: Optional[str] = None
    route: Optional[str] = None
    id: int = 0
