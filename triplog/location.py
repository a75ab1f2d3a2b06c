"""Saved locations and nearest-location lookup."""

import math
from dataclasses import dataclass, replace
from typing import List, Optional

from .errors import NotFoundError, StoreError, ValidationError
from .result import Result
from .store import LOCATIONS, LogbookStore
from .validation import FIELD_NAME, ValidationResult

EARTH_RADIUS_METERS = 6_371_000.0


def distance_in_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two coordinates (haversine formula)."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


@dataclass
class SavedLocation:
    """A named place trips often start or end at."""

    name: str
    latitude: float
    longitude: float
    address: Optional[str] = None
    usage_count: int = 0
    business_partner: Optional[str] = None
    id: int = 0


class LocationBook:
    """Saved location commands and lookups."""

    def __init__(self, store: LogbookStore):
        self.store = store

    def get_all(self) -> List[SavedLocation]:
        """Most used first, then by name."""
        return sorted(self.store.all(LOCATIONS), key=lambda loc: (-loc.usage_count, loc.name))

    def _check(self, location: SavedLocation) -> Optional[Result]:
        if not location.name or not location.name.strip():
            return Result.fail(
                ValidationError(ValidationResult({FIELD_NAME: "Name must not be blank"}))
            )
        return None

    def insert(self, location: SavedLocation) -> Result:
        failure = self._check(location)
        if failure is not None:
            return failure
        try:
            stored = self.store.insert(LOCATIONS, replace(location, id=0))
        except Exception as e:
            return Result.fail(StoreError("insert location", e))
        return Result.ok(stored)

    def update(self, location: SavedLocation) -> Result:
        failure = self._check(location)
        if failure is not None:
            return failure
        try:
            with self.store.transaction():
                if self.store.get(LOCATIONS, location.id) is None:
                    return Result.fail(NotFoundError("SavedLocation", location.id))
                stored = self.store.update(LOCATIONS, location)
        except Exception as e:
            return Result.fail(StoreError("update location", e))
        return Result.ok(stored)

    def delete(self, location: SavedLocation) -> Result:
        try:
            removed = self.store.delete(LOCATIONS, location.id)
        except Exception as e:
            return Result.fail(StoreError("delete location", e))
        if not removed:
            return Result.fail(NotFoundError("SavedLocation", location.id))
        return Result.ok(location)

    def find_nearest(
        self, latitude: float, longitude: float, radius_meters: float = 1000.0
    ) -> Optional[SavedLocation]:
        """The closest saved location within the radius, or None."""
        nearest = None
        min_distance = math.inf
        for location in self.store.all(LOCATIONS):
            distance = distance_in_meters(
                latitude, longitude, location.latitude, location.longitude
            )
            if distance <= radius_meters and distance < min_distance:
                min_distance = distance
                nearest = location
        return nearest
