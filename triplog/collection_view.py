"""
TripCollectionView - read-only aggregates over the trip table.

Every aggregate is a plain query over the store and can also be observed:
the observe_* methods return a Subscription that is re-delivered whenever
trips (or purposes) change. Nothing here writes to the store.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, List, Optional, Union

from dateutil.relativedelta import relativedelta

from .phase import TripPhase
from .store import PURPOSES, TRIPS, LogbookStore, Subscription
from .trip import Trip

DateLike = Union[date, datetime]


@dataclass(frozen=True)
class DistanceByType:
    business_distance_km: float
    private_distance_km: float

    @property
    def total_distance_km(self) -> float:
        return self.business_distance_km + self.private_distance_km


@dataclass(frozen=True)
class MonthlyDistance:
    month: int
    total_distance: float


def _as_datetime(value: DateLike, end_of_day: bool = False) -> datetime:
    if isinstance(value, datetime):
        return value
    if end_of_day:
        return datetime(value.year, value.month, value.day, 23, 59, 59, 999999)
    return datetime(value.year, value.month, value.day)


class TripCollectionView:
    """Counts and sums over trips, derived fresh on every read."""

    def __init__(self, store: LogbookStore):
        self.store = store

    # -------------------------------------------------------------------------
    # Trip lists
    # -------------------------------------------------------------------------

    def all_trips(self) -> List[Trip]:
        """All trips, newest first."""
        return sorted(self.store.all(TRIPS), key=lambda t: (t.date, t.id), reverse=True)

    def completed_trips(self) -> List[Trip]:
        return [t for t in self.all_trips() if t.phase is TripPhase.COMPLETED]

    def ghost_trips(self) -> List[Trip]:
        return [t for t in self.all_trips() if t.phase is TripPhase.GHOST]

    def cancelled_trips(self) -> List[Trip]:
        return [t for t in self.completed_trips() if t.is_cancelled]

    def counted_trips(self) -> List[Trip]:
        """Completed trips that are not cancelled; every distance sum uses these."""
        return [t for t in self.all_trips() if t.counts_toward_distance]

    def business_trips(self) -> List[Trip]:
        return [t for t in self.counted_trips() if t.business_trip]

    def private_trips(self) -> List[Trip]:
        return [t for t in self.counted_trips() if not t.business_trip]

    def trips_in_range(self, start: DateLike, end: DateLike) -> List[Trip]:
        """Trips dated within [start, end]; plain dates cover whole days."""
        lower = _as_datetime(start)
        upper = _as_datetime(end, end_of_day=True)
        return [t for t in self.all_trips() if lower <= t.date <= upper]

    # -------------------------------------------------------------------------
    # Aggregates
    # -------------------------------------------------------------------------

    def ghost_count(self) -> int:
        return len(self.ghost_trips())

    def active_trip(self) -> Optional[Trip]:
        """The running trip, if any (most recently started wins)."""
        active = [t for t in self.all_trips() if t.phase is TripPhase.STARTED]
        return active[0] if active else None

    def total_distance(self) -> float:
        return sum((t.distance_km for t in self.counted_trips()), 0.0)

    def distance_by_type(self) -> DistanceByType:
        return DistanceByType(
            business_distance_km=sum((t.distance_km for t in self.business_trips()), 0.0),
            private_distance_km=sum((t.distance_km for t in self.private_trips()), 0.0),
        )

    def monthly_distance_summary(self, year: int) -> List[MonthlyDistance]:
        """Distance per month of a year, only months that have trips."""
        counted = self.counted_trips()
        summary = []
        month_start = datetime(year, 1, 1)
        for month in range(1, 13):
            month_end = month_start + relativedelta(months=1)
            in_month = [t for t in counted if month_start <= t.date < month_end]
            if in_month:
                summary.append(
                    MonthlyDistance(month, sum((t.distance_km for t in in_month), 0.0))
                )
            month_start = month_end
        return summary

    def trip_count_in_range(self, start: DateLike, end: DateLike) -> int:
        return len(self.trips_in_range(start, end))

    def _business_trips_for_year(self, year: int) -> List[Trip]:
        lower = datetime(year, 1, 1)
        upper = lower + relativedelta(years=1)
        return [t for t in self.business_trips() if lower <= t.date < upper]

    def business_distance_for_year(self, year: int) -> float:
        return sum((t.distance_km for t in self._business_trips_for_year(year)), 0.0)

    def business_trip_count_for_year(self, year: int) -> int:
        return len(self._business_trips_for_year(year))

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def observe(
        self, query: Callable[[], Any], callback: Optional[Callable[[Any], None]] = None
    ) -> Subscription:
        """Observe any zero-argument aggregate of this view."""
        return self.store.observe([TRIPS, PURPOSES], lambda store: query(), callback)

    def observe_ghost_count(self, callback=None) -> Subscription:
        return self.observe(self.ghost_count, callback)

    def observe_active_trip(self, callback=None) -> Subscription:
        return self.observe(self.active_trip, callback)

    def observe_distance_by_type(self, callback=None) -> Subscription:
        return self.observe(self.distance_by_type, callback)

    def observe_monthly_distance(self, year: int, callback=None) -> Subscription:
        return self.observe(lambda: self.monthly_distance_summary(year), callback)

    def observe_trip_count(self, start: DateLike, end: DateLike, callback=None) -> Subscription:
        return self.observe(lambda: self.trip_count_in_range(start, end), callback)
