"""
TripLifecycle - the trip state machine.

    start() ──> STARTED ──complete()──> COMPLETED ──cancel()──> COMPLETED (storniert)
                   │
                   └──mark_ghost()───> GHOST ──edit()──> COMPLETED / STARTED

Every command validates first, then applies its writes inside one store
transaction. Business failures come back as Result.fail(...) with nothing
written; unexpected store failures come back as Result.fail(StoreError).
"""

import logging
from dataclasses import replace
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from .audit import AuditTrail
from .errors import NotFoundError, ProtectedDeletionError, StoreError, ValidationError
from .phase import TripPhase
from .result import Result
from .store import PURPOSES, TRIPS, VEHICLES, LogbookStore
from .trip import Trip
from .validation import (
    FIELD_ACTIVE_TRIP,
    FIELD_CANCELLATION_REASON,
    ValidationResult,
    validate,
    validate_start,
)

logger = logging.getLogger(__name__)


class StartPolicy(Enum):
    """What to do when a trip is started while another is active on the vehicle."""

    REJECT = "reject"
    GHOST = "ghost"  # Demote the running trip to a ghost


def _start_fields_only(trip: Trip) -> Trip:
    """Clear everything that is only known once a trip has ended."""
    return replace(
        trip, end_location="", end_odometer=None, distance_km=0.0, end_time=None
    )


def _phase_error(message: str) -> Result:
    return Result.fail(ValidationError(ValidationResult({FIELD_ACTIVE_TRIP: message})))


class TripLifecycle:
    """Commands that move trips between phases."""

    def __init__(
        self,
        store: LogbookStore,
        clock: Callable[[], datetime] = datetime.now,
        start_policy: StartPolicy = StartPolicy.REJECT,
        audit: Optional[AuditTrail] = None,
    ):
        self.store = store
        self.clock = clock
        self.start_policy = start_policy
        self.audit = audit or AuditTrail(store, clock)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_trip(self, trip_id: int) -> Optional[Trip]:
        return self.store.get(TRIPS, trip_id)

    def active_trip_for_vehicle(self, vehicle_id: Optional[int]) -> Optional[Trip]:
        """The running trip for a vehicle, if any."""
        active = self.store.find(
            TRIPS, lambda t: t.is_active and t.vehicle_id == vehicle_id
        )
        return active[0] if active else None

    def last_end_odometer(self, vehicle_id: int) -> Optional[int]:
        """End odometer of the most recent completed trip for a vehicle."""
        completed = self.store.find(
            TRIPS,
            lambda t: t.vehicle_id == vehicle_id
            and t.phase is TripPhase.COMPLETED
            and t.end_odometer is not None,
        )
        if not completed:
            return None
        return max(completed, key=lambda t: (t.date, t.id)).end_odometer

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _apply_purpose(self, trip: Trip) -> Trip:
        """Take the business flag from the trip's purpose category, if set."""
        purpose = self.store.get(PURPOSES, trip.purpose_id)
        if purpose is None:
            return trip
        return replace(trip, business_trip=purpose.is_business_relevant)

    def _is_protected(self, *vehicle_ids: Optional[int]) -> bool:
        for vehicle_id in vehicle_ids:
            vehicle = self.store.get(VEHICLES, vehicle_id)
            if vehicle is not None and vehicle.audit_protected:
                return True
        return False

    def _demote(self, trip: Trip) -> Trip:
        ghost = replace(_start_fields_only(trip), is_active=False, is_ghost=True)
        self.store.update(TRIPS, ghost)
        logger.info("Trip %d marked as ghost", trip.id)
        return ghost

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def start(self, draft: Trip) -> Result:
        """
        Create a trip in the STARTED phase.

        Only the start fields are kept; end fields are cleared. If the vehicle
        already has a running trip, the start policy decides whether to refuse
        or to demote the running trip to a ghost.
        """
        validation = validate_start(draft)
        if not validation.is_valid:
            return Result.fail(ValidationError(validation))

        try:
            with self.store.transaction():
                if self.store.get(VEHICLES, draft.vehicle_id) is None:
                    return Result.fail(NotFoundError("Vehicle", draft.vehicle_id))

                running = self.active_trip_for_vehicle(draft.vehicle_id)
                if running is not None:
                    if self.start_policy is StartPolicy.REJECT:
                        return _phase_error(
                            f"Trip {running.id} is still running on this vehicle"
                        )
                    self._demote(running)

                trip = replace(
                    _start_fields_only(draft),
                    id=0,
                    is_active=True,
                    is_ghost=False,
                    is_cancelled=False,
                    cancellation_reason=None,
                )
                stored = self.store.insert(TRIPS, trip)
        except Exception as e:
            return Result.fail(StoreError("start trip", e))

        logger.info("Trip %d started at %s", stored.id, stored.start_location)
        return Result.ok(stored)

    def complete(
        self,
        trip_id: int,
        end_location: str,
        end_odometer: int,
        purpose: str = "",
        notes: Optional[str] = None,
        purpose_id: Optional[int] = None,
    ) -> Result:
        """
        Finish a running trip.

        The distance is always taken from the odometer readings. On any
        validation failure the trip stays active and unchanged.
        """
        try:
            with self.store.transaction():
                trip = self.store.get(TRIPS, trip_id)
                if trip is None:
                    return Result.fail(NotFoundError("Trip", trip_id))
                if trip.phase is not TripPhase.STARTED:
                    return _phase_error(f"Trip {trip_id} is not running")

                distance = 0.0
                if trip.start_odometer is not None and end_odometer is not None:
                    distance = float(end_odometer - trip.start_odometer)

                completed = replace(
                    trip,
                    end_location=end_location,
                    end_odometer=end_odometer,
                    distance_km=distance,
                    purpose=purpose,
                    purpose_id=purpose_id,
                    notes=notes if notes is not None else trip.notes,
                    is_active=False,
                    is_ghost=False,
                    end_time=self.clock(),
                )
                completed = self._apply_purpose(completed)

                validation = validate(completed, now=self.clock)
                if not validation.is_valid:
                    return Result.fail(ValidationError(validation))

                self.store.update(TRIPS, completed)
        except Exception as e:
            return Result.fail(StoreError("complete trip", e))

        logger.info("Trip %d completed: %.1f km", trip_id, completed.distance_km)
        return Result.ok(completed)

    def mark_ghost(self, trip_id: int) -> Result:
        """Abandon a running trip. The row is kept for later reconciliation."""
        try:
            with self.store.transaction():
                trip = self.store.get(TRIPS, trip_id)
                if trip is None:
                    return Result.fail(NotFoundError("Trip", trip_id))
                if trip.phase is TripPhase.GHOST:
                    return Result.ok(trip)
                if trip.phase is not TripPhase.STARTED:
                    return _phase_error(f"Trip {trip_id} is already completed")
                ghost = self._demote(trip)
        except Exception as e:
            return Result.fail(StoreError("mark trip as ghost", e))
        return Result.ok(ghost)

    def record(self, trip: Trip) -> Result:
        """Insert an already finished trip, e.g. one entered after the fact."""
        completed = self._apply_purpose(
            replace(
                trip,
                id=0,
                is_active=False,
                is_ghost=False,
                is_cancelled=False,
                cancellation_reason=None,
            )
        )
        if completed.odometer_distance is not None:
            completed = replace(completed, distance_km=completed.odometer_distance)

        validation = validate(completed, now=self.clock)
        if not validation.is_valid:
            return Result.fail(ValidationError(validation))

        try:
            with self.store.transaction():
                if self.store.get(VEHICLES, completed.vehicle_id) is None:
                    return Result.fail(NotFoundError("Vehicle", completed.vehicle_id))
                stored = self.store.insert(TRIPS, completed)
        except Exception as e:
            return Result.fail(StoreError("record trip", e))
        return Result.ok(stored)

    def edit(self, existing_trip: Trip, new_trip: Trip) -> Result:
        """
        Replace a trip's fields.

        Target phase depends on the current phase:
        - COMPLETED stays completed (full validation)
        - STARTED stays started (start validation)
        - GHOST becomes STARTED if new_trip.is_active, else COMPLETED

        A STARTED target keeps only its start fields. Cancellation state is
        taken from the stored trip; use cancel() to change it.

        When the trip's vehicle is audit-protected, one audit entry per changed
        field is written in the same transaction as the update.
        """
        trip_id = existing_trip.id
        try:
            with self.store.transaction():
                current = self.store.get(TRIPS, trip_id)
                if current is None:
                    return Result.fail(NotFoundError("Trip", trip_id))

                to_started = current.phase is TripPhase.STARTED or (
                    current.phase is TripPhase.GHOST and new_trip.is_active
                )
                target = replace(
                    new_trip,
                    id=trip_id,
                    is_active=to_started,
                    is_ghost=False,
                    is_cancelled=current.is_cancelled,
                    cancellation_reason=current.cancellation_reason,
                )
                target = self._apply_purpose(target)

                if to_started:
                    target = _start_fields_only(target)
                    validation = validate_start(target)
                else:
                    if target.odometer_distance is not None:
                        target = replace(target, distance_km=target.odometer_distance)
                    validation = validate(target, now=self.clock)
                if not validation.is_valid:
                    return Result.fail(ValidationError(validation))

                if target.vehicle_id != current.vehicle_id:
                    if self.store.get(VEHICLES, target.vehicle_id) is None:
                        return Result.fail(NotFoundError("Vehicle", target.vehicle_id))

                if to_started and current.phase is TripPhase.GHOST:
                    running = self.active_trip_for_vehicle(target.vehicle_id)
                    if running is not None:
                        return _phase_error(
                            f"Trip {running.id} is still running on this vehicle"
                        )

                if self._is_protected(current.vehicle_id, target.vehicle_id):
                    self.audit.record_changes(trip_id, current, target)
                self.store.update(TRIPS, target)
        except Exception as e:
            return Result.fail(StoreError("edit trip", e))

        logger.info("Trip %d edited (%s -> %s)", trip_id, current.phase.value, target.phase.value)
        return Result.ok(target)

    def cancel(self, trip_id: int, reason: str) -> Result:
        """
        Void a completed trip (Storno) without removing it.

        The row stays in the logbook with its reason and no longer counts
        toward distance totals. This is the way to take back a trip on an
        audit-protected vehicle, where deletion is refused; the change is
        audited like an edit.
        """
        if not reason or not reason.strip():
            return Result.fail(
                ValidationError(
                    ValidationResult(
                        {FIELD_CANCELLATION_REASON: "A cancellation reason is required"}
                    )
                )
            )
        try:
            with self.store.transaction():
                current = self.store.get(TRIPS, trip_id)
                if current is None:
                    return Result.fail(NotFoundError("Trip", trip_id))
                if current.phase is not TripPhase.COMPLETED:
                    return _phase_error(f"Trip {trip_id} is not completed")
                if current.is_cancelled:
                    return Result.fail(
                        ValidationError(
                            ValidationResult(
                                {FIELD_CANCELLATION_REASON: f"Trip {trip_id} is already cancelled"}
                            )
                        )
                    )

                cancelled = replace(
                    current, is_cancelled=True, cancellation_reason=reason.strip()
                )
                if self._is_protected(current.vehicle_id):
                    self.audit.record_changes(trip_id, current, cancelled)
                self.store.update(TRIPS, cancelled)
        except Exception as e:
            return Result.fail(StoreError("cancel trip", e))

        logger.info("Trip %d cancelled: %s", trip_id, cancelled.cancellation_reason)
        return Result.ok(cancelled)

    def delete(self, trip: Trip) -> Result:
        """Remove a trip and its audit log, unless its vehicle is audit-protected."""
        try:
            with self.store.transaction():
                current = self.store.get(TRIPS, trip.id)
                if current is None:
                    return Result.fail(NotFoundError("Trip", trip.id))
                if self._is_protected(current.vehicle_id):
                    return Result.fail(
                        ProtectedDeletionError(
                            "Trip", trip.id, "vehicle is audit-protected"
                        )
                    )
                self.store.delete(TRIPS, trip.id)
        except Exception as e:
            return Result.fail(StoreError("delete trip", e))

        logger.info("Trip %d deleted", trip.id)
        return Result.ok(current)
