"""
VehicleRegistry - validated vehicle commands and the single-primary rule.

At most one vehicle is primary after every command. Clearing the old primary
and setting the new one happen in one store transaction, so subscribers
never observe two primaries (or a transient gap).
"""

import logging
from dataclasses import replace
from typing import List, Optional

from .errors import NotFoundError, StoreError, ValidationError
from .result import Result
from .store import VEHICLES, LogbookStore
from .validation import validate_vehicle
from .vehicle import Vehicle, normalize_plate

logger = logging.getLogger(__name__)


class VehicleRegistry:
    """Vehicle commands and lookups."""

    def __init__(self, store: LogbookStore):
        self.store = store

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_all(self) -> List[Vehicle]:
        """All vehicles, primary first, then by make and model."""
        return sorted(
            self.store.all(VEHICLES),
            key=lambda v: (not v.is_primary, v.make, v.model),
        )

    def get_by_id(self, vehicle_id: int) -> Optional[Vehicle]:
        return self.store.get(VEHICLES, vehicle_id)

    def get_primary(self) -> Optional[Vehicle]:
        primary = self.store.find(VEHICLES, lambda v: v.is_primary)
        return primary[0] if primary else None

    def is_audit_protected(self, vehicle_id: int) -> bool:
        vehicle = self.get_by_id(vehicle_id)
        return vehicle.audit_protected if vehicle else False

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def _clear_primary(self, except_id: Optional[int] = None) -> None:
        self.store.update_where(
            VEHICLES, lambda v: v.is_primary and v.id != except_id, is_primary=False
        )

    def _save(self, vehicle: Vehicle, operation: str) -> Result:
        validation = validate_vehicle(vehicle)
        if not validation.is_valid:
            return Result.fail(ValidationError(validation))

        vehicle = replace(vehicle, license_plate=normalize_plate(vehicle.license_plate))
        try:
            with self.store.transaction():
                if operation == "update" and self.get_by_id(vehicle.id) is None:
                    return Result.fail(NotFoundError("Vehicle", vehicle.id))
                if vehicle.is_primary:
                    # An inserted vehicle gets a fresh id, so every stored primary is cleared
                    keep = vehicle.id if operation == "update" else None
                    self._clear_primary(except_id=keep)
                if operation == "insert":
                    stored = self.store.insert(VEHICLES, replace(vehicle, id=0))
                else:
                    stored = self.store.update(VEHICLES, vehicle)
        except Exception as e:
            return Result.fail(StoreError(f"{operation} vehicle", e))

        if stored.is_primary:
            logger.info("Vehicle %d (%s) is now primary", stored.id, stored.license_plate)
        return Result.ok(stored)

    def insert(self, vehicle: Vehicle) -> Result:
        """Validate and add a vehicle. Returns the stored vehicle."""
        return self._save(vehicle, "insert")

    def update(self, vehicle: Vehicle) -> Result:
        """Validate and replace an existing vehicle."""
        return self._save(vehicle, "update")

    def set_primary(self, vehicle_id: int) -> Result:
        """Make one vehicle the primary and clear the flag on all others."""
        try:
            with self.store.transaction():
                vehicle = self.get_by_id(vehicle_id)
                if vehicle is None:
                    return Result.fail(NotFoundError("Vehicle", vehicle_id))
                self._clear_primary(except_id=vehicle_id)
                stored = self.store.update(VEHICLES, replace(vehicle, is_primary=True))
        except Exception as e:
            return Result.fail(StoreError("set primary vehicle", e))

        logger.info("Vehicle %d is now primary", vehicle_id)
        return Result.ok(stored)

    def delete(self, vehicle: Vehicle) -> Result:
        """Remove a vehicle. Its trips are kept and detached."""
        try:
            removed = self.store.delete(VEHICLES, vehicle.id)
        except Exception as e:
            return Result.fail(StoreError("delete vehicle", e))
        if not removed:
            return Result.fail(NotFoundError("Vehicle", vehicle.id))
        return Result.ok(vehicle)
