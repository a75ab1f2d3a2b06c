"""PurposeRegistry - trip categories with unique names."""

from dataclasses import replace
from typing import List, Optional

from .errors import (
    DuplicateError,
    NotFoundError,
    ProtectedDeletionError,
    StoreError,
    ValidationError,
)
from .purpose import TripPurpose
from .result import Result
from .store import PURPOSES, TRIPS, LogbookStore
from .validation import FIELD_NAME, ValidationResult

DEFAULT_PURPOSES = (
    TripPurpose("Geschäftlich", True, "#1E88E5", is_default=True),
    TripPurpose("Privat", False, "#43A047", is_default=True),
    TripPurpose("Arbeitsweg", True, "#FB8C00", is_default=True),
)


class PurposeRegistry:
    """Trip purpose commands. Names are unique (case-sensitive)."""

    def __init__(self, store: LogbookStore):
        self.store = store

    def get_all(self) -> List[TripPurpose]:
        return sorted(self.store.all(PURPOSES), key=lambda p: p.name)

    def get_by_id(self, purpose_id: int) -> Optional[TripPurpose]:
        return self.store.get(PURPOSES, purpose_id)

    def get_by_name(self, name: str) -> Optional[TripPurpose]:
        found = self.store.find(PURPOSES, lambda p: p.name == name)
        return found[0] if found else None

    def trip_count(self, purpose_id: int) -> int:
        return len(self.store.find(TRIPS, lambda t: t.purpose_id == purpose_id))

    def seed_defaults(self) -> List[TripPurpose]:
        """Insert the default purposes into an empty table."""
        if self.store.count(PURPOSES):
            return []
        with self.store.transaction():
            return [self.store.insert(PURPOSES, p) for p in DEFAULT_PURPOSES]

    def _check_name(self, purpose: TripPurpose) -> Optional[Result]:
        if not purpose.name or not purpose.name.strip():
            return Result.fail(
                ValidationError(ValidationResult({FIELD_NAME: "Name must not be blank"}))
            )
        existing = self.get_by_name(purpose.name)
        if existing is not None and existing.id != purpose.id:
            return Result.fail(DuplicateError("TripPurpose", "name", purpose.name))
        return None

    def insert(self, purpose: TripPurpose) -> Result:
        try:
            with self.store.transaction():
                candidate = replace(purpose, id=0)
                failure = self._check_name(candidate)
                if failure is not None:
                    return failure
                stored = self.store.insert(PURPOSES, candidate)
        except Exception as e:
            return Result.fail(StoreError("insert purpose", e))
        return Result.ok(stored)

    def update(self, purpose: TripPurpose) -> Result:
        try:
            with self.store.transaction():
                if self.get_by_id(purpose.id) is None:
                    return Result.fail(NotFoundError("TripPurpose", purpose.id))
                failure = self._check_name(purpose)
                if failure is not None:
                    return failure
                stored = self.store.update(PURPOSES, purpose)
        except Exception as e:
            return Result.fail(StoreError("update purpose", e))
        return Result.ok(stored)

    def delete(self, purpose: TripPurpose) -> Result:
        """
        Remove a purpose unless it is a default or still used by trips.

        The default flag is read from the stored row, not the caller's copy.
        """
        try:
            with self.store.transaction():
                stored = self.get_by_id(purpose.id)
                if stored is None:
                    return Result.fail(NotFoundError("TripPurpose", purpose.id))
                if stored.is_default:
                    return Result.fail(
                        ProtectedDeletionError(
                            "TripPurpose", purpose.id, "default purposes cannot be deleted"
                        )
                    )
                in_use = self.trip_count(purpose.id)
                if in_use:
                    return Result.fail(
                        ProtectedDeletionError(
                            "TripPurpose", purpose.id, f"used by {in_use} trip(s)"
                        )
                    )
                self.store.delete(PURPOSES, purpose.id)
        except Exception as e:
            return Result.fail(StoreError("delete purpose", e))
        return Result.ok(stored)
