"""TemplateRegistry - saved routes for trips that repeat."""

from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from .errors import NotFoundError, StoreError, ValidationError
from .result import Result
from .store import TRIP_TEMPLATES, LogbookStore
from .template import TripTemplate
from .trip import Trip
from .validation import (
    FIELD_END_LOCATION,
    FIELD_NAME,
    FIELD_START_LOCATION,
    MAX_LOCATION_LENGTH,
    ValidationResult,
)


def _check(template: TripTemplate) -> Optional[Result]:
    errors: Dict[str, str] = {}
    if not template.name or not template.name.strip():
        errors[FIELD_NAME] = "Name must not be blank"
    for key, label, value in (
        (FIELD_START_LOCATION, "Start location", template.start_location),
        (FIELD_END_LOCATION, "End location", template.end_location),
    ):
        if not value or not value.strip():
            errors[key] = f"{label} must not be blank"
        elif len(value) > MAX_LOCATION_LENGTH:
            errors[key] = f"{label} must be at most {MAX_LOCATION_LENGTH} characters"
    if errors:
        return Result.fail(ValidationError(ValidationResult(errors)))
    return None


class TemplateRegistry:
    """Trip template commands and lookups."""

    def __init__(self, store: LogbookStore):
        self.store = store

    def get_all(self) -> List[TripTemplate]:
        return sorted(self.store.all(TRIP_TEMPLATES), key=lambda t: t.name)

    def get_by_id(self, template_id: int) -> Optional[TripTemplate]:
        return self.store.get(TRIP_TEMPLATES, template_id)

    def insert(self, template: TripTemplate) -> Result:
        failure = _check(template)
        if failure is not None:
            return failure
        try:
            stored = self.store.insert(TRIP_TEMPLATES, replace(template, id=0))
        except Exception as e:
            return Result.fail(StoreError("insert template", e))
        return Result.ok(stored)

    def update(self, template: TripTemplate) -> Result:
        failure = _check(template)
        if failure is not None:
            return failure
        try:
            with self.store.transaction():
                if self.get_by_id(template.id) is None:
                    return Result.fail(NotFoundError("TripTemplate", template.id))
                stored = self.store.update(TRIP_TEMPLATES, template)
        except Exception as e:
            return Result.fail(StoreError("update template", e))
        return Result.ok(stored)

    def delete(self, template: TripTemplate) -> Result:
        try:
            removed = self.store.delete(TRIP_TEMPLATES, template.id)
        except Exception as e:
            return Result.fail(StoreError("delete template", e))
        if not removed:
            return Result.fail(NotFoundError("TripTemplate", template.id))
        return Result.ok(template)

    def draft_trip(
        self,
        template_id: int,
        date: datetime,
        start_odometer: Optional[int] = None,
        vehicle_id: Optional[int] = None,
    ) -> Result:
        """
        Build an unsaved trip from a template.

        With a start odometer the end odometer is projected from the
        template distance, so the draft can go straight to
        TripLifecycle.record. An explicit vehicle overrides the template's.
        """
        template = self.get_by_id(template_id)
        if template is None:
            return Result.fail(NotFoundError("TripTemplate", template_id))
        end_odometer = None
        if start_odometer is not None:
            end_odometer = start_odometer + round(template.distance_km)
        notes = template.notes
        if template.business_partner:
            notes = f"{notes}\n{template.business_partner}" if notes else template.business_partner
        return Result.ok(
            Trip(
                date=date,
                start_location=template.start_location,
                end_location=template.end_location,
                distance_km=template.distance_km,
                purpose=template.purpose,
                purpose_id=template.purpose_id,
                notes=notes,
                start_odometer=start_odometer,
                end_odometer=end_odometer,
                vehicle_id=vehicle_id if vehicle_id is not None else template.vehicle_id,
            )
        )
