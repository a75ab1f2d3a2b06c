"""
Field-level validation for trips and vehicles.

Validators are pure: they never touch the store and never raise for business
rule failures. Each returns a ValidationResult mapping field name to a
human-readable message; an empty mapping means valid. Every failing field is
reported, not just the first.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Optional

from .trip import Trip
from .vehicle import Vehicle, normalize_plate

FIELD_START_LOCATION = "startLocation"
FIELD_END_LOCATION = "endLocation"
FIELD_DISTANCE = "distanceKm"
FIELD_PURPOSE = "purpose"
FIELD_DATE = "date"
FIELD_ODOMETER = "odometer"
FIELD_START_ODOMETER = "startOdometer"
FIELD_VEHICLE = "vehicle"
FIELD_ACTIVE_TRIP = "activeTrip"
FIELD_CANCELLATION_REASON = "cancellationReason"

FIELD_MAKE = "make"
FIELD_MODEL = "model"
FIELD_LICENSE_PLATE = "licensePlate"
FIELD_FUEL_TYPE = "fuelType"

FIELD_NAME = "name"

MAX_DISTANCE_KM = 99_999.0
MAX_LOCATION_LENGTH = 200
MAX_PURPOSE_LENGTH = 200
MAX_VEHICLE_FIELD_LENGTH = 100

# German plate: district (1-3 letters), letters (1-2), digits (1-4), optional E/H suffix
LICENSE_PLATE_PATTERN = re.compile(r"^[A-ZÄÖÜ]{1,3}[\s-][A-Z]{1,2}[\s-]\d{1,4}[EH]?$")


@dataclass(frozen=True)
class ValidationResult:
    """Per-field error messages. Empty means valid."""

    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def error_for(self, field_name: str) -> Optional[str]:
        return self.errors.get(field_name)

    @classmethod
    def valid(cls) -> "ValidationResult":
        return cls()

    @classmethod
    def invalid(cls, **field_errors: str) -> "ValidationResult":
        return cls(dict(field_errors))


def _check_location(errors: Dict[str, str], key: str, label: str, value: str) -> None:
    if not value or not value.strip():
        errors[key] = f"{label} must not be blank"
    elif len(value) > MAX_LOCATION_LENGTH:
        errors[key] = f"{label} must be at most {MAX_LOCATION_LENGTH} characters"


def _check_local_date(errors: Dict[str, str], trip: Trip) -> bool:
    if trip.date.tzinfo is not None:
        errors[FIELD_DATE] = "Date must be local time without a time zone"
        return False
    return True


def _check_vehicle_ref(errors: Dict[str, str], trip: Trip) -> None:
    if trip.vehicle_id is None:
        errors[FIELD_VEHICLE] = "Please select a vehicle"


def validate_start(trip: Trip) -> ValidationResult:
    """Validate the fields required to start a trip."""
    errors: Dict[str, str] = {}

    _check_location(errors, FIELD_START_LOCATION, "Start location", trip.start_location)

    if trip.start_odometer is None:
        errors[FIELD_START_ODOMETER] = "Start odometer reading is required"
    elif trip.start_odometer < 0:
        errors[FIELD_START_ODOMETER] = "Odometer reading must not be negative"

    _check_local_date(errors, trip)

    _check_vehicle_ref(errors, trip)

    return ValidationResult(errors)


def validate(trip: Trip, now: Optional[Callable[[], datetime]] = None) -> ValidationResult:
    """
    Validate a completed trip (end of trip or full edit).

    Distance and odometer rules are independent; both may fail together.

    Args:
        now: Clock used for the "date not in the future" rule
    """
    errors: Dict[str, str] = {}
    current = (now or datetime.now)()

    _check_location(errors, FIELD_START_LOCATION, "Start location", trip.start_location)
    _check_location(errors, FIELD_END_LOCATION, "End location", trip.end_location)

    if trip.distance_km is None or trip.distance_km <= 0:
        errors[FIELD_DISTANCE] = "Distance must be greater than 0"
    elif trip.distance_km > MAX_DISTANCE_KM:
        errors[FIELD_DISTANCE] = f"Distance must be at most {MAX_DISTANCE_KM:,.0f} km"

    # Free-text purpose is optional but bounded
    if trip.purpose and len(trip.purpose) > MAX_PURPOSE_LENGTH:
        errors[FIELD_PURPOSE] = f"Purpose must be at most {MAX_PURPOSE_LENGTH} characters"

    if _check_local_date(errors, trip) and trip.date > current:
        errors[FIELD_DATE] = "Date must not be in the future"

    start, end = trip.start_odometer, trip.end_odometer
    if start is None or end is None:
        errors[FIELD_ODOMETER] = "Start and end odometer readings are required"
    elif start < 0 or end <= start:
        errors[FIELD_ODOMETER] = "End odometer must be greater than start odometer"

    _check_vehicle_ref(errors, trip)

    return ValidationResult(errors)


def validate_vehicle(vehicle: Vehicle) -> ValidationResult:
    """Validate vehicle identification fields."""
    errors: Dict[str, str] = {}

    for key, label, value in (
        (FIELD_MAKE, "Make", vehicle.make),
        (FIELD_MODEL, "Model", vehicle.model),
    ):
        if not value or not value.strip():
            errors[key] = f"{label} must not be blank"
        elif len(value) > MAX_VEHICLE_FIELD_LENGTH:
            errors[key] = f"{label} must be at most {MAX_VEHICLE_FIELD_LENGTH} characters"

    if not vehicle.license_plate or not vehicle.license_plate.strip():
        errors[FIELD_LICENSE_PLATE] = "License plate must not be blank"
    elif not LICENSE_PLATE_PATTERN.match(normalize_plate(vehicle.license_plate)):
        errors[FIELD_LICENSE_PLATE] = 'Invalid license plate format (e.g. "B AB 1234")'

    if not vehicle.fuel_type or not vehicle.fuel_type.strip():
        errors[FIELD_FUEL_TYPE] = "Fuel type must not be blank"

    return ValidationResult(errors)
