"""
Vehicle trip logbook for commuter allowance reporting.

This package provides the trip lifecycle and mileage integrity rules:
- Trip, Vehicle, TripPurpose, TripAuditLog, SavedLocation, TripTemplate: data models
- validation: field-level rules for trips and vehicles
- TripLifecycle: start / complete / ghost / edit / cancel / delete commands
- AuditTrail: field-level change log for audit-protected vehicles
- VehicleRegistry: vehicle commands and the single-primary rule
- PurposeRegistry, LocationBook: trip categories and saved places
- TemplateRegistry: saved routes that prefill new trips
- MileageAllowanceCalculator: tiered Entfernungspauschale amounts
- TripCollectionView: live counts and distance sums
- LogbookStore + loader: in-memory store persisted as YAML
"""

from .phase import TripPhase
from .trip import Trip, local_naive
from .template import TripTemplate
from .vehicle import Vehicle, normalize_plate
from .purpose import TripPurpose
from .audit_log import TripAuditLog
from .errors import (
    TripLogError,
    ValidationError,
    ProtectedDeletionError,
    NotFoundError,
    DuplicateError,
    StoreError,
    ConfigError,
)
from .result import Result
from .validation import ValidationResult, validate, validate_start, validate_vehicle
from .store import LogbookStore, Subscription
from .audit import AuditTrail
from .lifecycle import StartPolicy, TripLifecycle
from .registry import VehicleRegistry
from .purposes import PurposeRegistry
from .templates import TemplateRegistry
from .location import LocationBook, SavedLocation, distance_in_meters
from .allowance import (
    DEFAULT_RATES,
    MileageAllowanceCalculator,
    MileageRates,
    MileageResult,
    load_rates,
)
from .collection_view import DistanceByType, MonthlyDistance, TripCollectionView
from .loader import create_logbook, load_logbook, save_logbook
from .export import ExportConfig, export_csv
from .settings import Settings

__all__ = [
    "TripPhase",
    "Trip",
    "local_naive",
    "TripTemplate",
    "Vehicle",
    "normalize_plate",
    "TripPurpose",
    "TripAuditLog",
    "TripLogError",
    "ValidationError",
    "ProtectedDeletionError",
    "NotFoundError",
    "DuplicateError",
    "StoreError",
    "ConfigError",
    "Result",
    "ValidationResult",
    "validate",
    "validate_start",
    "validate_vehicle",
    "LogbookStore",
    "Subscription",
    "AuditTrail",
    "StartPolicy",
    "TripLifecycle",
    "VehicleRegistry",
    "PurposeRegistry",
    "TemplateRegistry",
    "LocationBook",
    "SavedLocation",
    "distance_in_meters",
    "DEFAULT_RATES",
    "MileageAllowanceCalculator",
    "MileageRates",
    "MileageResult",
    "load_rates",
    "DistanceByType",
    "MonthlyDistance",
    "TripCollectionView",
    "create_logbook",
    "load_logbook",
    "save_logbook",
    "ExportConfig",
    "export_csv",
    "Settings",
]
