"""YAML loading and saving utilities for logbook data."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dateutil.parser import isoparse

from .audit_log import TripAuditLog
from .errors import ConfigError
from .location import SavedLocation
from .purpose import DEFAULT_COLOR, TripPurpose
from .store import (
    AUDIT_LOG,
    LOCATIONS,
    PURPOSES,
    TRIP_TEMPLATES,
    TRIPS,
    VEHICLES,
    LogbookStore,
)
from .template import TripTemplate
from .trip import Trip, local_naive
from .vehicle import Vehicle

# Top-level YAML keys for each store table
SECTIONS = {
    "vehicles": VEHICLES,
    "purposes": PURPOSES,
    "trips": TRIPS,
    "auditLog": AUDIT_LOG,
    "locations": LOCATIONS,
    "tripTemplates": TRIP_TEMPLATES,
}


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    # Offsets are folded into local wall-clock time
    return local_naive(isoparse(str(value)))


def _parse_object(
    dct: Dict[str, Any]
) -> Union[Vehicle, TripPurpose, Trip, TripTemplate, TripAuditLog, SavedLocation, dict]:
    """Parse dictionary into appropriate object type."""
    # Vehicle
    if "licensePlate" in dct:
        return Vehicle(
            dct["make"],
            dct["model"],
            dct["licensePlate"],
            dct["fuelType"],
            dct.get("isPrimary", False),
            dct.get("auditProtected", False),
            dct.get("notes"),
            dct.get("id", 0),
        )
    # Audit log entry
    elif "fieldName" in dct:
        return TripAuditLog(
            dct["tripId"],
            dct["fieldName"],
            dct.get("oldValue"),
            dct.get("newValue"),
            _parse_datetime(dct["changedAt"]),
            dct.get("id", 0),
        )
    # Trip template (a route without a date)
    elif "startLocation" in dct and "date" not in dct:
        return TripTemplate(
            name=dct["name"],
            start_location=dct["startLocation"],
            end_location=dct["endLocation"],
            distance_km=float(dct.get("distanceKm", 0.0)),
            purpose=dct.get("purpose", ""),
            purpose_id=dct.get("purposeId"),
            notes=dct.get("notes"),
            vehicle_id=dct.get("vehicleId"),
            business_partner=dct.get("businessPartner"),
            route=dct.get("route"),
            id=dct.get("id", 0),
        )
    # Trip
    elif "startLocation" in dct:
        return Trip(
            date=_parse_datetime(dct["date"]),
            start_location=dct["startLocation"],
            end_location=dct.get("endLocation", ""),
            distance_km=float(dct.get("distanceKm", 0.0)),
            purpose=dct.get("purpose", ""),
            purpose_id=dct.get("purposeId"),
            business_trip=dct.get("businessTrip", False),
            notes=dct.get("notes"),
            start_odometer=dct.get("startOdometer"),
            end_odometer=dct.get("endOdometer"),
            vehicle_id=dct.get("vehicleId"),
            is_cancelled=dct.get("isCancelled", False),
            cancellation_reason=dct.get("cancellationReason"),
            is_active=dct.get("isActive", False),
            is_ghost=dct.get("isGhost", False),
            end_time=_parse_datetime(dct.get("endTime")),
            id=dct.get("id", 0),
        )
    # Trip purpose
    elif "isBusinessRelevant" in dct:
        return TripPurpose(
            dct["name"],
            dct["isBusinessRelevant"],
            dct.get("color", DEFAULT_COLOR),
            dct.get("isDefault", False),
            dct.get("id", 0),
        )
    # Saved location
    elif "latitude" in dct and "longitude" in dct:
        return SavedLocation(
            dct["name"],
            dct["latitude"],
            dct["longitude"],
            dct.get("address"),
            dct.get("usageCount", 0),
            dct.get("businessPartner"),
            dct.get("id", 0),
        )
    else:
        # Return dict as-is for the top-level document
        return dct


def load_logbook(filename: Union[str, Path]) -> LogbookStore:
    """Load a logbook YAML file into a fresh store."""
    with open(filename, "rb") as fp:
        raw = yaml.load(fp, Loader=yaml.SafeLoader) or {}
    # Unquoted timestamps come back as datetimes; round-trip them as strings
    json_data = json.dumps(raw, indent=4, default=str)
    data = json.loads(json_data, object_hook=_parse_object)

    store = LogbookStore()
    with store.transaction():
        for key, table in SECTIONS.items():
            for entity in data.get(key) or []:
                try:
                    store.insert(table, entity)
                except KeyError:
                    raise ConfigError(
                        f"Duplicate id {entity.id} in {key} of {filename}"
                    ) from None
    return store


def _compact(d: Dict[str, Any]) -> Dict[str, Any]:
    """Drop None values for cleaner YAML."""
    return {key: value for key, value in d.items() if value is not None}


def _vehicle_to_dict(vehicle: Vehicle) -> Dict[str, Any]:
    return _compact(
        {
            "id": vehicle.id,
            "make": vehicle.make,
            "model": vehicle.model,
            "licensePlate": vehicle.license_plate,
            "fuelType": vehicle.fuel_type,
            "isPrimary": vehicle.is_primary,
            "auditProtected": vehicle.audit_protected,
            "notes": vehicle.notes,
        }
    )


def _purpose_to_dict(purpose: TripPurpose) -> Dict[str, Any]:
    return {
        "id": purpose.id,
        "name": purpose.name,
        "isBusinessRelevant": purpose.is_business_relevant,
        "color": purpose.color,
        "isDefault": purpose.is_default,
    }


def _trip_to_dict(trip: Trip) -> Dict[str, Any]:
    return _compact(
        {
            "id": trip.id,
            "date": trip.date.isoformat(),
            "startLocation": trip.start_location,
            "endLocation": trip.end_location,
            "distanceKm": trip.distance_km,
            "purpose": trip.purpose,
            "purposeId": trip.purpose_id,
            "businessTrip": trip.business_trip,
            "notes": trip.notes,
            "startOdometer": trip.start_odometer,
            "endOdometer": trip.end_odometer,
            "vehicleId": trip.vehicle_id,
            "isCancelled": trip.is_cancelled,
            "cancellationReason": trip.cancellation_reason,
            "isActive": trip.is_active,
            "isGhost": trip.is_ghost,
            "endTime": trip.end_time.isoformat() if trip.end_time else None,
        }
    )


def _audit_log_to_dict(entry: TripAuditLog) -> Dict[str, Any]:
    return _compact(
        {
            "id": entry.id,
            "tripId": entry.trip_id,
            "fieldName": entry.field_name,
            "oldValue": entry.old_value,
            "newValue": entry.new_value,
            "changedAt": entry.changed_at.isoformat(),
        }
    )


def _location_to_dict(location: SavedLocation) -> Dict[str, Any]:
    return _compact(
        {
            "id": location.id,
            "name": location.name,
            "latitude": location.latitude,
            "longitude": location.longitude,
            "address": location.address,
            "usageCount": location.usage_count,
            "businessPartner": location.business_partner,
        }
    )


def _template_to_dict(template: TripTemplate) -> Dict[str, Any]:
    return _compact(
        {
            "id": template.id,
            "name": template.name,
            "startLocation": template.start_location,
            "endLocation": template.end_location,
            "distanceKm": template.distance_km,
            "purpose": template.purpose,
            "purposeId": template.purpose_id,
            "notes": template.notes,
            "vehicleId": template.vehicle_id,
            "businessPartner": template.business_partner,
            "route": template.route,
        }
    )


SERIALIZERS = {
    VEHICLES: _vehicle_to_dict,
    PURPOSES: _purpose_to_dict,
    TRIPS: _trip_to_dict,
    AUDIT_LOG: _audit_log_to_dict,
    LOCATIONS: _location_to_dict,
    TRIP_TEMPLATES: _template_to_dict,
}


def _write_yaml(filename: Union[str, Path], data: Dict[str, Any]) -> None:
    with open(filename, "w") as fp:
        yaml.dump(
            data,
            fp,
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
            width=120,
        )


def save_logbook(filename: Union[str, Path], store: LogbookStore) -> None:
    """Write every table of the store to a logbook YAML file."""
    data = {
        key: [SERIALIZERS[table](entity) for entity in store.all(table)]
        for key, table in SECTIONS.items()
    }
    _write_yaml(filename, data)


def create_logbook(filename: Union[str, Path]) -> None:
    """Create an empty logbook YAML file."""
    _write_yaml(filename, {key: [] for key in SECTIONS})
