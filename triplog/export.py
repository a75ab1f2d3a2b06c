"""CSV export of completed trips for the tax office."""

import csv
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Set, Union

from .audit import AuditTrail
from .collection_view import TripCollectionView
from .phase import TripPhase
from .store import PURPOSES, VEHICLES, LogbookStore
from .trip import Trip

DATE_FORMAT = "%d.%m.%Y"

HEADERS = [
    "Datum",
    "Startort",
    "Zielort",
    "Distanz (km)",
    "Zweck",
    "Kategorie",
    "Geschäftlich",
    "Fahrzeug",
    "Kennzeichen",
    "Km-Stand Start",
    "Km-Stand Ende",
    "Notizen",
    "Storniert",
    "Stornogrund",
]


@dataclass
class ExportConfig:
    date_from: date
    date_to: date
    vehicle_id: Optional[int] = None
    purpose_ids: Set[int] = field(default_factory=set)  # empty = all purposes
    include_audit_log: bool = False
    driver_name: str = ""

    @property
    def file_name(self) -> str:
        return f"fahrtenbuch_{self.date_from.isoformat()}_{self.date_to.isoformat()}.csv"


def select_trips(store: LogbookStore, config: ExportConfig) -> List[Trip]:
    """Completed trips in the configured range, oldest first. Cancelled trips stay in."""
    trips = TripCollectionView(store).trips_in_range(config.date_from, config.date_to)
    selected = [
        t
        for t in trips
        if t.phase is TripPhase.COMPLETED
        and (config.vehicle_id is None or t.vehicle_id == config.vehicle_id)
        and (not config.purpose_ids or t.purpose_id in config.purpose_ids)
    ]
    return sorted(selected, key=lambda t: (t.date, t.id))


def _optional(value) -> str:
    return "" if value is None else str(value)


def export_csv(
    store: LogbookStore, config: ExportConfig, directory: Union[str, Path]
) -> Path:
    """
    Write the export file into a directory and return its path.

    Semicolon separated, UTF-8 with BOM so spreadsheet tools pick the encoding.
    """
    trips = select_trips(store, config)
    vehicles = {v.id: v for v in store.all(VEHICLES)}
    purposes = {p.id: p for p in store.all(PURPOSES)}

    path = Path(directory) / config.file_name
    with open(path, "w", encoding="utf-8-sig", newline="") as fp:
        writer = csv.writer(fp, delimiter=";", lineterminator="\n")

        if config.driver_name.strip():
            writer.writerow(["Fahrer", config.driver_name])

        protected = [v for v in vehicles.values() if v.audit_protected]
        if protected:
            writer.writerow(["--- Änderungssicher geführte Fahrzeuge ---"])
            for vehicle in protected:
                writer.writerow([vehicle.name, vehicle.license_plate])
            writer.writerow([])

        writer.writerow(HEADERS)
        for trip in trips:
            purpose = purposes.get(trip.purpose_id)
            vehicle = vehicles.get(trip.vehicle_id)
            writer.writerow(
                [
                    trip.date.strftime(DATE_FORMAT),
                    trip.start_location,
                    trip.end_location,
                    f"{trip.distance_km:.2f}",
                    trip.purpose,
                    purpose.name if purpose else "",
                    "Ja" if trip.business_trip else "Nein",
                    vehicle.name if vehicle else "",
                    vehicle.license_plate if vehicle else "",
                    _optional(trip.start_odometer),
                    _optional(trip.end_odometer),
                    _optional(trip.notes),
                    "STORNIERT" if trip.is_cancelled else "",
                    _optional(trip.cancellation_reason),
                ]
            )

        if config.include_audit_log:
            audit = AuditTrail(store)
            logs: Dict[int, list] = {
                t.id: audit.get_audit_log_for_trip(t.id) for t in trips
            }
            if any(logs.values()):
                writer.writerow([])
                writer.writerow(["--- Änderungsprotokoll ---"])
                writer.writerow(["Fahrt-ID", "Feld", "Alter Wert", "Neuer Wert", "Geändert am"])
                for trip_id, entries in logs.items():
                    for entry in entries:
                        writer.writerow(
                            [
                                trip_id,
                                entry.field_name,
                                _optional(entry.old_value),
                                _optional(entry.new_value),
                                entry.changed_at.strftime(DATE_FORMAT),
                            ]
                        )
    return path
