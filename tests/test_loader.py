#!/usr/bin/env python3
"""Tests for logbook YAML loading and saving."""

from datetime import datetime, timezone

import pytest
import yaml

from triplog import (
    AuditTrail,
    ConfigError,
    LogbookStore,
    SavedLocation,
    Trip,
    TripAuditLog,
    TripPurpose,
    TripTemplate,
    Vehicle,
    create_logbook,
    load_logbook,
    save_logbook,
)
from triplog.loader import _parse_object
from triplog.store import AUDIT_LOG, LOCATIONS, PURPOSES, TRIP_TEMPLATES, TRIPS, VEHICLES


class TestParseObject:
    """Tests for _parse_object dispatch."""

    def test_vehicle(self):
        """licensePlate marks a vehicle; missing flags default to False."""
        obj = _parse_object(
            {
                "id": 1,
                "make": "VW",
                "model": "Golf",
                "licensePlate": "B AB 1234",
                "fuelType": "Benzin",
                "auditProtected": True,
            }
        )
        assert isinstance(obj, Vehicle)
        assert obj.audit_protected
        assert not obj.is_primary

    def test_trip(self):
        """startLocation marks a trip; numbers become floats."""
        obj = _parse_object(
            {
                "id": 3,
                "date": "2025-02-01T08:15:00",
                "startLocation": "Berlin",
                "endLocation": "Potsdam",
                "distanceKm": 35,
                "startOdometer": 1000,
                "endOdometer": 1035,
            }
        )
        assert isinstance(obj, Trip)
        assert obj.date == datetime(2025, 2, 1, 8, 15)
        assert obj.distance_km == 35.0
        assert obj.notes is None

    def test_trip_with_offset_becomes_local(self):
        """A UTC timestamp is stored as naive local wall-clock time."""
        obj = _parse_object(
            {"id": 1, "date": "2025-05-01T06:00:00Z", "startLocation": "Berlin"}
        )
        utc = datetime(2025, 5, 1, 6, 0, tzinfo=timezone.utc)
        expected = utc.astimezone().replace(tzinfo=None)
        assert obj.date.tzinfo is None
        assert obj.date == expected

    def test_cancelled_trip(self):
        """Cancellation fields are read from a trip."""
        obj = _parse_object(
            {
                "id": 4,
                "date": "2025-02-01T08:15:00",
                "startLocation": "Berlin",
                "isCancelled": True,
                "cancellationReason": "Doppelt erfasst",
            }
        )
        assert obj.is_cancelled
        assert obj.cancellation_reason == "Doppelt erfasst"

    def test_template(self):
        """A route without a date is a trip template."""
        obj = _parse_object(
            {
                "id": 2,
                "name": "Pendeln",
                "startLocation": "Berlin",
                "endLocation": "Potsdam",
                "distanceKm": 35,
                "businessPartner": "Kunde A",
            }
        )
        assert isinstance(obj, TripTemplate)
        assert obj.distance_km == 35.0
        assert obj.business_partner == "Kunde A"
        assert obj.route is None

    def test_audit_entry(self):
        """fieldName marks an audit entry."""
        obj = _parse_object(
            {
                "id": 1,
                "tripId": 3,
                "fieldName": "endLocation",
                "oldValue": "A",
                "newValue": "B",
                "changedAt": "2025-02-02T10:00:00",
            }
        )
        assert isinstance(obj, TripAuditLog)
        assert obj.changed_at == datetime(2025, 2, 2, 10, 0)

    def test_purpose(self):
        """isBusinessRelevant marks a purpose."""
        obj = _parse_object({"id": 1, "name": "Privat", "isBusinessRelevant": False})
        assert isinstance(obj, TripPurpose)
        assert not obj.is_business_relevant

    def test_location(self):
        """latitude and longitude mark a saved location."""
        obj = _parse_object({"id": 1, "name": "Büro", "latitude": 52.5, "longitude": 13.4})
        assert isinstance(obj, SavedLocation)

    def test_unknown_returns_dict(self):
        """Anything else stays a dict."""
        assert _parse_object({"foo": 1}) == {"foo": 1}


class TestLoadLogbook:
    """Tests for load_logbook."""

    def test_load(self, tmp_path):
        """Loads every section and continues ids after the highest one."""
        path = tmp_path / "logbook.yaml"
        path.write_text(
            """
vehicles:
  - id: 1
    make: VW
    model: Golf
    licensePlate: B AB 1234
    fuelType: Benzin
    isPrimary: true
purposes:
  - id: 1
    name: Geschäftlich
    isBusinessRelevant: true
trips:
  - id: 7
    date: 2025-02-01T08:15:00
    startLocation: Berlin
    endLocation: Potsdam
    distanceKm: 35.0
    startOdometer: 1000
    endOdometer: 1035
    vehicleId: 1
    purposeId: 1
    businessTrip: true
""",
            encoding="utf-8",
        )
        store = load_logbook(path)
        assert store.count(VEHICLES) == 1
        assert store.get(PURPOSES, 1).name == "Geschäftlich"
        trip = store.get(TRIPS, 7)
        assert trip.date == datetime(2025, 2, 1, 8, 15)
        assert trip.business_trip
        # ids continue after the highest loaded id
        assert store.insert(TRIPS, Trip(date=trip.date, start_location="X")).id == 8

    def test_duplicate_id_is_config_error(self, tmp_path):
        """Two rows with the same id in one section raise ConfigError naming the id and section."""
        path = tmp_path / "logbook.yaml"
        path.write_text(
            """
trips:
  - id: 3
    date: 2025-02-01T08:15:00
    startLocation: Berlin
  - id: 3
    date: 2025-02-02T08:15:00
    startLocation: Potsdam
""",
            encoding="utf-8",
        )
        with pytest.raises(ConfigError, match="Duplicate id 3 in trips"):
            load_logbook(path)

    def test_empty_file(self, tmp_path):
        """An empty file gives an empty store."""
        path = tmp_path / "logbook.yaml"
        path.write_text("")
        store = load_logbook(path)
        assert store.count(TRIPS) == 0

    def test_missing_file(self, tmp_path):
        """A missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_logbook(tmp_path / "nope.yaml")


class TestSaveLogbook:
    """Tests for save_logbook and create_logbook."""

    def test_create_logbook(self, tmp_path):
        """A new logbook has every section, empty."""
        path = tmp_path / "logbook.yaml"
        create_logbook(path)
        data = yaml.safe_load(path.read_text())
        assert data == {
            "vehicles": [],
            "purposes": [],
            "trips": [],
            "auditLog": [],
            "locations": [],
            "tripTemplates": [],
        }

    def test_save_omits_none_and_uses_camel_case(self, tmp_path):
        """None values are omitted and keys are camelCase."""
        store = LogbookStore()
        store.insert(
            TRIPS,
            Trip(date=datetime(2025, 2, 1, 8, 0), start_location="Berlin", start_odometer=1000),
        )
        path = tmp_path / "logbook.yaml"
        save_logbook(path, store)
        trip = yaml.safe_load(path.read_text())["trips"][0]
        assert trip["startLocation"] == "Berlin"
        assert trip["startOdometer"] == 1000
        assert "endOdometer" not in trip
        assert "notes" not in trip

    def test_save_then_load_keeps_everything(self, tmp_path):
        """Every table survives a save and load unchanged."""
        store = LogbookStore()
        store.insert(VEHICLES, Vehicle("VW", "Golf", "B AB 1234", "Benzin", audit_protected=True))
        store.insert(PURPOSES, TripPurpose("Geschäftlich", True, is_default=True))
        store.insert(
            TRIPS,
            Trip(
                date=datetime(2025, 2, 1, 8, 0),
                start_location="Berlin",
                end_location="Potsdam",
                distance_km=35.0,
                start_odometer=1000,
                end_odometer=1035,
                vehicle_id=1,
                end_time=datetime(2025, 2, 1, 9, 0),
            ),
        )
        AuditTrail(store, clock=lambda: datetime(2025, 2, 2, 10, 0)).record_changes(
            1,
            store.get(TRIPS, 1),
            Trip(date=datetime(2025, 2, 1, 8, 0), start_location="Berlin", end_location="Werder"),
        )
        store.insert(LOCATIONS, SavedLocation("Büro", 52.52, 13.405, usage_count=3))
        store.insert(
            TRIP_TEMPLATES,
            TripTemplate("Pendeln", "Berlin", "Potsdam", 35.0, purpose_id=1, route="A115"),
        )
        store.insert(
            TRIPS,
            Trip(
                date=datetime(2025, 2, 3, 8, 0),
                start_location="Potsdam",
                end_location="Berlin",
                distance_km=35.0,
                start_odometer=1035,
                end_odometer=1070,
                vehicle_id=1,
                is_cancelled=True,
                cancellation_reason="Doppelt erfasst",
            ),
        )

        path = tmp_path / "logbook.yaml"
        save_logbook(path, store)
        loaded = load_logbook(path)

        for table in (VEHICLES, PURPOSES, TRIPS, AUDIT_LOG, LOCATIONS, TRIP_TEMPLATES):
            assert loaded.all(table) == store.all(table)
