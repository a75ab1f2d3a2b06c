#!/usr/bin/env python3
"""Tests for VehicleRegistry and the single-primary rule."""

from dataclasses import replace
from datetime import datetime

import pytest

from triplog import (
    LogbookStore,
    NotFoundError,
    Trip,
    ValidationError,
    Vehicle,
    VehicleRegistry,
)
from triplog.store import TRIPS, VEHICLES
from triplog.validation import FIELD_LICENSE_PLATE


def golf(**kwargs):
    return Vehicle("VW", "Golf", "B AB 1234", "Benzin", **kwargs)


def bmw(**kwargs):
    return Vehicle("BMW", "320d", "M XY 99", "Diesel", **kwargs)


class TestVehicleRegistry:
    """Tests for vehicle commands."""

    @pytest.fixture
    def store(self):
        return LogbookStore()

    @pytest.fixture
    def registry(self, store):
        return VehicleRegistry(store)

    def test_insert(self, registry):
        """Insert assigns the first id."""
        result = registry.insert(golf())
        assert result.is_ok
        assert result.value.id == 1
        assert registry.get_by_id(1).name == "VW Golf"

    def test_insert_normalizes_plate(self, registry):
        """Plates are normalized on insert."""
        stored = registry.insert(Vehicle("VW", "Golf", " b ab 1234 ", "Benzin")).value
        assert stored.license_plate == "B AB 1234"

    def test_insert_invalid_plate(self, registry, store):
        """Invalid plate fails validation and writes nothing."""
        result = registry.insert(Vehicle("VW", "Golf", "12345", "Benzin"))
        assert isinstance(result.error, ValidationError)
        assert FIELD_LICENSE_PLATE in result.error.errors
        assert store.count(VEHICLES) == 0

    def test_second_primary_replaces_first(self, registry):
        """Inserting a new primary demotes the old one."""
        a = registry.insert(golf(is_primary=True)).value
        b = registry.insert(bmw(is_primary=True)).value
        primaries = [v for v in registry.get_all() if v.is_primary]
        assert [v.id for v in primaries] == [b.id]
        assert not registry.get_by_id(a.id).is_primary

    def test_insert_copy_of_primary_clears_it(self, registry):
        """An inserted copy of the primary (same id field) still demotes the original."""
        a = registry.insert(golf(is_primary=True)).value
        c = registry.insert(replace(a, license_plate="M XY 99")).value
        assert c.id != a.id
        primaries = [v for v in registry.get_all() if v.is_primary]
        assert [v.id for v in primaries] == [c.id]
        assert not registry.get_by_id(a.id).is_primary

    def test_set_primary(self, registry):
        """set_primary moves the flag."""
        a = registry.insert(golf(is_primary=True)).value
        b = registry.insert(bmw()).value
        assert registry.set_primary(b.id).is_ok
        assert registry.get_primary().id == b.id
        assert not registry.get_by_id(a.id).is_primary

    def test_set_primary_unknown(self, registry):
        """Unknown id fails and leaves the primary unchanged."""
        registry.insert(golf(is_primary=True))
        result = registry.set_primary(99)
        assert isinstance(result.error, NotFoundError)
        assert registry.get_primary().id == 1

    def test_primary_never_doubled_while_observed(self, registry, store):
        """Observers never see two primaries."""
        counts = []
        store.observe(
            [VEHICLES],
            lambda s: len(s.find(VEHICLES, lambda v: v.is_primary)),
            counts.append,
        )
        registry.insert(golf(is_primary=True))
        registry.insert(bmw(is_primary=True))
        registry.set_primary(1)
        assert max(counts) == 1

    def test_get_all_primary_first(self, registry):
        """Primary vehicle is listed first."""
        registry.insert(golf())
        registry.insert(bmw(is_primary=True))
        assert [v.make for v in registry.get_all()] == ["BMW", "VW"]

    def test_update(self, registry):
        """Update replaces the stored vehicle."""
        stored = registry.insert(golf()).value
        updated = registry.update(replace(stored, notes="Firmenwagen")).value
        assert registry.get_by_id(stored.id).notes == "Firmenwagen"
        assert updated.notes == "Firmenwagen"

    def test_update_unknown(self, registry):
        """Updating a missing vehicle fails with NotFoundError."""
        assert isinstance(registry.update(golf(id=7)).error, NotFoundError)

    def test_is_audit_protected(self, registry):
        """Protection flag lookup; unknown ids are unprotected."""
        registry.insert(golf(audit_protected=True))
        registry.insert(bmw())
        assert registry.is_audit_protected(1)
        assert not registry.is_audit_protected(2)
        assert not registry.is_audit_protected(99)

    def test_delete_detaches_trips(self, registry, store):
        """Deleting a vehicle nulls the vehicle reference on its trips."""
        vehicle = registry.insert(golf()).value
        store.insert(
            TRIPS, Trip(date=datetime(2025, 1, 1), start_location="Berlin", vehicle_id=1)
        )
        assert registry.delete(vehicle).is_ok
        assert registry.get_by_id(vehicle.id) is None
        assert store.get(TRIPS, 1).vehicle_id is None

    def test_delete_unknown(self, registry):
        """Deleting a missing vehicle fails with NotFoundError."""
        assert isinstance(registry.delete(golf(id=3)).error, NotFoundError)
