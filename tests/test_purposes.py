#!/usr/bin/env python3
"""Tests for PurposeRegistry."""

from dataclasses import replace
from datetime import datetime

import pytest

from triplog import (
    DuplicateError,
    LogbookStore,
    NotFoundError,
    ProtectedDeletionError,
    PurposeRegistry,
    Trip,
    TripPurpose,
    ValidationError,
)
from triplog.purposes import DEFAULT_PURPOSES
from triplog.store import PURPOSES, TRIPS


class TestPurposeRegistry:
    """Tests for purpose commands."""

    @pytest.fixture
    def store(self):
        return LogbookStore()

    @pytest.fixture
    def registry(self, store):
        return PurposeRegistry(store)

    def test_seed_defaults(self, registry):
        """Seeding inserts the default purposes."""
        seeded = registry.seed_defaults()
        assert len(seeded) == len(DEFAULT_PURPOSES)
        assert registry.get_by_name("Privat").is_business_relevant is False
        assert all(p.is_default for p in registry.get_all())

    def test_seed_defaults_only_once(self, registry, store):
        """Seeding a non-empty table does nothing."""
        registry.seed_defaults()
        assert registry.seed_defaults() == []
        assert store.count(PURPOSES) == len(DEFAULT_PURPOSES)

    def test_insert_and_sorted(self, registry):
        """Purposes are listed by name."""
        registry.insert(TripPurpose("Werkstatt", False))
        registry.insert(TripPurpose("Kunde", True))
        assert [p.name for p in registry.get_all()] == ["Kunde", "Werkstatt"]

    def test_duplicate_name(self, registry):
        """A second purpose with the same name is refused."""
        registry.insert(TripPurpose("Kunde", True))
        result = registry.insert(TripPurpose("Kunde", False))
        assert isinstance(result.error, DuplicateError)

    def test_blank_name(self, registry):
        """Blank name fails validation."""
        assert isinstance(registry.insert(TripPurpose(" ", True)).error, ValidationError)

    def test_update_keeps_own_name(self, registry):
        """Updating a purpose without renaming is not a duplicate."""
        stored = registry.insert(TripPurpose("Kunde", True)).value
        result = registry.update(replace(stored, color="#000000"))
        assert result.is_ok
        assert registry.get_by_id(stored.id).color == "#000000"

    def test_update_unknown(self, registry):
        """Updating a missing purpose fails with NotFoundError."""
        assert isinstance(registry.update(TripPurpose("X", True, id=9)).error, NotFoundError)

    def test_delete_default_refused(self, registry):
        """Default purposes cannot be deleted."""
        registry.seed_defaults()
        purpose = registry.get_by_name("Privat")
        assert isinstance(registry.delete(purpose).error, ProtectedDeletionError)

    def test_delete_default_checks_stored_row(self, registry, store):
        """A caller copy with is_default cleared cannot delete a default purpose."""
        registry.seed_defaults()
        stale = replace(registry.get_by_name("Privat"), is_default=False)
        result = registry.delete(stale)
        assert isinstance(result.error, ProtectedDeletionError)
        assert store.count(PURPOSES) == len(DEFAULT_PURPOSES)

    def test_delete_unknown(self, registry):
        """Deleting a purpose that is not stored fails with NotFoundError."""
        assert isinstance(registry.delete(TripPurpose("X", True, id=9)).error, NotFoundError)

    def test_delete_in_use_refused(self, registry, store):
        """Purposes still used by trips cannot be deleted."""
        purpose = registry.insert(TripPurpose("Kunde", True)).value
        store.insert(
            TRIPS,
            Trip(date=datetime(2025, 1, 1), start_location="Berlin", purpose_id=purpose.id),
        )
        result = registry.delete(purpose)
        assert isinstance(result.error, ProtectedDeletionError)
        assert "1 trip" in str(result.error)

    def test_delete(self, registry):
        """Unused custom purposes are removed."""
        purpose = registry.insert(TripPurpose("Kunde", True)).value
        assert registry.delete(purpose).is_ok
        assert registry.get_by_id(purpose.id) is None
