#!/usr/bin/env python3
"""Tests for LogbookStore transactions, cascades and subscriptions."""

from datetime import datetime

import pytest

from triplog import LogbookStore, Trip, TripAuditLog, TripPurpose, TripTemplate, Vehicle
from triplog.store import AUDIT_LOG, PURPOSES, TABLES, TRIP_TEMPLATES, TRIPS, VEHICLES


def make_trip(**kwargs):
    return Trip(date=datetime(2025, 5, 1, 9, 0), start_location="Berlin", **kwargs)


class TestCrud:
    """Tests for keyed CRUD."""

    @pytest.fixture
    def store(self):
        return LogbookStore()

    def test_insert_assigns_ids(self, store):
        """Id 0 gets the next free id."""
        first = store.insert(TRIPS, make_trip())
        second = store.insert(TRIPS, make_trip())
        assert (first.id, second.id) == (1, 2)
        assert store.count(TRIPS) == 2

    def test_insert_with_explicit_id_advances_counter(self, store):
        """An explicit id moves the counter past it."""
        store.insert(TRIPS, make_trip(id=10))
        assert store.insert(TRIPS, make_trip()).id == 11

    def test_insert_duplicate_id_raises(self, store):
        """Inserting an existing id raises KeyError."""
        store.insert(TRIPS, make_trip(id=3))
        with pytest.raises(KeyError):
            store.insert(TRIPS, make_trip(id=3))

    def test_trip_templates_table(self, store):
        """Templates have their own table with its own id sequence."""
        assert TRIP_TEMPLATES in TABLES
        store.insert(TRIPS, make_trip())
        template = store.insert(TRIP_TEMPLATES, TripTemplate("Pendeln", "Berlin", "Potsdam", 35.0))
        assert template.id == 1

    def test_get_returns_copy(self, store):
        """Mutating a returned entity does not touch the store."""
        stored = store.insert(TRIPS, make_trip())
        copy = store.get(TRIPS, stored.id)
        copy.start_location = "Hamburg"
        assert store.get(TRIPS, stored.id).start_location == "Berlin"

    def test_get_none_and_missing(self, store):
        """None and unknown ids return None."""
        assert store.get(TRIPS, None) is None
        assert store.get(TRIPS, 99) is None

    def test_update_missing_raises(self, store):
        """Updating a missing id raises KeyError."""
        with pytest.raises(KeyError):
            store.update(TRIPS, make_trip(id=5))

    def test_all_in_id_order(self, store):
        """all() is ordered by id."""
        store.insert(TRIPS, make_trip(id=3))
        store.insert(TRIPS, make_trip(id=1))
        assert [t.id for t in store.all(TRIPS)] == [1, 3]

    def test_update_where(self, store):
        """update_where changes matching rows and returns the count."""
        store.insert(VEHICLES, Vehicle("VW", "Golf", "B AB 1", "Benzin", is_primary=True))
        store.insert(VEHICLES, Vehicle("BMW", "3er", "M AB 2", "Diesel", is_primary=True))
        count = store.update_where(VEHICLES, lambda v: v.id != 2, is_primary=False)
        assert count == 1
        assert [v.is_primary for v in store.all(VEHICLES)] == [False, True]


class TestCascades:
    """Tests for delete cascades."""

    @pytest.fixture
    def store(self):
        store = LogbookStore()
        store.insert(VEHICLES, Vehicle("VW", "Golf", "B AB 1234", "Benzin"))
        store.insert(PURPOSES, TripPurpose("Kunde", True))
        store.insert(TRIPS, make_trip(vehicle_id=1, purpose_id=1))
        store.insert(
            AUDIT_LOG, TripAuditLog(1, "endLocation", "A", "B", datetime(2025, 5, 2))
        )
        return store

    def test_trip_delete_removes_audit_rows(self, store):
        """Deleting a trip removes its audit entries."""
        assert store.delete(TRIPS, 1)
        assert store.count(AUDIT_LOG) == 0

    def test_vehicle_delete_detaches_trips(self, store):
        """Deleting a vehicle nulls the trip reference."""
        store.delete(VEHICLES, 1)
        assert store.get(TRIPS, 1).vehicle_id is None

    def test_purpose_delete_detaches_trips(self, store):
        """Deleting a purpose nulls the trip reference."""
        store.delete(PURPOSES, 1)
        assert store.get(TRIPS, 1).purpose_id is None

    def test_delete_missing(self, store):
        """Deleting a missing id returns False."""
        assert store.delete(TRIPS, 42) is False


class TestTransactions:
    """Tests for atomic transactions."""

    @pytest.fixture
    def store(self):
        return LogbookStore()

    def test_rollback_on_exception(self, store):
        """A failing block restores rows and id counters."""
        store.insert(TRIPS, make_trip())
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.insert(TRIPS, make_trip())
                store.delete(TRIPS, 1)
                raise RuntimeError("boom")
        assert [t.id for t in store.all(TRIPS)] == [1]
        # id counter is restored too
        assert store.insert(TRIPS, make_trip()).id == 2

    def test_nested_transaction_joins_outer(self, store):
        """Inner transactions roll back with the outer one."""
        with pytest.raises(ValueError):
            with store.transaction():
                with store.transaction():
                    store.insert(TRIPS, make_trip())
                raise ValueError()
        assert store.count(TRIPS) == 0


class TestSubscriptions:
    """Tests for observe / notify."""

    @pytest.fixture
    def store(self):
        return LogbookStore()

    def test_delivers_current_value_immediately(self, store):
        """observe() delivers the current value right away."""
        seen = []
        store.observe([TRIPS], lambda s: s.count(TRIPS), seen.append)
        assert seen == [0]

    def test_redelivers_after_commit(self, store):
        """A commit to a watched table re-runs the query."""
        seen = []
        sub = store.observe([TRIPS], lambda s: s.count(TRIPS), seen.append)
        store.insert(TRIPS, make_trip())
        assert seen == [0, 1]
        assert sub.latest == 1
        assert sub.deliveries == 2

    def test_one_delivery_per_transaction(self, store):
        """Several writes in one transaction notify once."""
        seen = []
        store.observe([TRIPS], lambda s: s.count(TRIPS), seen.append)
        with store.transaction():
            store.insert(TRIPS, make_trip())
            store.insert(TRIPS, make_trip())
        assert seen == [0, 2]

    def test_unrelated_table_does_not_notify(self, store):
        """Writes to other tables do not notify."""
        seen = []
        store.observe([TRIPS], lambda s: s.count(TRIPS), seen.append)
        store.insert(PURPOSES, TripPurpose("Kunde", True))
        assert seen == [0]

    def test_rolled_back_transaction_does_not_notify(self, store):
        """Rolled back writes do not notify."""
        seen = []
        store.observe([TRIPS], lambda s: s.count(TRIPS), seen.append)
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.insert(TRIPS, make_trip())
                raise RuntimeError()
        assert seen == [0]

    def test_cancel_stops_delivery(self, store):
        """A cancelled subscription gets nothing more."""
        seen = []
        sub = store.observe([TRIPS], lambda s: s.count(TRIPS), seen.append)
        sub.cancel()
        store.insert(TRIPS, make_trip())
        assert seen == [0]
        assert not sub.active
