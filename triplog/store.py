"""
In-memory keyed store for logbook data.

Provides what the lifecycle and registries need from persistence:
- keyed CRUD per table with autoincrement ids
- all-or-nothing transactions (re-entrant, one writer at a time)
- reactive subscriptions re-delivered after each commit that touches
  a watched table

Stored entities are copied on the way in and on the way out, so callers
never hold a reference to canonical state.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Set

logger = logging.getLogger(__name__)

VEHICLES = "vehicles"
TRIPS = "trips"
AUDIT_LOG = "audit_log"
PURPOSES = "purposes"
LOCATIONS = "locations"
TRIP_TEMPLATES = "trip_templates"

TABLES = (VEHICLES, TRIPS, AUDIT_LOG, PURPOSES, LOCATIONS, TRIP_TEMPLATES)


class Subscription:
    """A live query. Holds the latest delivered value until cancelled."""

    def __init__(
        self,
        store: "LogbookStore",
        tables: Set[str],
        query: Callable[["LogbookStore"], Any],
        callback: Optional[Callable[[Any], None]] = None,
    ):
        self._store = store
        self.tables = tables
        self._query = query
        self._callback = callback
        self._delivery_lock = threading.Lock()
        self.active = True
        self.latest: Any = None
        self.deliveries = 0

    def deliver(self) -> None:
        """Re-run the query and hand the value to the callback."""
        # One delivery at a time per subscriber
        with self._delivery_lock:
            if not self.active:
                return
            value = self._query(self._store)
            self.latest = value
            self.deliveries += 1
            if self._callback is not None:
                self._callback(value)

    def cancel(self) -> None:
        self.active = False
        self._store._unsubscribe(self)


class LogbookStore:
    """Tables of entities keyed by integer id."""

    def __init__(self):
        self._tables: Dict[str, Dict[int, Any]] = {name: {} for name in TABLES}
        self._next_ids: Dict[str, int] = {name: 1 for name in TABLES}
        self._lock = threading.RLock()
        self._depth = 0
        self._dirty: Set[str] = set()
        self._subscriptions: List[Subscription] = []

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator["LogbookStore"]:
        """
        Run a block of writes atomically.

        Nested transactions join the outermost one. If the block raises, every
        table is restored to its state before the outermost transaction began
        and the exception propagates. Subscribers are notified only after the
        outermost transaction commits.
        """
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                snapshot = {name: dict(rows) for name, rows in self._tables.items()}
                ids_snapshot = dict(self._next_ids)
            self._depth += 1
            try:
                yield self
            except BaseException:
                if outermost:
                    self._tables = snapshot
                    self._next_ids = ids_snapshot
                    self._dirty = set()
                    logger.debug("Transaction rolled back")
                raise
            finally:
                self._depth -= 1
            if not outermost:
                return
            changed = self._dirty
            self._dirty = set()

        if changed:
            logger.debug("Committed changes to %s", ", ".join(sorted(changed)))
            self._notify(changed)

    def _touch(self, table: str) -> None:
        self._dirty.add(table)

    # -------------------------------------------------------------------------
    # Keyed CRUD
    # -------------------------------------------------------------------------

    def get(self, table: str, entity_id: Optional[int]) -> Optional[Any]:
        """Return a copy of the entity with the given id, or None."""
        if entity_id is None:
            return None
        with self._lock:
            entity = self._tables[table].get(entity_id)
            return replace(entity) if entity is not None else None

    def all(self, table: str) -> List[Any]:
        """Return copies of all entities in id order."""
        with self._lock:
            rows = self._tables[table]
            return [replace(rows[key]) for key in sorted(rows)]

    def find(self, table: str, predicate: Callable[[Any], bool]) -> List[Any]:
        return [entity for entity in self.all(table) if predicate(entity)]

    def insert(self, table: str, entity: Any) -> Any:
        """
        Store a new entity. An id of 0 means "assign the next id".

        Returns the stored copy (with its id).
        """
        with self.transaction():
            entity_id = entity.id or self._next_ids[table]
            if entity_id in self._tables[table]:
                raise KeyError(f"{table} already contains id {entity_id}")
            stored = replace(entity, id=entity_id)
            self._tables[table][entity_id] = stored
            self._next_ids[table] = max(self._next_ids[table], entity_id + 1)
            self._touch(table)
            return replace(stored)

    def update(self, table: str, entity: Any) -> Any:
        """Replace an existing entity. Raises KeyError if it does not exist."""
        with self.transaction():
            if entity.id not in self._tables[table]:
                raise KeyError(f"{table} has no id {entity.id}")
            self._tables[table][entity.id] = replace(entity)
            self._touch(table)
            return replace(entity)

    def update_where(
        self, table: str, predicate: Callable[[Any], bool], **changes: Any
    ) -> int:
        """Apply field changes to every matching entity. Returns the count."""
        with self.transaction():
            rows = self._tables[table]
            matched = [key for key, entity in rows.items() if predicate(entity)]
            for key in matched:
                rows[key] = replace(rows[key], **changes)
            if matched:
                self._touch(table)
            return len(matched)

    def delete(self, table: str, entity_id: int) -> bool:
        """
        Remove an entity and apply cascades.

        - trips: their audit log rows are removed
        - vehicles / purposes: trips referencing them are detached
        """
        with self.transaction():
            if self._tables[table].pop(entity_id, None) is None:
                return False
            self._touch(table)
            if table == TRIPS:
                self._delete_where(AUDIT_LOG, lambda log: log.trip_id == entity_id)
            elif table == VEHICLES:
                self.update_where(
                    TRIPS, lambda trip: trip.vehicle_id == entity_id, vehicle_id=None
                )
            elif table == PURPOSES:
                self.update_where(
                    TRIPS, lambda trip: trip.purpose_id == entity_id, purpose_id=None
                )
            return True

    def _delete_where(self, table: str, predicate: Callable[[Any], bool]) -> int:
        rows = self._tables[table]
        doomed = [key for key, entity in rows.items() if predicate(entity)]
        for key in doomed:
            del rows[key]
        if doomed:
            self._touch(table)
        return len(doomed)

    def count(self, table: str) -> int:
        with self._lock:
            return len(self._tables[table])

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def observe(
        self,
        tables: Iterable[str],
        query: Callable[["LogbookStore"], Any],
        callback: Optional[Callable[[Any], None]] = None,
    ) -> Subscription:
        """
        Subscribe to a query over the given tables.

        The current value is delivered immediately, then again after every
        commit that changes one of the tables, until cancelled.
        """
        subscription = Subscription(self, set(tables), query, callback)
        with self._lock:
            self._subscriptions.append(subscription)
        subscription.deliver()
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _notify(self, changed: Set[str]) -> None:
        with self._lock:
            interested = [s for s in self._subscriptions if s.tables & changed]
        for subscription in interested:
            subscription.deliver()
