"""
Shared fixtures: an in-memory record store with the same contract as the
Supabase store, seeded with residents and storage locations.
"""

import copy
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

import pytest

from package_desk.schemas.database_models import ChangeEvent, ChangeType
from package_desk.services import ServiceFactory
from package_desk.services.mutation_coordinator import MutationCoordinator
from package_desk.utils.database import ChangeSubscription, RecordStore

BASE_TIME = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
FIXED_NOW = datetime(2024, 3, 2, 15, 30, tzinfo=timezone.utc)

JANE_ID = "res-jane"
JOHN_ID = "res-john"
SHELF_1_ID = "loc-shelf-1"
SHELF_3_ID = "loc-shelf-3"

NOT_NULL_COLUMNS = {
    "residents": ("name", "house_number"),
    "storage_locations": ("location_name",),
    "packages": ("package_id", "resident_id", "storage_location_id", "status"),
}


class FakeStoreError(Exception):
    """Mimics the PostgREST API error: the reason lives in ``message``."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InMemoryRecordStore(RecordStore):
    """Record store kept in dictionaries, publishing change events on writes."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {
            "residents": [],
            "storage_locations": [],
            "packages": [],
        }
        self.subscriptions: List[ChangeSubscription] = []
        self.unsubscribed: List[ChangeSubscription] = []
        self.failures: Dict[str, Tuple[str, Optional[str]]] = {}
        self.calls: List[str] = []
        self.closed = False
        self._tick = 0

    # helpers -----------------------------------------------------------
    def seed(self, table: str, rows: List[Dict[str, Any]]) -> None:
        for row in rows:
            self.tables[table].append(self._with_defaults(table, dict(row)))

    def fail_next(self, operation: str, message: str, table: Optional[str] = None) -> None:
        """Fail the next ``operation``, optionally only when it targets ``table``."""
        self.failures[operation] = (message, table)

    def row(self, table: str, identity: str) -> Optional[Dict[str, Any]]:
        return next((r for r in self.tables[table] if r["id"] == identity), None)

    def _maybe_fail(self, operation: str, table: Optional[str] = None) -> None:
        self.calls.append(operation)
        failure = self.failures.get(operation)
        if failure is None:
            return
        message, only_table = failure
        if only_table is None or only_table == table:
            del self.failures[operation]
            raise FakeStoreError(message)

    def _now(self) -> str:
        self._tick += 1
        return (BASE_TIME + timedelta(minutes=self._tick)).isoformat()

    def _with_defaults(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        row.setdefault("id", str(uuid4()))
        row.setdefault("created_at", self._now())
        if table == "packages":
            row.setdefault("status", "checked_in")
            row.setdefault("checked_in_at", self._now())
            for column in ("description", "color", "size", "notes", "checked_in_by",
                           "checked_out_at", "checked_out_by"):
                row.setdefault(column, None)
        if table == "residents":
            row.setdefault("phone", None)
            row.setdefault("email", None)
        return row

    def _publish(self, table: str, change: ChangeType, record=None, old_record=None) -> None:
        event = ChangeEvent(table=table, type=change, record=record, old_record=old_record)
        for subscription in list(self.subscriptions):
            if subscription.table == table:
                subscription.push(event)

    def _expand(self, row: Dict[str, Any]) -> Dict[str, Any]:
        resident = self.row("residents", row["resident_id"])
        location = self.row("storage_locations", row["storage_location_id"])
        expanded = dict(row)
        expanded["residents"] = (
            {"name": resident["name"], "house_number": resident["house_number"]} if resident else None
        )
        expanded["storage_locations"] = {"location_name": location["location_name"]} if location else None
        return expanded

    # RecordStore contract ----------------------------------------------
    async def select(self, table, columns="*", filters=None, order=None):
        self._maybe_fail("select", table)
        rows = [
            copy.deepcopy(r) for r in self.tables[table]
            if all(r.get(k) == v for k, v in (filters or {}).items())
        ]
        if order is not None:
            column, descending = order
            rows.sort(key=lambda r: r.get(column) or "", reverse=descending)
        if table == "packages" and "residents(" in columns:
            rows = [self._expand(r) for r in rows]
        return rows

    async def insert(self, table, fields):
        self._maybe_fail("insert", table)
        for column in NOT_NULL_COLUMNS[table]:
            if fields.get(column) in (None, ""):
                raise FakeStoreError(
                    f'null value in column "{column}" of relation "{table}" violates not-null constraint'
                )
        if table == "packages" and self.row("residents", fields["resident_id"]) is None:
            raise FakeStoreError(
                'insert or update on table "packages" violates foreign key constraint "packages_resident_id_fkey"'
            )
        row = self._with_defaults(table, dict(fields))
        self.tables[table].append(row)
        self._publish(table, ChangeType.INSERT, record=copy.deepcopy(row))
        return copy.deepcopy(row)

    async def update(self, table, identity, fields, match=None):
        self._maybe_fail("update", table)
        row = self.row(table, identity)
        if row is None or not all(row.get(k) == v for k, v in (match or {}).items()):
            return []
        old = copy.deepcopy(row)
        row.update(fields)
        self._publish(table, ChangeType.UPDATE, record=copy.deepcopy(row), old_record=old)
        return [copy.deepcopy(row)]

    async def delete(self, table, identity):
        self._maybe_fail("delete", table)
        row = self.row(table, identity)
        if row is not None:
            self.tables[table].remove(row)
            self._publish(table, ChangeType.DELETE, old_record=row)

    async def subscribe(self, table, events="*"):
        self._maybe_fail("subscribe", table)
        subscription = ChangeSubscription(table, events)
        self.subscriptions.append(subscription)
        return subscription

    async def unsubscribe(self, subscription):
        if subscription in self.subscriptions:
            self.subscriptions.remove(subscription)
        self.unsubscribed.append(subscription)
        subscription.close()

    async def close(self):
        self.closed = True

    def active_subscriptions(self, table: str = "packages") -> List[ChangeSubscription]:
        return [s for s in self.subscriptions if s.table == table and not s.closed]


@pytest.fixture
def store() -> InMemoryRecordStore:
    """Store seeded with two residents and two storage locations."""
    store = InMemoryRecordStore()
    store.seed("residents", [
        {"id": JANE_ID, "name": "Jane Doe", "house_number": "A-101", "email": "jane@example.com"},
        {"id": JOHN_ID, "name": "John Smith", "house_number": "B-202"},
    ])
    store.seed("storage_locations", [
        {"id": SHELF_3_ID, "location_name": "Shelf-3"},
        {"id": SHELF_1_ID, "location_name": "Shelf-1"},
    ])
    return store


@pytest.fixture
def factory(store) -> ServiceFactory:
    return ServiceFactory(store)


@pytest.fixture
def cache(factory):
    return factory.get_view_cache()


@pytest.fixture
def coordinator(factory, cache) -> MutationCoordinator:
    """Coordinator with a frozen clock."""
    return MutationCoordinator(
        factory.repositories.get_package_repository(),
        cache,
        clock=lambda: FIXED_NOW,
    )
