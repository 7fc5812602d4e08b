"""Shared pytest fixtures and fakes for all tests.

FakeBackingStore is an in-memory stand-in for the Supabase project: tables,
the declared row-level policies, postgres_changes fan-out to open channels
and the get_all_users RPC. FakeSupabase is one client bound to one identity.
"""

import asyncio
import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import pytest

from app.config.policies_config import is_allowed
from app.core.session import IdentitySession

ADMIN_ID = "11111111-1111-1111-1111-111111111111"
SUPERADMIN_ID = "22222222-2222-2222-2222-222222222222"
CUSTOMER_ID = "33333333-3333-3333-3333-333333333333"

NOW = datetime(2026, 10, 18, 15, 30, tzinfo=timezone.utc)


def iso(moment: datetime) -> str:
    return moment.isoformat()


class FakeAPIError(Exception):
    """Mimics postgrest.exceptions.APIError (message and code attributes)."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class FakeResult:
    def __init__(self, data: Any, count: Optional[int] = None):
        self.data = data
        self.count = count


def _same(a: Any, b: Any) -> bool:
    return a == b or (a is not None and b is not None and str(a) == str(b))


class FakeQuery:
    def __init__(self, store: "FakeBackingStore", table: str, user_id: Optional[str]):
        self.store = store
        self.table = table
        self.user_id = user_id
        self.operation = "select"
        self.payload: Any = None
        self.filters: List[Callable[[Dict[str, Any]], bool]] = []
        self.orders: List[tuple] = []
        self._limit: Optional[int] = None
        self._single = False
        self._count: Optional[str] = None
        self._head = False

    def select(self, *columns, count=None, head=None):
        self._count = count
        self._head = bool(head)
        return self

    def insert(self, payload):
        self.operation = "insert"
        self.payload = payload
        return self

    def update(self, payload):
        self.operation = "update"
        self.payload = payload
        return self

    def delete(self):
        self.operation = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: _same(row.get(column), value))
        return self

    def in_(self, column, values):
        self.filters.append(lambda row: any(_same(row.get(column), v) for v in values))
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and str(row.get(column)) >= str(value))
        return self

    def order(self, column, desc=False):
        self.orders.append((column, desc))
        return self

    def limit(self, count):
        self._limit = count
        return self

    def single(self):
        self._single = True
        return self

    def _matching(self) -> List[Dict[str, Any]]:
        rows = self.store.tables.setdefault(self.table, [])
        return [row for row in rows if all(f(row) for f in self.filters)]

    async def execute(self) -> FakeResult:
        self.store.calls.append((self.table, self.operation))
        if self.table in self.store.failing_tables:
            raise FakeAPIError("upstream connect error", code="503")
        role = self.store.role_of(self.user_id)

        if self.operation == "select":
            if self.store.on_select is not None:
                self.store.on_select(self.table)
            if self.store.select_gate is not None:
                await self.store.select_gate.wait()
            rows = [r for r in self._matching() if is_allowed(self.table, "select", self.user_id, role, r)]
            for column, desc in reversed(self.orders):
                rows.sort(key=lambda r: (r.get(column) is None, str(r.get(column) or "")), reverse=desc)
            count = len(rows)
            if self._limit is not None:
                rows = rows[:self._limit]
            rows = [dict(r) for r in rows]
            if self._single:
                if len(rows) != 1:
                    raise FakeAPIError("JSON object requested, multiple (or no) rows returned", code="PGRST116")
                return FakeResult(rows[0])
            return FakeResult([] if self._head else rows, count if self._count else None)

        if self.operation == "insert":
            payloads = self.payload if isinstance(self.payload, list) else [self.payload]
            written = []
            for payload in payloads:
                row = dict(payload)
                if not is_allowed(self.table, "insert", self.user_id, role, row):
                    raise FakeAPIError(
                        f'new row violates row-level security policy for table "{self.table}"', code="42501"
                    )
                row.setdefault("id", str(uuid.uuid4()))
                row.setdefault("created_at", iso(self.store.now()))
                row.setdefault("updated_at", row["created_at"])
                self.store.tables.setdefault(self.table, []).append(row)
                written.append(dict(row))
                self.store.broadcast(self.table, "INSERT", row, {})
            return FakeResult(written)

        if self.operation == "update":
            written = []
            for row in self._matching():
                if not is_allowed(self.table, "update", self.user_id, role, row):
                    continue
                old = dict(row)
                row.update(self.payload)
                row["updated_at"] = iso(self.store.now())
                written.append(dict(row))
                self.store.broadcast(self.table, "UPDATE", row, old)
            return FakeResult(written)

        if self.operation == "delete":
            written = []
            rows = self.store.tables.setdefault(self.table, [])
            for row in self._matching():
                if not is_allowed(self.table, "delete", self.user_id, role, row):
                    continue
                rows.remove(row)
                written.append(dict(row))
                self.store.broadcast(self.table, "DELETE", {}, {"id": row["id"]})
            return FakeResult(written)

        raise AssertionError(f"unsupported operation {self.operation}")


class FakeRpc:
    def __init__(self, store: "FakeBackingStore", name: str, user_id: Optional[str]):
        self.store = store
        self.name = name
        self.user_id = user_id

    async def execute(self) -> FakeResult:
        if self.name not in self.store.rpc_functions:
            raise FakeAPIError(f"Could not find the function public.{self.name}", code="PGRST202")
        if self.store.role_of(self.user_id) not in ("admin", "superadmin"):
            raise FakeAPIError("Access denied: Only admins can access this function", code="P0001")
        rows = sorted(self.store.tables.get("profiles", []), key=lambda r: r.get("created_at") or "", reverse=True)
        return FakeResult([dict(r) for r in rows])


class FakeChannel:
    def __init__(self, store: "FakeBackingStore", name: str):
        self.store = store
        self.name = name
        self.bindings: List[tuple] = []
        self.joined = False

    def on_postgres_changes(self, event, callback, table=None, schema="public", filter=None):
        self.bindings.append((event, table, callback))
        return self

    async def subscribe(self, callback=None):
        if self.store.fail_subscribe:
            raise FakeAPIError("realtime unavailable")
        await asyncio.sleep(self.store.join_delay)
        self.joined = True
        self.store.open_channels.append(self)
        return self

    def emit(self, table: str, payload: Dict[str, Any]) -> None:
        for event, bound_table, callback in self.bindings:
            if bound_table == table and event in ("*", payload["data"]["type"]):
                callback(payload)


class FakeBackingStore:
    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {"profiles": [], "menu_items": [], "orders": []}
        self.open_channels: List[FakeChannel] = []
        self.created_channels: List[FakeChannel] = []
        self.calls: List[tuple] = []
        self.failing_tables: set = set()
        self.rpc_functions = {"get_all_users"}
        self.fail_subscribe = False
        self.join_delay = 0.0
        self.select_gate: Optional[asyncio.Event] = None
        self.on_select: Optional[Callable[[str], None]] = None
        self.clock = NOW

    def now(self) -> datetime:
        return self.clock

    def role_of(self, user_id: Optional[str]) -> Optional[str]:
        if user_id is None:
            return None
        for row in self.tables.get("profiles", []):
            if row["id"] == user_id:
                return row.get("role")
        return None

    def client(self, user_id: Optional[str] = None) -> "FakeSupabase":
        return FakeSupabase(self, user_id)

    def broadcast(self, table: str, operation: str, record: Dict[str, Any], old_record: Dict[str, Any]) -> None:
        payload = {"data": {"type": operation, "table": table, "schema": "public",
                            "record": dict(record), "old_record": dict(old_record)}}
        for channel in list(self.open_channels):
            channel.emit(table, payload)

    def channels_for(self, table: str) -> List[FakeChannel]:
        return [c for c in self.open_channels if any(t == table for _, t, _ in c.bindings)]


class FakeSupabase:
    def __init__(self, store: FakeBackingStore, user_id: Optional[str] = None):
        self.store = store
        self.user_id = user_id

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self.store, name, self.user_id)

    def rpc(self, name: str, params: Optional[dict] = None) -> FakeRpc:
        return FakeRpc(self.store, name, self.user_id)

    def channel(self, name: str) -> FakeChannel:
        channel = FakeChannel(self.store, name)
        self.store.created_channels.append(channel)
        return channel

    async def remove_channel(self, channel: FakeChannel) -> None:
        if channel in self.store.open_channels:
            self.store.open_channels.remove(channel)

    async def remove_all_channels(self) -> None:
        self.store.open_channels.clear()


class FakeIdentityStore:
    def __init__(self, session: Optional[IdentitySession] = None):
        self.session = session
        self.callbacks: List[Callable] = []
        self.registrations = 0
        self.fail_reads = False

    async def get_session(self) -> Optional[IdentitySession]:
        if self.fail_reads:
            raise ConnectionError("auth server unreachable")
        return self.session

    def on_session_change(self, callback):
        self.registrations += 1
        self.callbacks.append(callback)

        def unregister():
            if callback in self.callbacks:
                self.callbacks.remove(callback)

        return unregister

    def emit(self, event: str, session: Optional[IdentitySession]) -> None:
        self.session = session
        for callback in list(self.callbacks):
            callback(event, session)


def profile_row(user_id: str, email: str, role: str, full_name: Optional[str] = None) -> Dict[str, Any]:
    return {
        "id": user_id,
        "email": email,
        "full_name": full_name,
        "phone": None,
        "role": role,
        "created_at": iso(NOW - timedelta(days=30)),
        "updated_at": iso(NOW - timedelta(days=30)),
    }


def order_row(order_id: str, created_at: datetime, status: str = "pending", items=None,
              total: float = 0.0, is_read: bool = False) -> Dict[str, Any]:
    return {
        "id": order_id,
        "customer_name": "Jane Doe",
        "customer_email": "jane@kitchen.io",
        "customer_phone": None,
        "delivery_address": None,
        "special_instructions": None,
        "items": items if items is not None else [],
        "total_amount": total,
        "status": status,
        "is_read": is_read,
        "created_at": iso(created_at),
        "updated_at": iso(created_at),
    }


@pytest.fixture
def store() -> FakeBackingStore:
    """Backing store seeded with one admin, one superadmin, one customer, menu items and orders."""
    backing = FakeBackingStore()
    backing.tables["profiles"] = [
        profile_row(ADMIN_ID, "admin@kitchen.io", "admin", "Ada Admin"),
        profile_row(SUPERADMIN_ID, "owner@kitchen.io", "superadmin", "Sam Owner"),
        profile_row(CUSTOMER_ID, "customer@kitchen.io", "customer", "Cy Customer"),
    ]
    backing.tables["menu_items"] = [
        {"id": "item-1", "name": "Spring Rolls", "description": "Crispy", "price": 6.5,
         "category": "appetizer", "image_url": None, "available": True,
         "created_at": iso(NOW - timedelta(days=10)), "updated_at": iso(NOW - timedelta(days=10))},
        {"id": "item-2", "name": "Pad Thai", "description": None, "price": 12.99,
         "category": "main", "image_url": None, "available": True,
         "created_at": iso(NOW - timedelta(days=9)), "updated_at": iso(NOW - timedelta(days=9))},
        {"id": "item-3", "name": "Mango Sticky Rice", "description": None, "price": 7.0,
         "category": "dessert", "image_url": None, "available": False,
         "created_at": iso(NOW - timedelta(days=8)), "updated_at": iso(NOW - timedelta(days=8))},
    ]
    backing.tables["orders"] = [
        order_row("order-1", NOW - timedelta(hours=2), "pending",
                  [{"name": "Pad Thai", "quantity": 2, "price": 12.99}], 25.98),
        order_row("order-2", NOW - timedelta(days=1), "completed",
                  [{"name": "Spring Rolls", "quantity": 1, "price": 6.5}], 6.5, is_read=True),
    ]
    return backing


@pytest.fixture
def admin_session() -> IdentitySession:
    return IdentitySession(user_id=ADMIN_ID, email="admin@kitchen.io", access_token="admin-token")


@pytest.fixture
def customer_session() -> IdentitySession:
    return IdentitySession(user_id=CUSTOMER_ID, email="customer@kitchen.io", access_token="customer-token")


@pytest.fixture
def identity_store_factory() -> Callable[[Optional[IdentitySession]], FakeIdentityStore]:
    return FakeIdentityStore


@pytest.fixture
def settle() -> Callable:
    """Let spawned tasks and callbacks run to completion."""
    async def _settle(rounds: int = 10) -> None:
        for _ in range(rounds):
            await asyncio.sleep(0)
    return _settle


@pytest.fixture
def api_error() -> type:
    return FakeAPIError
