"""Pytest configuration and fixtures"""
import os
from types import SimpleNamespace

import pytest

from cartsync.cart import CartService, LocalCartStore, RemoteCartStore
from cartsync.realtime import CartChangeNotifier

# Set test environment variables
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test_key")
os.environ.setdefault("UPSTASH_REDIS_REST_URL", "https://test.upstash.io")
os.environ.setdefault("UPSTASH_REDIS_REST_TOKEN", "test_token")
os.environ.setdefault("CART_WEBHOOK_SECRET", "test_webhook_secret")


class FakeRedis:
    """In-memory stand-in for the sync Upstash client (get/set/delete)."""

    def __init__(self):
        self.data = {}
        self.expiry = {}
        self.fail_reads = False
        self.fail_writes = False

    def get(self, key):
        if self.fail_reads:
            raise ConnectionError("redis unavailable")
        return self.data.get(key)

    def set(self, key, value, ex=None):
        if self.fail_writes:
            raise ConnectionError("quota exceeded")
        self.data[key] = value
        self.expiry[key] = ex
        return True

    def delete(self, *keys):
        if self.fail_writes:
            raise ConnectionError("redis unavailable")
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed


class FakeAsyncRedis:
    """In-memory stand-in for the async Upstash client's stream commands."""

    def __init__(self):
        self.streams = {}
        self.fail = False

    async def xadd(self, key, id, data, maxlen=None, **kwargs):
        if self.fail:
            raise ConnectionError("redis unavailable")
        entries = self.streams.setdefault(key, [])
        entry_id = f"{len(entries) + 1}-0"
        entries.append((entry_id, dict(data)))
        if maxlen is not None:
            del entries[:-maxlen]
        return entry_id

    async def xrange(self, key, start="-", end="+", count=None):
        entries = self.streams.get(key, [])
        if start.startswith("("):
            after = int(start[1:].split("-")[0])
            entries = [e for e in entries if int(e[0].split("-")[0]) > after]
        return entries[:count] if count else list(entries)

    async def xrevrange(self, key, end="+", start="-", count=None):
        entries = list(reversed(self.streams.get(key, [])))
        return entries[:count] if count else entries


class FakeQuery:
    def __init__(self, table, action, payload=None, on_conflict=None):
        self.table = table
        self.action = action
        self.payload = payload
        self.on_conflict = on_conflict
        self.filters = {}

    def eq(self, column, value):
        self.filters[column] = value
        return self

    def _matches(self, row):
        return all(row.get(column) == value for column, value in self.filters.items())

    async def execute(self):
        if self.table.fail:
            raise ConnectionError("supabase unavailable")
        self.table.calls.append((self.action, self.payload, dict(self.filters)))
        rows = self.table.rows
        if self.action == "select":
            return SimpleNamespace(data=[dict(row) for row in rows if self._matches(row)])
        if self.action == "upsert":
            key = self.payload[self.on_conflict]
            existing = next((row for row in rows if row.get(self.on_conflict) == key), None)
            if existing is None:
                rows.append(dict(self.payload))
            else:
                existing.update(self.payload)
            return SimpleNamespace(data=[dict(self.payload)])
        if self.action == "delete":
            removed = [row for row in rows if self._matches(row)]
            self.table.rows = [row for row in rows if not self._matches(row)]
            return SimpleNamespace(data=removed)
        raise AssertionError(f"unexpected action {self.action}")


class FakeTable:
    def __init__(self):
        self.rows = []
        self.calls = []
        self.fail = False

    def select(self, columns="*"):
        return FakeQuery(self, "select")

    def upsert(self, payload, on_conflict=None):
        return FakeQuery(self, "upsert", payload, on_conflict)

    def delete(self):
        return FakeQuery(self, "delete")


class FakeSupabase:
    """In-memory stand-in for the async Supabase client's table API."""

    def __init__(self):
        self.tables = {}

    def table(self, name):
        return self.tables.setdefault(name, FakeTable())


@pytest.fixture
def redis_client():
    return FakeRedis()


@pytest.fixture
def stream_client():
    return FakeAsyncRedis()


@pytest.fixture
def supabase_client():
    return FakeSupabase()


@pytest.fixture
def user_carts(supabase_client):
    """The user_carts table of the fake Supabase client."""
    return supabase_client.table("user_carts")


@pytest.fixture
def local_store(redis_client):
    return LocalCartStore(redis_client, "device-1")


@pytest.fixture
def remote_store(supabase_client):
    return RemoteCartStore(supabase_client)


@pytest.fixture
def notifier(stream_client):
    return CartChangeNotifier(stream_client)


@pytest.fixture
def cart_service(local_store, remote_store, notifier):
    return CartService(local_store, remote_store, notifier)
