"""
Database Module - Supabase and Redis Clients

Provides singleton instances of:
- Sync Upstash Redis client: the per-device (local ephemeral) cart store
- Async Upstash Redis client: realtime streams for cart change signals
- Async Supabase client: the per-user (remote durable) cart documents

Components never call these factories themselves; clients are passed in
at construction. Only application wiring (cartsync.routers.deps) does.
"""

import os
from typing import Optional

from supabase._async.client import AsyncClient, create_client as acreate_client
from upstash_redis import Redis
from upstash_redis.asyncio import Redis as AsyncRedis


SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")

# Upstash Redis - standard env var names per docs
UPSTASH_REDIS_REST_URL = os.environ.get("UPSTASH_REDIS_REST_URL", "")
UPSTASH_REDIS_REST_TOKEN = os.environ.get("UPSTASH_REDIS_REST_TOKEN", "")


_async_supabase_client: Optional[AsyncClient] = None
_redis_client: Optional[AsyncRedis] = None
_sync_redis_client: Optional[Redis] = None


async def get_supabase() -> AsyncClient:
    """
    Get async Supabase client (singleton).
    Holds the user_carts table (remote durable store).
    """
    global _async_supabase_client

    if _async_supabase_client is None:
        if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
        _async_supabase_client = await acreate_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)

    return _async_supabase_client


def get_redis() -> AsyncRedis:
    """
    Get async Upstash Redis client (singleton).

    Used for realtime streams (cross-tab cart change signals).
    """
    global _redis_client

    if _redis_client is None:
        if not UPSTASH_REDIS_REST_URL or not UPSTASH_REDIS_REST_TOKEN:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        _redis_client = AsyncRedis(url=UPSTASH_REDIS_REST_URL, token=UPSTASH_REDIS_REST_TOKEN)

    return _redis_client


def get_redis_sync() -> Redis:
    """
    Get sync Upstash Redis client (singleton).

    Local cart snapshots are read and written synchronously so the
    UI-facing accessor never yields to the event loop.
    """
    global _sync_redis_client

    if _sync_redis_client is None:
        if not UPSTASH_REDIS_REST_URL or not UPSTASH_REDIS_REST_TOKEN:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        _sync_redis_client = Redis(url=UPSTASH_REDIS_REST_URL, token=UPSTASH_REDIS_REST_TOKEN)

    return _sync_redis_client


class RedisKeys:
    """Redis key prefixes for different data types."""

    # Local cart snapshot per device
    CART = "cart:device:"  # cart:device:{device_id}

    # Per-session "login already reconciled" marker
    RECONCILED = "cart:reconciled:"  # cart:reconciled:{device_id}

    # Realtime stream carrying cart change signals
    CART_STREAM = "stream:realtime:cart:"  # stream:realtime:cart:{store_key}

    @staticmethod
    def cart_key(device_id: str) -> str:
        return f"{RedisKeys.CART}{device_id}"

    @staticmethod
    def reconciled_key(device_id: str) -> str:
        return f"{RedisKeys.RECONCILED}{device_id}"

    @staticmethod
    def cart_stream_key(store_key: str) -> str:
        return f"{RedisKeys.CART_STREAM}{store_key}"


class Tables:
    """Supabase table names."""

    USER_CARTS = "user_carts"


class TTL:
    """Time-to-live constants for Redis keys (seconds)."""

    CART = 2592000  # 30 days, refreshed on every write
    RECONCILED = 86400  # 24 hours
