"""
Shared Dependencies for Routers

Builds one CartService per device and reuses it while the device is active,
so concurrent requests for a device go through the same lock.
"""

import os
from collections import OrderedDict
from typing import Optional

from fastapi import Depends, Header, HTTPException

from cartsync.cart import CartService, LocalCartStore, RemoteCartStore
from cartsync.db import get_redis, get_redis_sync, get_supabase
from cartsync.errors import ERROR_DEVICE_ID_REQUIRED
from cartsync.logging import get_logger
from cartsync.realtime import CartChangeNotifier

logger = get_logger(__name__)

MAX_CACHED_SERVICES = int(os.environ.get("CART_MAX_CACHED_SERVICES", "1024"))


class CartServiceRegistry:
    """
    Device id -> CartService, built from explicitly passed clients.

    Device ids come from the client, so the cache is bounded: past
    max_services the least recently used idle services are dropped. Cart
    state lives in Redis, so a dropped device is rebuilt on its next request.
    A service holding its lock is never dropped.
    """

    def __init__(
        self,
        local_client,
        remote_client,
        notifier: CartChangeNotifier,
        max_services: int = MAX_CACHED_SERVICES,
    ) -> None:
        if max_services < 1:
            raise ValueError("max_services must be at least 1")
        self.local_client = local_client
        self.remote_client = remote_client
        self.notifier = notifier
        self.max_services = max_services
        self.remote = RemoteCartStore(remote_client)
        self._services: "OrderedDict[str, CartService]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._services)

    def __contains__(self, device_id: str) -> bool:
        return device_id in self._services

    def get(self, device_id: str) -> CartService:
        service = self._services.get(device_id)
        if service is None:
            service = CartService(
                LocalCartStore(self.local_client, device_id),
                self.remote,
                self.notifier,
            )
            self._services[device_id] = service
            self._evict(keep=device_id)
        else:
            self._services.move_to_end(device_id)
        return service

    def _evict(self, keep: str) -> None:
        overflow = len(self._services) - self.max_services
        if overflow <= 0:
            return
        idle = [
            device_id
            for device_id, service in self._services.items()
            if device_id != keep and not service._lock.locked()
        ]
        for device_id in idle[:overflow]:
            del self._services[device_id]
        if len(self._services) > self.max_services:
            logger.warning(
                f"Cart service cache over limit: {len(self._services)} busy services"
            )

    async def drain(self) -> None:
        await self.remote.drain()


_registry: Optional[CartServiceRegistry] = None


async def get_registry() -> CartServiceRegistry:
    """Get or create the registry singleton (lazy loaded)."""
    global _registry
    if _registry is None:
        _registry = CartServiceRegistry(
            local_client=get_redis_sync(),
            remote_client=await get_supabase(),
            notifier=CartChangeNotifier(get_redis()),
        )
    return _registry


def get_registry_if_created() -> Optional[CartServiceRegistry]:
    return _registry


async def get_device_id(
    x_device_id: str = Header(None, alias="X-Device-Id")
) -> str:
    if not x_device_id:
        raise HTTPException(status_code=400, detail=ERROR_DEVICE_ID_REQUIRED)
    return x_device_id


async def get_cart_service(
    device_id: str = Depends(get_device_id),
    registry: CartServiceRegistry = Depends(get_registry),
) -> CartService:
    """Cart service for the requesting device."""
    return registry.get(device_id)
