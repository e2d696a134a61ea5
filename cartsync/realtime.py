"""Cart change signals for sibling views (other tabs of the same device).

A signal carries only the local store key. Receivers re-read the local
cart snapshot; they never receive cart contents. Delivery is cooperative:
it tells other views to refresh, it does not lock the store.

Signals go to in-process subscribers and to a Redis Stream per key, read
by the SSE endpoint in cartsync.routers.realtime.
"""

import json
from typing import Any, Callable, Optional

from cartsync.db import RedisKeys
from cartsync.logging import get_logger

logger = get_logger(__name__)

CART_CHANGED_EVENT = "cart.changed"

# Entries kept per device stream; receivers only need the latest
STREAM_MAXLEN = 100

Listener = Callable[[str], Any]


class CartChangeNotifier:
    """
    Broadcasts "cart changed" for a local store key.

    Usage:
        notifier = CartChangeNotifier(get_redis())
        unsubscribe = notifier.subscribe(view.refresh, key=store.key)
        await notifier.emit(store.key)
    """

    def __init__(self, redis=None, stream_maxlen: int = STREAM_MAXLEN) -> None:
        self.redis = redis  # async Upstash client; None keeps signals in-process
        self.stream_maxlen = stream_maxlen
        self._listeners: list[tuple[Optional[str], Listener]] = []

    def subscribe(self, listener: Listener, key: Optional[str] = None) -> Callable[[], None]:
        """Register a listener for one key (or all keys). Returns an unsubscribe callable."""
        subscription = (key, listener)
        self._listeners.append(subscription)

        def unsubscribe() -> None:
            if subscription in self._listeners:
                self._listeners.remove(subscription)

        return unsubscribe

    async def emit(self, key: str) -> None:
        """Signal that the snapshot under `key` changed. Never raises."""
        for wanted_key, listener in list(self._listeners):
            if wanted_key is not None and wanted_key != key:
                continue
            try:
                listener(key)
            except Exception as e:
                logger.warning(f"Cart change listener failed: {e}", exc_info=True)

        if self.redis is None:
            return

        try:
            payload = {"event": CART_CHANGED_EVENT, "key": key}
            await self.redis.xadd(
                RedisKeys.cart_stream_key(key),
                "*",
                {"data": json.dumps(payload)},
                maxlen=self.stream_maxlen,
            )
            logger.debug(f"Emitted {CART_CHANGED_EVENT}")
        except Exception as e:
            logger.warning(f"Failed to emit {CART_CHANGED_EVENT}: {e}", exc_info=True)
