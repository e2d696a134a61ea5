"""Local ephemeral cart store: one JSON snapshot per device in Redis."""
import json
from typing import Iterable, List, Optional

from cartsync.db import RedisKeys, TTL
from cartsync.errors import ERROR_LOCAL_STORE_UNAVAILABLE, CartStoreError
from cartsync.logging import cart_context, get_logger

from .models import CartEntry, validate_entries

logger = get_logger(__name__)


class LocalCartStore:
    """
    Cart state accessor backed by the per-device key in the local store.

    The client is any synchronous key-value object with
    get(key), set(key, value, ex=...) and delete(key), normally the sync
    Upstash client from cartsync.db.get_redis_sync().

    Usage:
        store = LocalCartStore(get_redis_sync(), device_id)
        entries = store.read()
        store.write(entries + [CartEntry("svc1", 2)])
    """

    def __init__(self, client, device_id: str, ttl: int = TTL.CART):
        if not device_id:
            raise ValueError("device_id must be a non-empty string")
        self.client = client
        self.device_id = device_id
        self.ttl = ttl

    @property
    def key(self) -> str:
        """Store key of this device's snapshot; carried by change signals."""
        return RedisKeys.cart_key(self.device_id)

    def read(self) -> List[CartEntry]:
        """
        Return the current snapshot.

        Never raises: an unavailable store or malformed payload reads as an
        empty cart and is logged as a warning.
        """
        try:
            raw = self.client.get(self.key)
        except Exception as e:
            logger.warning(
                f"Local cart store unavailable ({cart_context(device_id=self.device_id)}): {e}"
            )
            return []

        if not raw:
            return []

        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValueError("cart snapshot must be a list")
            return [CartEntry.from_dict(item) for item in data]
        except (json.JSONDecodeError, ValueError, TypeError) as e:
            logger.warning(
                f"Corrupted cart snapshot ({cart_context(device_id=self.device_id)}): {e}"
            )
            return []

    def write(self, entries: Iterable[CartEntry]) -> None:
        """
        Replace the snapshot with a single store call.

        Raises:
            ValueError: An entry is malformed; nothing is written
            CartStoreError: The store rejected the write
        """
        validated = validate_entries(entries)
        payload = json.dumps([entry.to_dict() for entry in validated])
        try:
            self.client.set(self.key, payload, ex=self.ttl)
        except Exception as e:
            logger.error(
                f"Failed to write cart snapshot ({cart_context(device_id=self.device_id)}): {e}"
            )
            raise CartStoreError(f"{ERROR_LOCAL_STORE_UNAVAILABLE}: {e}") from e

    def clear(self) -> None:
        """Delete the snapshot (explicit "clear cart")."""
        try:
            self.client.delete(self.key)
        except Exception as e:
            logger.error(
                f"Failed to clear cart snapshot ({cart_context(device_id=self.device_id)}): {e}"
            )
            raise CartStoreError(f"{ERROR_LOCAL_STORE_UNAVAILABLE}: {e}") from e


class ReconciledMarker:
    """
    Per-session record of which user this device's cart was reconciled for.

    Lives next to the snapshot so every tab of the device sees it.
    """

    def __init__(self, client, device_id: str, ttl: int = TTL.RECONCILED):
        self.client = client
        self.device_id = device_id
        self.ttl = ttl

    @property
    def key(self) -> str:
        return RedisKeys.reconciled_key(self.device_id)

    def get(self) -> Optional[str]:
        """User id the device was last reconciled for, or None."""
        try:
            return self.client.get(self.key) or None
        except Exception as e:
            logger.warning(f"Failed to read reconciled marker: {e}")
            return None

    def is_set_for(self, user_id: str) -> bool:
        return self.get() == user_id

    def set(self, user_id: str) -> None:
        try:
            self.client.set(self.key, user_id, ex=self.ttl)
        except Exception as e:
            logger.warning(f"Failed to set reconciled marker: {e}")

    def clear(self) -> None:
        try:
            self.client.delete(self.key)
        except Exception as e:
            logger.warning(f"Failed to clear reconciled marker: {e}")
