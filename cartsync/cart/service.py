"""Cart service: the single entry point views use to read and change the cart."""
import asyncio
from typing import Iterable, List, Optional

from cartsync.errors import ERROR_INVALID_ITEM_ID, ERROR_INVALID_QUANTITY, ERROR_NEGATIVE_QUANTITY
from cartsync.logging import cart_context, get_logger
from cartsync.realtime import CartChangeNotifier

from .models import CartEntry, CartSummary, RemoteCartDocument, SyncResult
from .reconcile import CartReconciler, ReconcileResult
from .remote import RemoteCartStore
from .storage import LocalCartStore, ReconciledMarker

logger = get_logger(__name__)


def _check_item_id(item_id: str) -> None:
    if not isinstance(item_id, str) or not item_id:
        raise ValueError(ERROR_INVALID_ITEM_ID)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class CartService:
    """
    Cart for one device, plus the signed-in user once there is one.

    Features:
    - Local-first mutations: the device snapshot is written before anything
      remote is attempted
    - Remote sync after login, fire-and-forget (see last_sync)
    - Exactly-once reconciliation per login
    - All mutations and reconciliation serialized by one lock

    Usage:
        service = CartService(local, remote, notifier)
        await service.add_item("svc1")
        await service.on_login(user_id)
    """

    def __init__(
        self,
        local: LocalCartStore,
        remote: RemoteCartStore,
        notifier: CartChangeNotifier,
        reconciler: Optional[CartReconciler] = None,
        marker: Optional[ReconciledMarker] = None,
    ):
        self.local = local
        self.remote = remote
        self.notifier = notifier
        self.marker = marker or ReconciledMarker(local.client, local.device_id)
        self.reconciler = reconciler or CartReconciler(local, remote, notifier, self.marker)
        self.user_id: Optional[str] = None
        self.last_sync: Optional["asyncio.Task[SyncResult]"] = None
        self._lock = asyncio.Lock()

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    # ==================== READS ====================

    def get_entries(self) -> List[CartEntry]:
        return self.local.read()

    def get_summary(self) -> CartSummary:
        return CartSummary(entries=self.local.read())

    # ==================== MUTATIONS ====================

    async def set_quantity(self, item_id: str, quantity: int) -> List[CartEntry]:
        """
        Set the absolute quantity of an item.

        Args:
            item_id: Catalogue item id
            quantity: New quantity (0 to remove)

        Returns:
            The cart after the change
        """
        _check_item_id(item_id)
        if not _is_int(quantity) or quantity < 0:
            raise ValueError(ERROR_NEGATIVE_QUANTITY)

        async with self._lock:
            entries = self.local.read()
            updated = [entry for entry in entries if entry.item_id != item_id]
            if quantity > 0:
                position = next(
                    (i for i, entry in enumerate(entries) if entry.item_id == item_id),
                    len(updated),
                )
                updated.insert(position, CartEntry(item_id=item_id, quantity=quantity))
            await self._commit(updated)
            return updated

    async def add_item(self, item_id: str, quantity: int = 1) -> List[CartEntry]:
        """Add `quantity` units of an item, on top of any already in the cart."""
        _check_item_id(item_id)
        if not _is_int(quantity) or quantity < 1:
            raise ValueError(ERROR_INVALID_QUANTITY)

        async with self._lock:
            entries = self.local.read()
            existing = next((entry for entry in entries if entry.item_id == item_id), None)
            if existing:
                updated = [
                    CartEntry(item_id=item_id, quantity=entry.quantity + quantity)
                    if entry.item_id == item_id
                    else entry
                    for entry in entries
                ]
            else:
                updated = entries + [CartEntry(item_id=item_id, quantity=quantity)]
            await self._commit(updated)
            return updated

    async def remove_item(self, item_id: str) -> List[CartEntry]:
        """Remove an item from the cart."""
        return await self.set_quantity(item_id, 0)

    async def clear(self) -> None:
        """Empty the cart on this device and, when signed in, remotely (e.g. after checkout)."""
        async with self._lock:
            self.local.clear()
            await self.notifier.emit(self.local.key)
            if self.user_id:
                self.last_sync = self.remote.schedule_sync(self.user_id, [])

    async def prune(self, known_item_ids: Iterable[str]) -> List[str]:
        """
        Drop entries whose item no longer exists in the catalogue.

        Returns:
            Ids of the removed entries
        """
        known = set(known_item_ids)
        async with self._lock:
            entries = self.local.read()
            kept = [entry for entry in entries if entry.item_id in known]
            removed = [entry.item_id for entry in entries if entry.item_id not in known]
            if removed:
                logger.warning(f"Removing {len(removed)} unknown item(s) from cart")
                await self._commit(kept)
            return removed

    async def apply_remote_snapshot(self, document: Optional[RemoteCartDocument]) -> List[CartEntry]:
        """
        Mirror a remote cart change into the device snapshot.

        Used while a view watches the user's remote document; absence means
        the remote cart is empty.
        """
        async with self._lock:
            return await self._mirror(document)

    async def refresh_from_remote(self) -> List[CartEntry]:
        """
        Pull the signed-in user's remote cart onto this device.

        Picks up changes made on the user's other devices. Anonymous carts and
        unreadable remotes leave the device snapshot untouched.
        """
        async with self._lock:
            if not self.user_id:
                return self.local.read()
            # Writes already queued for this user land before we read back
            await self.remote.settle(self.user_id)
            try:
                document = await self.remote.fetch(self.user_id)
            except Exception as e:
                context = cart_context(self.local.device_id, self.user_id)
                logger.error(f"Error refreshing cart from remote ({context}): {e}")
                return self.local.read()
            return await self._mirror(document)

    async def _mirror(self, document: Optional[RemoteCartDocument]) -> List[CartEntry]:
        entries = list(document.items) if document else []
        self.local.write(entries)
        await self.notifier.emit(self.local.key)
        return entries

    async def _commit(self, entries: List[CartEntry]) -> None:
        # Local first; the remote write is never awaited here
        self.local.write(entries)
        await self.notifier.emit(self.local.key)
        if self.user_id:
            self.last_sync = self.remote.schedule_sync(self.user_id, entries)

    # ==================== SESSION ====================

    async def on_login(self, user_id: str) -> ReconcileResult:
        """Authentication hook: the user just signed in on this device."""
        async with self._lock:
            result = await self.reconciler.reconcile(user_id)
            self.user_id = user_id
            return result

    async def on_logout(self) -> None:
        """Forget the user. The device keeps its cart; the next login reconciles again."""
        async with self._lock:
            if self.user_id:
                context = cart_context(self.local.device_id, self.user_id)
                logger.info(f"Signed out of cart session ({context})")
            self.user_id = None
            self.marker.clear()

    async def ensure_session(self, user_id: Optional[str]) -> Optional[ReconcileResult]:
        """
        Align the service with the identity of the current request.

        A new user triggers the login transition; a missing user ends the
        session. The same user again is a no-op.
        """
        if user_id == self.user_id:
            return None
        if user_id is None:
            await self.on_logout()
            return None
        if self.user_id is not None:
            await self.on_logout()
        return await self.on_login(user_id)
