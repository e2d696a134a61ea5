"""Login-time reconciliation of the local and remote carts."""
from dataclasses import dataclass, field
from typing import List, Optional

from cartsync.errors import ERROR_REMOTE_STORE_UNAVAILABLE, CartStoreError
from cartsync.logging import cart_context, get_logger
from cartsync.realtime import CartChangeNotifier

from .merge import merge_carts
from .models import CartEntry, SyncResult
from .remote import RemoteCartStore
from .storage import LocalCartStore, ReconciledMarker

logger = get_logger(__name__)


@dataclass
class ReconcileResult:
    """What one reconciliation did."""
    user_id: str
    entries: List[CartEntry] = field(default_factory=list)
    skipped: bool = False  # already reconciled for this device and user
    local_error: Optional[str] = None
    remote: Optional[SyncResult] = None

    @property
    def ok(self) -> bool:
        return self.local_error is None and (self.remote is None or self.remote.ok)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "skipped": self.skipped,
            "ok": self.ok,
            "items": [entry.to_dict() for entry in self.entries],
            "local_error": self.local_error,
            "remote_synced": self.remote.ok if self.remote else None,
        }


class CartReconciler:
    """
    Merges the device cart with the user's remote cart, once per login.

    Steps:
    1. Read the local snapshot
    2. Fetch the remote document (absent = empty)
    3. Merge with local precedence
    4. Write the merge locally
    5. Upsert it remotely, or delete the remote document if the merge is empty
    6. Signal sibling views

    Remote failures are logged and never block the local write. Runs are
    guarded by a per-device marker so a duplicate login event is a no-op.
    """

    def __init__(
        self,
        local: LocalCartStore,
        remote: RemoteCartStore,
        notifier: CartChangeNotifier,
        marker: Optional[ReconciledMarker] = None,
    ):
        self.local = local
        self.remote = remote
        self.notifier = notifier
        self.marker = marker or ReconciledMarker(local.client, local.device_id)

    async def reconcile(self, user_id: str) -> ReconcileResult:
        if not user_id or not isinstance(user_id, str):
            raise ValueError("user_id must be a non-empty string")

        context = cart_context(self.local.device_id, user_id)

        if self.marker.is_set_for(user_id):
            logger.info(f"Cart already reconciled ({context}), skipping")
            return ReconcileResult(user_id=user_id, entries=self.local.read(), skipped=True)

        local_entries = self.local.read()

        fetched = True
        try:
            document = await self.remote.fetch(user_id)
            remote_entries = document.items if document else []
        except Exception as e:
            # A cart we could not read must not be overwritten; keep local only
            logger.error(f"Error fetching remote cart ({context}): {e}")
            remote_entries = []
            fetched = False

        merged = merge_carts(remote_entries, local_entries)
        result = ReconcileResult(user_id=user_id, entries=merged)

        try:
            self.local.write(merged)
        except CartStoreError as e:
            result.local_error = str(e)

        if fetched:
            # Same per-owner queue as mutation writes, so an older write still
            # in flight cannot land on top of the merge
            result.remote = await self.remote.schedule_sync(user_id, merged)
        else:
            result.remote = SyncResult(
                ok=False,
                operation="skipped",
                owner_id=user_id,
                error=ERROR_REMOTE_STORE_UNAVAILABLE,
            )

        if result.local_error is None:
            await self.notifier.emit(self.local.key)

        if fetched and result.local_error is None:
            self.marker.set(user_id)

        logger.info(
            f"Reconciled cart ({context}): local={len(local_entries)} "
            f"remote={len(remote_entries)} merged={len(merged)} ok={result.ok}"
        )
        return result
