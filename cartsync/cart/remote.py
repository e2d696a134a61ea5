"""Remote durable cart store: one Supabase row per authenticated user.

All methods use async/await with supabase-py v2.
"""
import asyncio
from datetime import UTC, datetime
from typing import Dict, Iterable, List, Optional, Set

from pydantic import ValidationError
from supabase._async.client import AsyncClient

from cartsync.db import Tables
from cartsync.logging import cart_context, get_logger

from .models import CartEntry, RemoteCartDocument, SyncResult

logger = get_logger(__name__)


class RemoteCartStore:
    """
    Adapter over the user_carts table.

    An empty cart is stored as an absent row, never as an empty items list.
    Writes report failures through SyncResult and never raise, so callers
    may fire them without awaiting (see schedule_sync).
    """

    def __init__(self, client: AsyncClient, table: str = Tables.USER_CARTS) -> None:
        self.client = client
        self.table = table
        self._tails: Dict[str, asyncio.Task] = {}  # newest scheduled write per owner
        self._pending: Set[asyncio.Task] = set()

    async def fetch(self, owner_id: str) -> Optional[RemoteCartDocument]:
        """
        Get the owner's cart document.

        Returns:
            The document, or None if absent or malformed

        Raises:
            Exception: Whatever the client raised; the caller decides how to degrade
        """
        result = (
            await self.client.table(self.table).select("*").eq("owner_id", owner_id).execute()
        )
        if not result.data:
            return None
        try:
            return RemoteCartDocument(**result.data[0])
        except ValidationError as e:
            logger.warning(
                f"Malformed remote cart ({cart_context(owner_id=owner_id)}): {e}"
            )
            return None

    async def upsert(self, owner_id: str, entries: Iterable[CartEntry]) -> SyncResult:
        """
        Write the owner's items, creating the row if needed.

        Only owner_id, items and updated_at are sent, so other columns of an
        existing row keep their values. An empty entry list removes the row.
        """
        entries = list(entries)
        if not entries:
            return await self.remove(owner_id)

        data = {
            "owner_id": owner_id,
            "items": [entry.to_dict() for entry in entries],
            "updated_at": datetime.now(UTC).isoformat(),
        }
        try:
            await self.client.table(self.table).upsert(data, on_conflict="owner_id").execute()
        except Exception as e:
            logger.error(
                f"Error syncing cart to remote store ({cart_context(owner_id=owner_id)}): {e}"
            )
            return SyncResult.failure("upsert", owner_id, e)
        return SyncResult.success("upsert", owner_id)

    async def remove(self, owner_id: str) -> SyncResult:
        """Delete the owner's row. Deleting an absent row is not an error."""
        try:
            await self.client.table(self.table).delete().eq("owner_id", owner_id).execute()
        except Exception as e:
            logger.error(
                f"Error deleting cart from remote store ({cart_context(owner_id=owner_id)}): {e}"
            )
            return SyncResult.failure("remove", owner_id, e)
        return SyncResult.success("remove", owner_id)

    async def sync(self, owner_id: str, entries: Iterable[CartEntry]) -> SyncResult:
        """Upsert a non-empty cart, remove an empty one."""
        entries = list(entries)
        if entries:
            return await self.upsert(owner_id, entries)
        return await self.remove(owner_id)

    def schedule_sync(self, owner_id: str, entries: Iterable[CartEntry]) -> "asyncio.Task[SyncResult]":
        """
        Fire-and-forget sync.

        Writes for the same owner run one after another in the order they
        were issued, so a slow older write cannot land after a newer one.
        Different owners never wait on each other.
        The returned task may be awaited to observe the SyncResult.
        """
        snapshot: List[CartEntry] = list(entries)
        previous = self._tails.get(owner_id)

        async def _run() -> SyncResult:
            if (
                previous is not None
                and not previous.done()
                and previous.get_loop() is asyncio.get_running_loop()
            ):
                await asyncio.wait([previous])
            return await self.sync(owner_id, snapshot)

        task = asyncio.get_running_loop().create_task(_run())
        self._tails[owner_id] = task
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        task.add_done_callback(lambda done: self._forget_tail(owner_id, done))
        return task

    def _forget_tail(self, owner_id: str, task: asyncio.Task) -> None:
        if self._tails.get(owner_id) is task:
            del self._tails[owner_id]

    async def settle(self, owner_id: str) -> None:
        """Wait until every write scheduled so far for one owner has run."""
        tail = self._tails.get(owner_id)
        if tail is not None and tail.get_loop() is asyncio.get_running_loop():
            await asyncio.wait([tail])

    async def drain(self) -> None:
        """Wait for every scheduled write (shutdown, tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
