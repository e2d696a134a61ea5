"""Local-precedence merge of a remote and a local cart."""
from typing import Iterable, List

from .models import CartEntry


def merge_carts(remote: Iterable[CartEntry], local: Iterable[CartEntry]) -> List[CartEntry]:
    """
    Merge two carts so that local quantities win.

    The mapping is seeded with every remote entry and then overwritten with
    every local entry: ids present on one side only are kept unchanged, ids
    present on both sides end up with the local quantity. Local edits made
    before login are the user's most recent intent.

    Merging a result with itself returns the same result.

    Args:
        remote: Entries of the remote cart document (empty if absent)
        local: Entries of the local cart snapshot

    Returns:
        Merged entries, remote order first, then ids only present locally
    """
    merged: dict[str, int] = {}
    for entry in remote:
        merged[entry.item_id] = entry.quantity
    for entry in local:
        merged[entry.item_id] = entry.quantity
    return [CartEntry(item_id=item_id, quantity=quantity) for item_id, quantity in merged.items()]
