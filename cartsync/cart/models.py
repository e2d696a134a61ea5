"""Cart models: entries, the remote document and sync results."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from cartsync.errors import (
    ERROR_INVALID_ENTRY,
    ERROR_INVALID_ITEM_ID,
    ERROR_INVALID_QUANTITY,
)


def _is_positive_int(value: Any) -> bool:
    # bool is an int subclass; True must not pass for quantity 1
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


@dataclass(frozen=True)
class CartEntry:
    """One (item_id, quantity) pair. Quantity is the absolute count."""
    item_id: str
    quantity: int

    def validate(self) -> None:
        """Raise ValueError unless item_id is a non-empty string and quantity >= 1."""
        if not isinstance(self.item_id, str) or not self.item_id:
            raise ValueError(ERROR_INVALID_ITEM_ID)
        if not _is_positive_int(self.quantity):
            raise ValueError(ERROR_INVALID_QUANTITY)

    def to_dict(self) -> dict:
        return {"item_id": self.item_id, "quantity": self.quantity}

    @classmethod
    def from_dict(cls, data: dict) -> "CartEntry":
        """Create from dictionary, rejecting anything that is not a valid entry."""
        if not isinstance(data, dict):
            raise ValueError(ERROR_INVALID_ENTRY)
        entry = cls(item_id=data.get("item_id"), quantity=data.get("quantity"))
        entry.validate()
        return entry


def validate_entries(entries: Iterable[CartEntry]) -> List[CartEntry]:
    """
    Check every entry at the accessor boundary.

    Nothing is coerced: a zero, negative or non-integer quantity is an error.

    Returns:
        The entries as a list

    Raises:
        ValueError: On the first malformed entry
    """
    result = []
    for entry in entries:
        if not isinstance(entry, CartEntry):
            raise ValueError(ERROR_INVALID_ENTRY)
        entry.validate()
        result.append(entry)
    return result


class RemoteCartDocument(BaseModel):
    """A user's cart row in the user_carts table. Absent when the cart is empty."""
    model_config = ConfigDict(extra="ignore")  # Ignore unrelated columns on the row

    owner_id: str
    items: List[CartEntry]
    updated_at: Optional[datetime] = None

    @field_validator("items", mode="before")
    @classmethod
    def parse_items(cls, v):
        if not isinstance(v, list):
            raise ValueError("items must be a list")
        return [item if isinstance(item, CartEntry) else CartEntry.from_dict(item) for item in v]


@dataclass
class SyncResult:
    """Outcome of one remote write. Failures are reported here instead of raised."""
    ok: bool
    operation: str  # "upsert" | "remove" | "skipped"
    owner_id: str
    error: Optional[str] = None

    @classmethod
    def success(cls, operation: str, owner_id: str) -> "SyncResult":
        return cls(ok=True, operation=operation, owner_id=owner_id)

    @classmethod
    def failure(cls, operation: str, owner_id: str, error: Exception) -> "SyncResult":
        return cls(ok=False, operation=operation, owner_id=owner_id, error=str(error))


@dataclass
class CartSummary:
    """Counts shown in the header cart badge."""
    entries: List[CartEntry] = field(default_factory=list)

    @property
    def total_items(self) -> int:
        return sum(entry.quantity for entry in self.entries)

    @property
    def distinct_items(self) -> int:
        return len(self.entries)

    def to_dict(self) -> dict:
        return {
            "is_empty": not self.entries,
            "total_items": self.total_items,
            "distinct_items": self.distinct_items,
            "items": [entry.to_dict() for entry in self.entries],
        }
