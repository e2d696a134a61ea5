"""Cart package: models, stores, merge, reconciliation and service facade."""
from .merge import merge_carts
from .models import CartEntry, CartSummary, RemoteCartDocument, SyncResult, validate_entries
from .reconcile import CartReconciler, ReconcileResult
from .remote import RemoteCartStore
from .service import CartService
from .storage import LocalCartStore, ReconciledMarker

__all__ = [
    "CartEntry",
    "CartSummary",
    "RemoteCartDocument",
    "SyncResult",
    "validate_entries",
    "merge_carts",
    "LocalCartStore",
    "ReconciledMarker",
    "RemoteCartStore",
    "CartReconciler",
    "ReconcileResult",
    "CartService",
]
