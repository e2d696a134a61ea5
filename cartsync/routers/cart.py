"""
Cart Router

Device cart endpoints. Every request names its device with X-Device-Id;
signed-in requests also carry X-User-Id from the auth gateway, which moves
the device into (or out of) the user's session.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from cartsync.auth import verify_webhook_secret
from cartsync.cart import CartService
from cartsync.errors import CartStoreError
from cartsync.logging import get_logger

from .deps import get_cart_service
from .models import AddToCartRequest, LoginEventRequest, PruneCartRequest, UpdateCartItemRequest

logger = get_logger(__name__)

router = APIRouter(tags=["cart"])


async def _sync_session(service: CartService, user_id: Optional[str]) -> None:
    await service.ensure_session(user_id or None)


def _store_unavailable(e: CartStoreError) -> HTTPException:
    logger.error(f"Cart store error: {e}")
    return HTTPException(status_code=503, detail=str(e))


@router.get("/cart")
async def get_cart(
    service: CartService = Depends(get_cart_service),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
):
    """Get the device cart."""
    await _sync_session(service, x_user_id)
    return service.get_summary().to_dict()


@router.post("/cart/items")
async def add_cart_item(
    request: AddToCartRequest,
    service: CartService = Depends(get_cart_service),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
):
    """Add units of an item to the cart."""
    await _sync_session(service, x_user_id)
    try:
        await service.add_item(request.item_id, request.quantity)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CartStoreError as e:
        raise _store_unavailable(e)
    return service.get_summary().to_dict()


@router.put("/cart/items/{item_id}")
async def update_cart_item(
    item_id: str,
    request: UpdateCartItemRequest,
    service: CartService = Depends(get_cart_service),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
):
    """Set the quantity of an item (0 removes it)."""
    await _sync_session(service, x_user_id)
    try:
        await service.set_quantity(item_id, request.quantity)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CartStoreError as e:
        raise _store_unavailable(e)
    return service.get_summary().to_dict()


@router.delete("/cart/items/{item_id}")
async def remove_cart_item(
    item_id: str,
    service: CartService = Depends(get_cart_service),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
):
    """Remove an item from the cart."""
    await _sync_session(service, x_user_id)
    try:
        await service.remove_item(item_id)
    except CartStoreError as e:
        raise _store_unavailable(e)
    return service.get_summary().to_dict()


@router.delete("/cart")
async def clear_cart(
    service: CartService = Depends(get_cart_service),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
):
    """Empty the cart."""
    await _sync_session(service, x_user_id)
    try:
        await service.clear()
    except CartStoreError as e:
        raise _store_unavailable(e)
    return {"success": True}


@router.post("/cart/prune")
async def prune_cart(
    request: PruneCartRequest,
    service: CartService = Depends(get_cart_service),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
):
    """Drop items that are no longer in the catalogue."""
    await _sync_session(service, x_user_id)
    try:
        removed = await service.prune(request.known_item_ids)
    except CartStoreError as e:
        raise _store_unavailable(e)
    return {"removed": removed, **service.get_summary().to_dict()}


@router.post("/cart/refresh")
async def refresh_cart(
    service: CartService = Depends(get_cart_service),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
):
    """Replace the device cart with the signed-in user's remote cart."""
    await _sync_session(service, x_user_id)
    try:
        await service.refresh_from_remote()
    except CartStoreError as e:
        raise _store_unavailable(e)
    return service.get_summary().to_dict()


# ==================== AUTH EVENTS ====================

@router.post("/cart/login")
async def cart_login_event(
    request: LoginEventRequest,
    service: CartService = Depends(get_cart_service),
    _: bool = Depends(verify_webhook_secret),
):
    """Login transition for the device: reconcile its cart with the user's."""
    result = await service.on_login(request.user_id)
    return result.to_dict()


@router.post("/cart/logout")
async def cart_logout_event(
    service: CartService = Depends(get_cart_service),
    _: bool = Depends(verify_webhook_secret),
):
    """Logout transition for the device."""
    await service.on_logout()
    return {"success": True}
