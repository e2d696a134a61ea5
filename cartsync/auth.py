"""Webhook secret validation for the authentication collaborator."""
import os
from fastapi import Header, HTTPException

from cartsync.errors import ERROR_UNAUTHORIZED


async def verify_webhook_secret(
    authorization: str = Header(None, alias="Authorization")
):
    """
    Verify CART_WEBHOOK_SECRET for login/logout events.

    The auth gateway calls these endpoints server-to-server; browsers never do.
    """
    webhook_secret = os.environ.get("CART_WEBHOOK_SECRET", "")

    if not webhook_secret:
        raise HTTPException(status_code=500, detail="CART_WEBHOOK_SECRET not configured")

    if authorization != f"Bearer {webhook_secret}":
        raise HTTPException(status_code=401, detail=ERROR_UNAUTHORIZED)

    return True
