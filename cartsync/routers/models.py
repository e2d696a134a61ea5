"""
Cart API Pydantic Models

Request bodies for the cart endpoints. Quantities are strict: "3", true and
2.0 are rejected instead of being coerced.
"""
from pydantic import BaseModel, Field, StrictInt


class AddToCartRequest(BaseModel):
    item_id: str = Field(min_length=1)
    quantity: StrictInt = 1


class UpdateCartItemRequest(BaseModel):
    quantity: StrictInt


class PruneCartRequest(BaseModel):
    known_item_ids: list[str]


class LoginEventRequest(BaseModel):
    user_id: str = Field(min_length=1)
