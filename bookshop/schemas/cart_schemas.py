from enum import Enum
from typing import Optional
from pydantic import BaseModel
from sqlmodel import SQLModel

class CartAddRequest(SQLModel):
    book_id: int
    quantity: int = 1

class CartUpdateRequest(SQLModel):
    quantity: int


class CartEventType(str, Enum):
    ITEM_ADDED = "item_added"
    ITEM_REMOVED = "item_removed"
    QUANTITY_CHANGED = "quantity_changed"
    CART_CLEARED = "cart_cleared"


class CartEvent(BaseModel):
    """What a cart mutation did. Returned to the caller instead of pushed to observers."""

    type: CartEventType
    user_id: int
    item_id: Optional[int] = None
    book_id: Optional[int] = None
    quantity: int = 0
    message: str
