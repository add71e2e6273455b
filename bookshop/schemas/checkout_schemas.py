# bookshop/schemas/checkout_schemas.py
from decimal import Decimal
from pydantic import BaseModel
from typing import List, Optional

from bookshop.constants.payment_methods import PaymentMethod


class CartLine(BaseModel):
    book_id: int
    quantity: int    # validated by checkout, not here, so callers get InvalidQuantity


class CreateOrderRequest(BaseModel):
    items: List[CartLine]
    payment_method: PaymentMethod
    shipping_address: Optional[str] = None   # falls back to the user's address


class PlaceOrderRequest(BaseModel):
    payment_method: PaymentMethod
    shipping_address: Optional[str] = None


class DiscountPreview(BaseModel):
    loyalty_tier: str
    description: str
    original_amount: Decimal
    discount_amount: Decimal
    discounted_amount: Decimal
