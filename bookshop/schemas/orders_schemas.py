from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel
from typing import List, Optional

from bookshop.models.order import Order
from bookshop.models.order_event import OrderEvent


class OrderItemRead(BaseModel):
    book_id: int
    book_title: str
    quantity: int
    price: Decimal
    line_total: Decimal


class OrderRead(BaseModel):
    order_id: int
    user_id: int
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    payment_method: str
    shipping_address: Optional[str] = None
    total_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    items: List[OrderItemRead] = []

    @classmethod
    def from_order(cls, order: Order, include_items: bool = True) -> "OrderRead":
        return cls(
            order_id=order.id,
            user_id=order.user_id,
            status=order.status,
            created_at=order.created_at,
            updated_at=order.updated_at,
            payment_method=order.payment_method,
            shipping_address=order.shipping_address,
            total_amount=order.total_amount,
            discount_amount=order.discount_amount,
            final_amount=order.final_amount,
            items=[
                OrderItemRead(
                    book_id=i.book_id,
                    book_title=i.book_title,
                    quantity=i.quantity,
                    price=i.price,
                    line_total=i.line_total,
                )
                for i in order.items
            ] if include_items else [],
        )


class PlaceOrderResponse(BaseModel):
    message: str
    order: OrderRead
    discount_description: str


class StatusUpdateResponse(BaseModel):
    message: str
    order_id: int
    old_status: str
    new_status: str


class OrderEventRead(BaseModel):
    sequence: int
    event_type: str
    label: str
    meta: Optional[dict] = None
    created_at: datetime
    created_by: str

    @classmethod
    def from_event(cls, event: OrderEvent) -> "OrderEventRead":
        return cls(
            sequence=event.sequence,
            event_type=event.event_type,
            label=event.label,
            meta=event.meta,
            created_at=event.created_at,
            created_by=event.created_by,
        )
