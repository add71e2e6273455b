from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON, UniqueConstraint


class OrderEventType(str, Enum):
    ORDER_PLACED = "order_placed"
    DISCOUNT_APPLIED = "discount_applied"
    STATUS_CHANGED = "status_changed"
    STOCK_RESTORED = "stock_restored"


class OrderEvent(SQLModel, table=True):
    __tablename__ = "order_event"
    __table_args__ = (
        UniqueConstraint("order_id", "sequence", name="uq_order_event_sequence"),
    )
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)

    order_id: int = Field(foreign_key="orders.id", index=True)
    # 1, 2, 3... per order, in the order events were written
    sequence: int
    event_type: str = Field(index=True)

    label: str
    meta: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=datetime.utcnow)
    created_by: str = Field(default="system")
