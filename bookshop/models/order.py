from decimal import Decimal
from sqlmodel import SQLModel, Field, Relationship
from typing import List, Optional
from datetime import datetime

from bookshop.constants.order_status import OrderStatus
from bookshop.exceptions import InvalidDiscount
from bookshop.models.order_item import OrderItem


class Order(SQLModel, table=True):
    __tablename__ = "orders"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)

    # sum of line subtotals before discount, fixed at creation
    total_amount: Decimal = Field(max_digits=10, decimal_places=2)
    discount_amount: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)

    payment_method: str
    shipping_address: Optional[str] = None

    status: str = Field(default=OrderStatus.PENDING.value, index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    items: List["OrderItem"] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"order_by": "OrderItem.id"},
    )

    @property
    def final_amount(self) -> Decimal:
        if self.total_amount is None:
            return Decimal("0.00")
        return self.total_amount - (self.discount_amount or Decimal("0.00"))

    def set_discount(self, amount: Decimal):
        if amount < 0 or amount > self.total_amount:
            raise InvalidDiscount(amount, self.total_amount)
        self.discount_amount = amount
