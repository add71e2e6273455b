from decimal import Decimal
from sqlmodel import SQLModel, Field , Relationship
from typing import Optional , TYPE_CHECKING

if TYPE_CHECKING:
    from bookshop.models.order import Order

class OrderItem(SQLModel, table=True):
    __tablename__ = "order_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    book_id: int = Field(foreign_key="books.id")

    book_title: str
    # price at purchase; never re-read from the catalog
    price: Decimal = Field(max_digits=10, decimal_places=2)
    quantity: int

    order: Optional["Order"] = Relationship(back_populates="items")

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity
