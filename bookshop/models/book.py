from decimal import Decimal
from sqlmodel import SQLModel, Field
from sqlalchemy import CheckConstraint
from typing import Optional
from datetime import datetime


class Book(SQLModel, table=True):
    __tablename__ = "books"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_books_stock_non_negative"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    author: str
    isbn: Optional[str] = None

    #Shop Details
    price: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    stock: int = Field(default=0)

    #timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def in_stock(self) -> bool:
        return self.stock is not None and self.stock > 0

    def is_available(self, quantity: int) -> bool:
        return self.stock is not None and self.stock >= quantity
