from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime

from bookshop.constants import roles


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str
    email: str
    role: str = Field(default=roles.CUSTOMER)
    can_login: bool = Field(default=True)
    address: Optional[str] = None
    # completed orders, drives the loyalty discount
    order_count: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_admin(self) -> bool:
        return (self.role or "").lower() == roles.ADMIN
