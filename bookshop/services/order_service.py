from typing import List, Optional

from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from bookshop.constants.order_status import OrderStatus
from bookshop.dependencies.context import RequestContext
from bookshop.exceptions import OrderNotFound
from bookshop.models.order import Order


def get_order_by_id(session: Session, order_id: int, context: Optional[RequestContext] = None) -> Order:
    """Get order by ID with its lines. Non-admin callers only see their own orders."""
    statement = (
        select(Order)
        .where(Order.id == order_id)
        .options(selectinload(Order.items))
    )
    if context is not None and not context.is_admin:
        statement = statement.where(Order.user_id == context.user_id)

    order = session.exec(statement).first()
    if not order:
        raise OrderNotFound(order_id)
    return order


def orders_by_user_query(user_id: int):
    return (
        select(Order)
        .where(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
    )


def get_orders_by_user(session: Session, user_id: int) -> List[Order]:
    return session.exec(
        orders_by_user_query(user_id).options(selectinload(Order.items))
    ).all()


def list_orders_query(status: Optional[OrderStatus] = None, user_id: Optional[int] = None):
    query = select(Order)
    if status:
        query = query.where(Order.status == status.value)
    if user_id is not None:
        query = query.where(Order.user_id == user_id)
    return query.order_by(Order.created_at.desc(), Order.id.desc())
