import logging
from dataclasses import dataclass
from datetime import datetime

from sqlmodel import Session, select

from bookshop.constants.order_status import ALLOWED_TRANSITIONS, OrderStatus
from bookshop.database import atomic
from bookshop.exceptions import InvalidStatusTransition, OrderNotFound, UnknownStatus
from bookshop.models.order import Order
from bookshop.models.order_event import OrderEventType
from bookshop.services.inventory_service import restock_order_items
from bookshop.services.order_event_service import log_order_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusChange:
    """The order after the update, and the status it had under the row lock."""

    order: Order
    old_status: str
    new_status: str


def parse_status(value) -> OrderStatus:
    """Case-insensitive lookup; unknown strings are an error, never PENDING."""
    if isinstance(value, OrderStatus):
        return value
    if isinstance(value, str):
        try:
            return OrderStatus(value.strip().lower())
        except ValueError:
            pass
    raise UnknownStatus(value)


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, [])


def ensure_transition(current: OrderStatus, target: OrderStatus):
    if not can_transition(current, target):
        raise InvalidStatusTransition(current.value, target.value)


def update_order_status(
    session: Session,
    order_id: int,
    new_status,
    changed_by: str = "system",
) -> StatusChange:
    target = parse_status(new_status)

    with atomic(session):
        order = session.exec(
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if not order:
            raise OrderNotFound(order_id)

        current = parse_status(order.status)
        ensure_transition(current, target)

        order.status = target.value
        order.updated_at = datetime.utcnow()
        session.add(order)

        log_order_event(
            session,
            order.id,
            OrderEventType.STATUS_CHANGED,
            f"Order #{order.id} changed from {current.value} → {target.value}",
            created_by=changed_by,
            meta={"old_status": current.value, "new_status": target.value},
        )

        if target is OrderStatus.CANCELLED:
            restored = restock_order_items(session, order.id)
            log_order_event(
                session,
                order.id,
                OrderEventType.STOCK_RESTORED,
                f"Stock restored for {restored} item(s)",
                created_by=changed_by,
            )

    session.refresh(order)
    logger.info(f"Order {order.id} status {current.value} -> {target.value}")
    return StatusChange(order=order, old_status=current.value, new_status=target.value)
