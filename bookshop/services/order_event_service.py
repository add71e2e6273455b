# bookshop/services/order_event_service.py

from datetime import datetime
from typing import List, Optional
from uuid import uuid4
from sqlalchemy import func
from sqlmodel import Session, select
from bookshop.models.order_event import OrderEvent, OrderEventType


def _next_sequence(session: Session, order_id: int) -> int:
    # autoflush puts events added earlier in this transaction into the max
    last = session.exec(
        select(func.max(OrderEvent.sequence)).where(OrderEvent.order_id == order_id)
    ).one()
    return (last or 0) + 1


def log_order_event(
    session: Session,
    order_id: int,
    event_type: OrderEventType,
    label: str,
    created_by: str = "system",
    meta: Optional[dict] = None,
) -> OrderEvent:
    """
    Append-only event log for order timeline.

    Callers hold the order row (new order, or locked for a status change),
    so sequence numbers for one order are handed out one writer at a time.
    """

    event = OrderEvent(
        id=str(uuid4()),
        order_id=order_id,
        sequence=_next_sequence(session, order_id),
        event_type=event_type.value,
        label=label,
        meta=meta,
        created_by=created_by,
        created_at=datetime.utcnow(),
    )

    session.add(event)
    return event


def get_order_events(session: Session, order_id: int) -> List[OrderEvent]:
    return session.exec(
        select(OrderEvent)
        .where(OrderEvent.order_id == order_id)
        .order_by(OrderEvent.sequence)
    ).all()
