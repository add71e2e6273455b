# -------- ADMIN ORDERS --------
from typing import List, Optional
from fastapi import APIRouter, Depends
from sqlmodel import Session
from bookshop.constants.order_status import OrderStatus
from bookshop.database import get_session
from bookshop.dependencies.admin import require_admin
from bookshop.dependencies.context import RequestContext
from bookshop.schemas.orders_schemas import OrderRead, StatusUpdateResponse
from bookshop.services.order_service import get_order_by_id, get_orders_by_user, list_orders_query
from bookshop.services.order_status_service import update_order_status
from bookshop.utils.pagination import paginate


router = APIRouter()


@router.get("")
def list_orders(
    page: int = 1,
    limit: int = 10,
    status: Optional[OrderStatus] = None,
    user_id: Optional[int] = None,
    session: Session = Depends(get_session),
    _: RequestContext = Depends(require_admin),
):
    return paginate(
        session=session,
        query=list_orders_query(status=status, user_id=user_id),
        page=page,
        limit=limit,
        serializer=lambda o: OrderRead.from_order(o, include_items=False),
    )


@router.get("/users/{user_id}", response_model=List[OrderRead])
def orders_for_user(
    user_id: int,
    session: Session = Depends(get_session),
    _: RequestContext = Depends(require_admin),
):
    return [OrderRead.from_order(o) for o in get_orders_by_user(session, user_id)]


@router.get("/{order_id}", response_model=OrderRead)
def order_details(
    order_id: int,
    session: Session = Depends(get_session),
    admin: RequestContext = Depends(require_admin),
):
    return OrderRead.from_order(get_order_by_id(session, order_id, admin))


@router.patch("/{order_id}/status", response_model=StatusUpdateResponse)
def change_order_status(
    order_id: int,
    new_status: str,
    session: Session = Depends(get_session),
    admin: RequestContext = Depends(require_admin),
):
    change = update_order_status(session, order_id, new_status, changed_by=admin.actor)

    return StatusUpdateResponse(
        message="Order status updated",
        order_id=change.order.id,
        old_status=change.old_status,
        new_status=change.new_status,
    )
