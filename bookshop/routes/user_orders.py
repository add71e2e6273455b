from typing import List
from fastapi import APIRouter, Depends, status
from sqlmodel import Session
from bookshop.database import get_session
from bookshop.dependencies.context import RequestContext, get_request_context
from bookshop.schemas.checkout_schemas import CreateOrderRequest
from bookshop.schemas.orders_schemas import OrderEventRead, OrderRead, PlaceOrderResponse
from bookshop.services.checkout_service import create_order
from bookshop.services.order_event_service import get_order_events
from bookshop.services.order_service import get_order_by_id, orders_by_user_query
from bookshop.utils.pagination import paginate

router = APIRouter()


@router.post("", response_model=PlaceOrderResponse, status_code=status.HTTP_201_CREATED)
def create_order_endpoint(
    data: CreateOrderRequest,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_request_context),
):
    result = create_order(
        session,
        context,
        data.items,
        payment_method=data.payment_method,
        shipping_address=data.shipping_address,
    )

    return PlaceOrderResponse(
        message="Order placed successfully",
        order=OrderRead.from_order(result.order),
        discount_description=result.discount.description,
    )


# My Orders

@router.get("")
def my_orders(
    page: int = 1,
    limit: int = 10,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_request_context),
):
    return paginate(
        session=session,
        query=orders_by_user_query(context.user_id),
        page=page,
        limit=limit,
        serializer=OrderRead.from_order,
    )


@router.get("/{order_id}", response_model=OrderRead)
def order_details(
    order_id: int,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_request_context),
):
    order = get_order_by_id(session, order_id, context)
    return OrderRead.from_order(order)


# Track Orders

@router.get("/{order_id}/timeline", response_model=List[OrderEventRead])
def order_timeline(
    order_id: int,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_request_context),
):
    order = get_order_by_id(session, order_id, context)
    return [OrderEventRead.from_event(e) for e in get_order_events(session, order.id)]
