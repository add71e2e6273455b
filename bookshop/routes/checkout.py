from decimal import Decimal
from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session
from bookshop.database import get_session
from bookshop.dependencies.context import RequestContext, get_request_context
from bookshop.models.user import User
from bookshop.schemas.checkout_schemas import DiscountPreview, PlaceOrderRequest
from bookshop.schemas.orders_schemas import OrderRead, PlaceOrderResponse
from bookshop.services.checkout_service import place_order_from_cart
from bookshop.services.discount_service import loyalty_tier, select_discount

router = APIRouter()


# Checkout button in Cart page

@router.post("/place-order", response_model=PlaceOrderResponse, status_code=status.HTTP_201_CREATED)
def place_order(
    data: PlaceOrderRequest,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_request_context),
):
    result = place_order_from_cart(
        session,
        context,
        payment_method=data.payment_method,
        shipping_address=data.shipping_address,
    )

    return PlaceOrderResponse(
        message="Order placed successfully",
        order=OrderRead.from_order(result.order),
        discount_description=result.discount.description,
    )


# What the current user would pay for a given cart amount

@router.get("/discount", response_model=DiscountPreview)
def discount_preview(
    amount: Decimal = Query(..., ge=0),
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_request_context),
):
    current_user = session.get(User, context.user_id)
    quote = select_discount(current_user, amount)

    return DiscountPreview(
        loyalty_tier=loyalty_tier(current_user),
        description=quote.description,
        original_amount=quote.original_amount,
        discount_amount=quote.discount_amount,
        discounted_amount=quote.discounted_amount,
    )
