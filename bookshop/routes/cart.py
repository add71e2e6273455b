from fastapi import APIRouter, Depends
from sqlmodel import Session
from bookshop.database import get_session
from bookshop.dependencies.context import RequestContext, get_request_context
from bookshop.schemas.cart_schemas import CartAddRequest, CartEvent, CartUpdateRequest
from bookshop.services import cart_service


router = APIRouter()

# Add to Cart 

@router.post("/add", response_model=CartEvent)
def add_to_cart(
    data: CartAddRequest,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_request_context),
):
    return cart_service.add_to_cart(session, context.user_id, data.book_id, data.quantity)


# View Cart 

@router.get("/")
def get_cart(
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_request_context),
):
    return cart_service.get_cart_details(session, context.user_id)

# Update Cart 
@router.put("/update/{item_id}", response_model=CartEvent)
def update_cart_item(
    item_id: int,
    data: CartUpdateRequest,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_request_context),
):
    return cart_service.update_quantity(session, context.user_id, item_id, data.quantity)

# Remove Cart 

@router.delete("/remove/{item_id}", response_model=CartEvent)
def remove_item(
    item_id: int,
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_request_context),
):
    return cart_service.remove_item(session, context.user_id, item_id)

# Clear Cart 

@router.delete("/clear", response_model=CartEvent)
def clear_cart_endpoint(
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_request_context),
):
    return cart_service.clear_user_cart(session, context.user_id)
