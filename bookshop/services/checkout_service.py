"""
Checkout: turn cart lines into a persisted order.

Everything a checkout writes (the order row, its lines, the stock
decrements, the discount and the user's loyalty counter) goes through one
`atomic()` unit of work. Any failure rolls all of it back and reaches the
caller as a typed BookshopError.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import update
from sqlmodel import Session, select

from bookshop.constants.order_status import OrderStatus
from bookshop.database import atomic
from bookshop.dependencies.context import RequestContext
from bookshop.exceptions import (
    BookNotFound,
    BookshopError,
    EmptyCart,
    InvalidQuantity,
    UserNotFound,
)
from bookshop.models.book import Book
from bookshop.models.order import Order
from bookshop.models.order_event import OrderEventType
from bookshop.models.order_item import OrderItem
from bookshop.models.user import User
from bookshop.schemas.checkout_schemas import CartLine
from bookshop.services import cart_service, inventory_service
from bookshop.services.discount_service import DiscountQuote, apply_loyalty_discount
from bookshop.services.order_event_service import log_order_event
from bookshop.services.pricing import ZERO, PricedLine, order_total, to_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    order: Order
    discount: DiscountQuote

    @property
    def order_id(self) -> int:
        return self.order.id


def _validate_lines(cart_lines: Sequence[CartLine]):
    if not cart_lines:
        raise EmptyCart()

    for line in cart_lines:
        quantity = line.quantity
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise InvalidQuantity(line.book_id, quantity)


def _load_user(session: Session, user_id: int) -> User:
    user = session.exec(
        select(User)
        .where(User.id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).first()
    if not user:
        raise UserNotFound(user_id)
    return user


def _snapshot_prices(session: Session, cart_lines: Sequence[CartLine]) -> List[PricedLine]:
    book_ids = sorted({line.book_id for line in cart_lines})
    books = session.exec(
        select(Book)
        .where(Book.id.in_(book_ids))
        .with_for_update()
        .execution_options(populate_existing=True)
    ).all()
    by_id = {book.id: book for book in books}

    priced = []
    for line in cart_lines:
        book = by_id.get(line.book_id)
        if book is None:
            raise BookNotFound(line.book_id)
        priced.append(
            PricedLine(
                book_id=book.id,
                book_title=book.title,
                quantity=line.quantity,
                unit_price=to_money(book.price),
            )
        )
    return priced


def _increment_order_count(session: Session, user_id: int):
    result = session.execute(
        update(User)
        .where(User.id == user_id)
        .values(order_count=User.order_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise UserNotFound(user_id)


def _create_order(
    session: Session,
    context: RequestContext,
    cart_lines: Sequence[CartLine],
    payment_method,
    shipping_address: Optional[str],
) -> Tuple[Order, DiscountQuote]:
    _validate_lines(cart_lines)

    user = _load_user(session, context.user_id)
    priced = _snapshot_prices(session, cart_lines)
    total = order_total(priced)

    order = Order(
        user_id=user.id,
        total_amount=total,
        discount_amount=ZERO,
        payment_method=getattr(payment_method, "value", payment_method),
        shipping_address=shipping_address or user.address,
        status=OrderStatus.PENDING.value,
    )
    session.add(order)
    session.flush()  # need order.id for the lines

    for line in priced:
        session.add(
            OrderItem(
                order_id=order.id,
                book_id=line.book_id,
                book_title=line.book_title,
                price=line.unit_price,
                quantity=line.quantity,
            )
        )
        inventory_service.reserve(session, line.book_id, line.quantity)

    # priced against the standing before this order counts
    quote = apply_loyalty_discount(order, user)
    _increment_order_count(session, user.id)

    log_order_event(
        session,
        order.id,
        OrderEventType.ORDER_PLACED,
        f"Order #{order.id} placed",
        created_by=context.actor,
        meta={
            "total_amount": str(order.total_amount),
            "items": len(priced),
            "payment_method": order.payment_method,
        },
    )
    if quote.discount_amount > 0:
        log_order_event(
            session,
            order.id,
            OrderEventType.DISCOUNT_APPLIED,
            quote.description,
            created_by=context.actor,
            meta={"discount_amount": str(quote.discount_amount), "kind": quote.kind.value},
        )

    return order, quote


def _finish(session: Session, order: Order, quote: DiscountQuote) -> CheckoutResult:
    session.refresh(order)
    logger.info(
        f"Order {order.id} placed for user {order.user_id}: "
        f"total={order.total_amount} discount={order.discount_amount}"
    )
    return CheckoutResult(order=order, discount=quote)


def create_order(
    session: Session,
    context: RequestContext,
    cart_lines: Sequence[CartLine],
    payment_method,
    shipping_address: Optional[str] = None,
) -> CheckoutResult:
    try:
        with atomic(session):
            order, quote = _create_order(
                session, context, cart_lines, payment_method, shipping_address
            )
    except BookshopError as exc:
        logger.warning(f"Checkout rejected for user {context.user_id}: {exc}")
        raise

    return _finish(session, order, quote)


def place_order_from_cart(
    session: Session,
    context: RequestContext,
    payment_method,
    shipping_address: Optional[str] = None,
) -> CheckoutResult:
    """Check out the user's saved cart; the cart is emptied in the same transaction."""
    try:
        with atomic(session):
            cart_lines = cart_service.get_cart_lines(session, context.user_id)
            order, quote = _create_order(
                session, context, cart_lines, payment_method, shipping_address
            )
            cart_service.clear_cart(session, context.user_id)
    except BookshopError as exc:
        logger.warning(f"Checkout rejected for user {context.user_id}: {exc}")
        raise

    return _finish(session, order, quote)
