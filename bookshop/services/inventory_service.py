import logging
from datetime import datetime

from sqlalchemy import update
from sqlmodel import Session, select

from bookshop.exceptions import BookNotFound, InsufficientStock, InvalidQuantity
from bookshop.models.book import Book
from bookshop.models.order_item import OrderItem

logger = logging.getLogger(__name__)


def _check_quantity(book_id: int, quantity):
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise InvalidQuantity(book_id, quantity)


def get_stock(session: Session, book_id: int) -> int:
    stock = session.exec(select(Book.stock).where(Book.id == book_id)).first()
    if stock is None:
        raise BookNotFound(book_id)
    return stock


def reserve(session: Session, book_id: int, quantity: int):
    """
    Take `quantity` units of a book out of stock.

    Check and decrement are one conditional UPDATE against the stored row, so
    two transactions racing for the last unit cannot both succeed. Nothing is
    committed here; the caller owns the transaction.
    """
    _check_quantity(book_id, quantity)

    # synchronize_session=False keeps rowcount reliable; in-session Book
    # objects are stale until the transaction ends
    result = session.execute(
        update(Book)
        .where(Book.id == book_id, Book.stock >= quantity)
        .values(stock=Book.stock - quantity, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 1:
        logger.info(f"Reserved {quantity} of book {book_id}")
        return

    available = get_stock(session, book_id)
    raise InsufficientStock(book_id, quantity, available)


def release(session: Session, book_id: int, quantity: int):
    """Put units back into stock (compensates an earlier reserve)."""
    _check_quantity(book_id, quantity)

    result = session.execute(
        update(Book)
        .where(Book.id == book_id)
        .values(stock=Book.stock + quantity, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise BookNotFound(book_id)

    logger.info(f"Released {quantity} of book {book_id}")


def restock_order_items(session: Session, order_id: int) -> int:
    """Restock items when order is cancelled"""
    order_items = session.exec(
        select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.id)
    ).all()

    for item in order_items:
        release(session, item.book_id, item.quantity)

    return len(order_items)
