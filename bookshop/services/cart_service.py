from typing import List

from sqlmodel import Session, select

from bookshop.database import atomic
from bookshop.exceptions import BookNotFound, CartItemNotFound, InsufficientStock, InvalidQuantity
from bookshop.models.book import Book
from bookshop.models.cart import CartItem
from bookshop.schemas.cart_schemas import CartEvent, CartEventType
from bookshop.schemas.checkout_schemas import CartLine
from bookshop.services.pricing import ZERO, to_money


def _get_book(session: Session, book_id: int) -> Book:
    book = session.get(Book, book_id)
    if not book:
        raise BookNotFound(book_id)
    return book


def _get_owned_item(session: Session, user_id: int, item_id: int) -> CartItem:
    item = session.get(CartItem, item_id)
    if not item or item.user_id != user_id:
        raise CartItemNotFound(item_id)
    return item


def _title(session: Session, book_id: int) -> str:
    book = session.get(Book, book_id)
    return book.title if book else f"book {book_id}"


def add_to_cart(session: Session, user_id: int, book_id: int, quantity: int = 1) -> CartEvent:
    if quantity is None or quantity < 1:
        raise InvalidQuantity(book_id, quantity)

    with atomic(session):
        book = _get_book(session, book_id)

        # Check if the user already has this item
        existing_item = session.exec(
            select(CartItem).where(
                CartItem.user_id == user_id,
                CartItem.book_id == book_id
            )
        ).first()

        new_quantity = quantity + (existing_item.quantity if existing_item else 0)
        if not book.is_available(new_quantity):
            raise InsufficientStock(book_id, new_quantity, book.stock)

        if existing_item:
            existing_item.quantity = new_quantity
            item = existing_item
        else:
            item = CartItem(user_id=user_id, book_id=book_id, quantity=quantity)
        session.add(item)
        session.flush()

        event = CartEvent(
            type=CartEventType.ITEM_ADDED,
            user_id=user_id,
            item_id=item.id,
            book_id=book_id,
            quantity=quantity,
            message=f"Added {quantity} of '{book.title}' to cart",
        )

    return event


def remove_item(session: Session, user_id: int, item_id: int) -> CartEvent:
    with atomic(session):
        item = _get_owned_item(session, user_id, item_id)
        event = CartEvent(
            type=CartEventType.ITEM_REMOVED,
            user_id=user_id,
            item_id=item.id,
            book_id=item.book_id,
            quantity=item.quantity,
            message=f"Removed '{_title(session, item.book_id)}' from cart",
        )
        session.delete(item)

    return event


def update_quantity(session: Session, user_id: int, item_id: int, quantity: int) -> CartEvent:
    if quantity <= 0:
        return remove_item(session, user_id, item_id)

    with atomic(session):
        item = _get_owned_item(session, user_id, item_id)
        book = _get_book(session, item.book_id)
        if not book.is_available(quantity):
            raise InsufficientStock(book.id, quantity, book.stock)

        item.quantity = quantity
        session.add(item)

        event = CartEvent(
            type=CartEventType.QUANTITY_CHANGED,
            user_id=user_id,
            item_id=item.id,
            book_id=book.id,
            quantity=quantity,
            message=f"Changed quantity of '{book.title}' to {quantity}",
        )

    return event


def clear_cart(session: Session, user_id: int) -> int:
    """Delete the user's cart rows without committing; the caller owns the transaction."""
    items = session.exec(
        select(CartItem).where(CartItem.user_id == user_id)
    ).all()

    for item in items:
        session.delete(item)

    return len(items)


def clear_user_cart(session: Session, user_id: int) -> CartEvent:
    with atomic(session):
        removed = clear_cart(session, user_id)

    return CartEvent(
        type=CartEventType.CART_CLEARED,
        user_id=user_id,
        quantity=removed,
        message="Cart cleared",
    )


def get_cart_lines(session: Session, user_id: int) -> List[CartLine]:
    items = session.exec(
        select(CartItem).where(CartItem.user_id == user_id).order_by(CartItem.id)
    ).all()
    return [CartLine(book_id=i.book_id, quantity=i.quantity) for i in items]


def get_cart_details(session: Session, user_id: int) -> dict:
    rows = session.exec(
        select(CartItem, Book)
        .join(Book, CartItem.book_id == Book.id)
        .where(CartItem.user_id == user_id)
        .order_by(CartItem.id)
    ).all()

    items_response = []
    subtotal = ZERO

    for cart_item, book in rows:
        price = to_money(book.price)
        line_total = price * cart_item.quantity
        subtotal += line_total

        items_response.append({
            "item_id": cart_item.id,
            "book_id": book.id,
            "book_title": book.title,
            "price": price,
            "quantity": cart_item.quantity,
            "stock": book.stock,
            "in_stock": book.in_stock,
            "total": line_total,
        })

    return {
        "items": items_response,
        "subtotal": subtotal,
    }
