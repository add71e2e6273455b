from decimal import Decimal
from typing import Optional


class BookshopError(Exception):
    """Base class for every failure the checkout core reports to callers."""

    status_code = 400
    code = "bookshop_error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message())

    def default_message(self) -> str:
        return self.code.replace("_", " ")

    @property
    def message(self) -> str:
        return str(self)


class EmptyCart(BookshopError):
    code = "empty_cart"

    def default_message(self) -> str:
        return "Cart is empty"


class InvalidQuantity(BookshopError):
    code = "invalid_quantity"

    def __init__(self, book_id: int, quantity):
        self.book_id = book_id
        self.quantity = quantity
        super().__init__(f"Invalid quantity {quantity} for book {book_id}")


class BookNotFound(BookshopError):
    status_code = 404
    code = "book_not_found"

    def __init__(self, book_id: int):
        self.book_id = book_id
        super().__init__(f"Book with ID {book_id} not found")


class InsufficientStock(BookshopError):
    status_code = 409
    code = "insufficient_stock"

    def __init__(self, book_id: int, requested: int, available: int):
        self.book_id = book_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for book {book_id}. "
            f"Available: {available}, Requested: {requested}"
        )


class UnknownStatus(BookshopError):
    code = "unknown_status"

    def __init__(self, status):
        self.status = status
        super().__init__(f"Unknown order status: {status!r}")


class InvalidStatusTransition(BookshopError):
    status_code = 409
    code = "invalid_status_transition"

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Invalid status change from {current} → {target}")


class OrderNotFound(BookshopError):
    status_code = 404
    code = "order_not_found"

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__("Order not found")


class UserNotFound(BookshopError):
    status_code = 404
    code = "user_not_found"

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User with ID {user_id} not found")


class CartItemNotFound(BookshopError):
    status_code = 404
    code = "cart_item_not_found"

    def __init__(self, item_id: int):
        self.item_id = item_id
        super().__init__("Cart item not found")


class InvalidDiscount(BookshopError):
    code = "invalid_discount"

    def __init__(self, discount: Decimal, total: Decimal):
        super().__init__(f"Discount {discount} must be between 0 and {total}")


class PersistenceFailure(BookshopError):
    status_code = 503
    code = "persistence_failure"
