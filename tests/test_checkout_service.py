"""Tests for the checkout transaction in bookshop.services.checkout_service."""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from bookshop.constants import roles
from bookshop.constants.payment_methods import PaymentMethod
from bookshop.dependencies.context import RequestContext
from bookshop.exceptions import (
    BookNotFound,
    EmptyCart,
    InsufficientStock,
    InvalidQuantity,
    PersistenceFailure,
    UserNotFound,
)
from bookshop.models import Book, CartItem, Order, OrderEvent, OrderItem, User
from bookshop.schemas.checkout_schemas import CartLine
from bookshop.services import cart_service
from bookshop.services.checkout_service import create_order, place_order_from_cart
from bookshop.services.order_event_service import get_order_events
from bookshop.services.order_service import get_order_by_id, get_orders_by_user


def _count(session, model):
    return len(session.exec(select(model)).all())


class TestScenario:
    def test_regular_customer_checkout(self, session, make_book, make_user, context_for):
        dune = make_book(title="Dune", price="12.99", stock=10)
        emma = make_book(title="Emma", price="9.99", stock=4)
        user = make_user(order_count=7)

        result = create_order(
            session,
            context_for(user),
            [CartLine(book_id=dune.id, quantity=2), CartLine(book_id=emma.id, quantity=1)],
            PaymentMethod.CREDIT_CARD,
        )

        order = result.order
        assert order.total_amount == Decimal("35.97")
        assert order.discount_amount == Decimal("3.60")
        assert order.final_amount == Decimal("32.37")
        assert order.status == "pending"
        assert order.payment_method == "credit_card"
        assert result.discount.description == "Regular Loyalty Discount (10%)"

        assert session.get(Book, dune.id).stock == 8
        assert session.get(Book, emma.id).stock == 3
        assert session.get(User, user.id).order_count == 8


class TestOrderCreation:
    def test_total_is_sum_of_line_subtotals(self, session, make_book, make_user, context_for):
        books = [
            make_book(title="A", price="0.10", stock=50),
            make_book(title="B", price="7.35", stock=50),
            make_book(title="C", price="104.99", stock=50),
        ]
        quantities = [7, 3, 2]
        user = make_user()

        result = create_order(
            session,
            context_for(user),
            [CartLine(book_id=b.id, quantity=q) for b, q in zip(books, quantities)],
            "paypal",
        )

        lines = result.order.items
        assert result.order.total_amount == sum(line.price * line.quantity for line in lines)
        assert result.order.total_amount == Decimal("232.73")

    def test_stock_and_loyalty_counter(self, session, make_book, make_user, context_for):
        book = make_book(stock=6)
        user = make_user(order_count=2)

        create_order(session, context_for(user), [CartLine(book_id=book.id, quantity=4)], "paypal")

        assert session.get(Book, book.id).stock == 2
        assert session.get(User, user.id).order_count == 3

    def test_order_id_is_exposed(self, session, make_book, make_user, context_for):
        book = make_book()
        user = make_user()
        result = create_order(session, context_for(user), [CartLine(book_id=book.id, quantity=1)], "paypal")
        assert result.order_id == result.order.id
        assert result.order_id is not None

    def test_price_at_purchase_is_a_snapshot(self, session, make_book, make_user, context_for):
        book = make_book(price="20.00")
        user = make_user()
        result = create_order(session, context_for(user), [CartLine(book_id=book.id, quantity=1)], "paypal")

        catalog_book = session.get(Book, book.id)
        catalog_book.price = Decimal("25.00")
        session.add(catalog_book)
        session.commit()

        reloaded = get_order_by_id(session, result.order_id)
        assert reloaded.items[0].price == Decimal("20.00")
        assert reloaded.total_amount == Decimal("20.00")

    def test_discount_uses_standing_before_this_order(self, session, make_book, make_user, context_for):
        # fifth order: the user had 4 before, so no discount yet
        book = make_book(price="100.00")
        user = make_user(order_count=4)

        first = create_order(session, context_for(user), [CartLine(book_id=book.id, quantity=1)], "paypal")
        second = create_order(session, context_for(user), [CartLine(book_id=book.id, quantity=1)], "paypal")

        assert first.order.discount_amount == Decimal("0.00")
        assert second.order.discount_amount == Decimal("10.00")
        assert session.get(User, user.id).order_count == 6

    def test_admin_orders_are_never_discounted(self, session, make_book, make_user, context_for):
        book = make_book(price="100.00")
        admin = make_user(order_count=20, role=roles.ADMIN)

        result = create_order(session, context_for(admin), [CartLine(book_id=book.id, quantity=1)], "paypal")

        assert result.order.discount_amount == Decimal("0.00")
        assert session.get(User, admin.id).order_count == 21

    def test_shipping_address_defaults_to_user_address(self, session, make_book, make_user, context_for):
        book = make_book()
        user = make_user(address="221B Baker Street")

        default = create_order(session, context_for(user), [CartLine(book_id=book.id, quantity=1)], "paypal")
        explicit = create_order(
            session, context_for(user), [CartLine(book_id=book.id, quantity=1)], "paypal",
            shipping_address="7 Eccles Street",
        )

        assert default.order.shipping_address == "221B Baker Street"
        assert explicit.order.shipping_address == "7 Eccles Street"

    def test_placed_event_recorded(self, session, make_book, make_user, context_for):
        book = make_book(price="50.00")
        user = make_user(order_count=10)

        result = create_order(session, context_for(user), [CartLine(book_id=book.id, quantity=1)], "paypal")

        events = get_order_events(session, result.order_id)
        assert [(e.sequence, e.event_type) for e in events] == [
            (1, "order_placed"),
            (2, "discount_applied"),
        ]

    def test_timeline_keeps_write_order_when_timestamps_tie(self, session, make_book, make_user, context_for):
        book = make_book(price="50.00")
        user = make_user(order_count=10)
        result = create_order(session, context_for(user), [CartLine(book_id=book.id, quantity=1)], "paypal")

        # both events stamped with the same instant
        for event in session.exec(select(OrderEvent)).all():
            event.created_at = datetime(2026, 1, 1, 12, 0, 0)
            session.add(event)
        session.commit()

        events = get_order_events(session, result.order_id)
        assert [e.event_type for e in events] == ["order_placed", "discount_applied"]

    def test_repeated_book_lines(self, session, make_book, make_user, context_for):
        book = make_book(price="5.00", stock=3)
        user = make_user()

        result = create_order(
            session,
            context_for(user),
            [CartLine(book_id=book.id, quantity=2), CartLine(book_id=book.id, quantity=1)],
            "paypal",
        )

        assert len(result.order.items) == 2
        assert session.get(Book, book.id).stock == 0


class TestRoundTrip:
    def test_persisted_order_reads_back_identically(self, engine, session, make_book, make_user, context_for):
        books = [make_book(title=t, price=p) for t, p in [("Ulysses", "18.50"), ("Emma", "9.99"), ("Dune", "12.99")]]
        user = make_user(order_count=12)
        lines = [CartLine(book_id=b.id, quantity=q) for b, q in zip(books, [1, 3, 2])]

        placed = create_order(session, context_for(user), lines, "credit_card").order
        expected = (
            placed.total_amount,
            placed.discount_amount,
            placed.status,
            [(i.book_id, i.quantity, i.price) for i in placed.items],
        )
        session.close()

        with Session(engine) as other:
            reread = get_order_by_id(other, placed.id)
            actual = (
                reread.total_amount,
                reread.discount_amount,
                reread.status,
                [(i.book_id, i.quantity, i.price) for i in reread.items],
            )

        assert actual == expected
        assert [book_id for book_id, _, _ in actual[3]] == [b.id for b in books]

    def test_orders_by_user(self, session, make_book, make_user, context_for):
        book = make_book()
        alice = make_user()
        bob = make_user()

        create_order(session, context_for(alice), [CartLine(book_id=book.id, quantity=1)], "paypal")
        create_order(session, context_for(bob), [CartLine(book_id=book.id, quantity=1)], "paypal")
        create_order(session, context_for(alice), [CartLine(book_id=book.id, quantity=2)], "paypal")

        orders = get_orders_by_user(session, alice.id)
        assert len(orders) == 2
        assert all(o.user_id == alice.id for o in orders)
        # newest first
        assert orders[0].id > orders[1].id


class TestRejectedCheckouts:
    def test_empty_cart(self, session, make_book, make_user, context_for):
        book = make_book(stock=5)
        user = make_user(order_count=3)

        with pytest.raises(EmptyCart):
            create_order(session, context_for(user), [], "paypal")

        assert session.get(Book, book.id).stock == 5
        assert session.get(User, user.id).order_count == 3
        assert _count(session, Order) == 0

    def test_insufficient_stock_rolls_everything_back(self, session, make_book, make_user, context_for):
        plenty = make_book(title="Plenty", stock=5)
        scarce = make_book(title="Scarce", stock=1)
        user = make_user(order_count=3)

        with pytest.raises(InsufficientStock) as exc_info:
            create_order(
                session,
                context_for(user),
                [CartLine(book_id=plenty.id, quantity=2), CartLine(book_id=scarce.id, quantity=2)],
                "paypal",
            )

        assert exc_info.value.book_id == scarce.id
        assert session.get(Book, plenty.id).stock == 5
        assert session.get(Book, scarce.id).stock == 1
        assert session.get(User, user.id).order_count == 3
        assert _count(session, Order) == 0
        assert _count(session, OrderItem) == 0
        assert _count(session, OrderEvent) == 0

    def test_unknown_book(self, session, make_book, make_user, context_for):
        book = make_book(stock=5)
        user = make_user()

        with pytest.raises(BookNotFound) as exc_info:
            create_order(
                session,
                context_for(user),
                [CartLine(book_id=book.id, quantity=1), CartLine(book_id=9999, quantity=1)],
                "paypal",
            )

        assert exc_info.value.book_id == 9999
        assert session.get(Book, book.id).stock == 5
        assert _count(session, Order) == 0

    @pytest.mark.parametrize("quantity", [0, -2])
    def test_invalid_quantity(self, session, make_book, make_user, context_for, quantity):
        book = make_book(stock=5)
        user = make_user()

        with pytest.raises(InvalidQuantity):
            create_order(session, context_for(user), [CartLine(book_id=book.id, quantity=quantity)], "paypal")

        assert session.get(Book, book.id).stock == 5
        assert _count(session, Order) == 0

    def test_unknown_user(self, session, make_book):
        book = make_book(stock=5)

        with pytest.raises(UserNotFound):
            create_order(session, RequestContext(user_id=424242), [CartLine(book_id=book.id, quantity=1)], "paypal")

        assert session.get(Book, book.id).stock == 5


class TestConcurrentCheckouts:
    def test_only_one_buyer_gets_the_last_copy(self, engine, fetch, make_book, make_user):
        book_id = make_book(stock=1).id
        contexts = [RequestContext(user_id=make_user().id) for _ in range(2)]
        barrier = threading.Barrier(len(contexts))

        def attempt(context):
            with Session(engine) as session:
                barrier.wait()
                try:
                    create_order(session, context, [CartLine(book_id=book_id, quantity=1)], "paypal")
                except InsufficientStock:
                    return "insufficient_stock"
                return "ok"

        with ThreadPoolExecutor(max_workers=len(contexts)) as pool:
            outcomes = list(pool.map(attempt, contexts))

        assert sorted(outcomes) == ["insufficient_stock", "ok"]
        assert fetch(Book, book_id).stock == 0

        with Session(engine) as session:
            assert _count(session, Order) == 1
            counts = sorted(session.get(User, c.user_id).order_count for c in contexts)
        assert counts == [0, 1]


class TestPlaceOrderFromCart:
    def test_checks_out_cart_and_clears_it(self, session, make_book, make_user, context_for):
        dune = make_book(title="Dune", price="12.99", stock=10)
        emma = make_book(title="Emma", price="9.99", stock=4)
        user = make_user(order_count=7)
        cart_service.add_to_cart(session, user.id, dune.id, 2)
        cart_service.add_to_cart(session, user.id, emma.id, 1)

        result = place_order_from_cart(session, context_for(user), "paypal")

        assert result.order.total_amount == Decimal("35.97")
        assert result.order.discount_amount == Decimal("3.60")
        assert [i.book_id for i in result.order.items] == [dune.id, emma.id]
        assert _count(session, CartItem) == 0

    def test_empty_saved_cart(self, session, make_user, context_for):
        user = make_user()
        with pytest.raises(EmptyCart):
            place_order_from_cart(session, context_for(user), "paypal")

    def test_failed_checkout_keeps_the_cart(self, session, make_book, make_user, context_for):
        book = make_book(stock=3)
        user = make_user()
        cart_service.add_to_cart(session, user.id, book.id, 3)

        # someone else buys a copy first
        other = make_user()
        create_order(session, context_for(other), [CartLine(book_id=book.id, quantity=1)], "paypal")

        with pytest.raises(InsufficientStock):
            place_order_from_cart(session, context_for(user), "paypal")

        assert _count(session, CartItem) == 1
        assert session.get(Book, book.id).stock == 2


class TestDatabaseFailure:
    def test_driver_error_rolls_back_and_surfaces_as_persistence_failure(
        self, engine, session, make_book, make_user, context_for
    ):
        book = make_book(stock=5)
        user = make_user(order_count=3)
        # the timeline insert is the last write of a checkout, after stock and counter moved
        with engine.begin() as conn:
            conn.exec_driver_sql(
                "CREATE TRIGGER reject_order_events BEFORE INSERT ON order_event "
                "BEGIN SELECT RAISE(ABORT, 'event log unavailable'); END"
            )

        with pytest.raises(PersistenceFailure) as exc_info:
            create_order(session, context_for(user), [CartLine(book_id=book.id, quantity=2)], "paypal")

        assert isinstance(exc_info.value.__cause__, SQLAlchemyError)
        assert "event log unavailable" in str(exc_info.value)
        assert session.get(Book, book.id).stock == 5
        assert session.get(User, user.id).order_count == 3
        assert _count(session, Order) == 0
        assert _count(session, OrderItem) == 0
