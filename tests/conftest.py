import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DB_URL", "sqlite://")
os.environ.setdefault("ENV", "test")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from bookshop.constants import roles
from bookshop.database import build_engine, create_db_and_tables, get_session
from bookshop.dependencies.context import RequestContext, create_access_token
from bookshop.models import Book, User


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so several connections (threads, requests) share one database."""
    engine = build_engine(f"sqlite:///{tmp_path / 'bookshop.db'}")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def fetch(engine):
    """Read a row in a short-lived session; the returned object is detached but loaded."""
    def _fetch(model, ident):
        with Session(engine) as s:
            return s.get(model, ident)

    return _fetch


@pytest.fixture
def make_book(engine):
    def _make(title="Dune", price="12.99", stock=10, author="Frank Herbert"):
        with Session(engine) as s:
            book = Book(title=title, author=author, price=Decimal(price), stock=stock)
            s.add(book)
            s.commit()
            s.refresh(book)
        return book

    return _make


@pytest.fixture
def make_user(engine):
    counter = {"n": 0}

    def _make(order_count=0, role=roles.CUSTOMER, address="12 Baker Street, London", username=None):
        counter["n"] += 1
        name = username or f"reader{counter['n']}"
        with Session(engine) as s:
            user = User(
                username=name,
                email=f"{name}@example.com",
                role=role,
                order_count=order_count,
                address=address,
            )
            s.add(user)
            s.commit()
            s.refresh(user)
        return user

    return _make


@pytest.fixture
def context_for():
    return RequestContext.for_user


@pytest.fixture
def client(engine):
    from bookshop.main import app

    def _get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user):
        token = create_access_token(user.id)
        return {"Authorization": f"Bearer {token}"}

    return _headers
