import logging
from contextlib import contextmanager

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, create_engine, Session

from bookshop.config import settings
from bookshop.exceptions import PersistenceFailure

logger = logging.getLogger(__name__)


def build_engine(url: str, echo: bool = False):
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )

        # pysqlite defers BEGIN until the first write; take the write lock up
        # front so concurrent checkouts serialize on the transaction boundary
        @event.listens_for(engine, "connect")
        def _disable_pysqlite_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return engine

    return create_engine(
        url,
        echo=echo,
        pool_pre_ping=True,      # checks dead connections
        pool_recycle=1800        # refresh every 30 min
    )


engine = build_engine(settings.database_url, echo=settings.sql_echo)


def create_db_and_tables(bind=None):
    from bookshop.models import user, book, order, order_item, cart, order_event  # noqa: F401
    SQLModel.metadata.create_all(bind or engine)


def get_session():
    with Session(engine) as session:
        yield session


@contextmanager
def atomic(session: Session):
    """
    One unit of work: commit when the block finishes, roll back on any error.

    Lower-level database errors leave as PersistenceFailure; domain errors
    propagate unchanged after the rollback.
    """
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error(f"Transaction rolled back: {exc}")
        raise PersistenceFailure(str(exc)) from exc
    except Exception:
        session.rollback()
        raise
