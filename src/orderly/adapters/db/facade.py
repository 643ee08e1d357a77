from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import (
    Session,
    sessionmaker,
)

from orderly.adapters.db.models import Base
from orderly.core.errors import PersistenceError


class DB:
    """Database service layer providing sessions and transaction scopes."""

    def __init__(self, url: str) -> None:
        """Initialize database connection.

        Args:
            url: Database URL (e.g., "sqlite:///orderly.db")
        """
        self._url = url
        self._engine = create_engine(url, echo=False)
        if self._engine.dialect.name == "sqlite":
            _use_explicit_sqlite_transactions(self._engine)
        self._session_factory = sessionmaker(bind=self._engine, class_=Session)
        # Session owned by the transaction() block running in this context.
        self._active_session: ContextVar[Session | None] = ContextVar(
            f"orderly_db_session_{id(self)}", default=None
        )

    @property
    def url(self) -> str:
        return self._url

    def create_schema(self) -> None:
        """Create all tables that do not exist yet."""
        Base.metadata.create_all(self._engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Context manager for database sessions.

        Inside ``transaction()`` this yields the transaction's session and
        leaves commit and rollback to the enclosing block.
        """
        active = self._active_session.get()
        if active is not None:
            yield active
            return

        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run every ``session()`` opened in this block on one transaction.

        Nested blocks join the outermost one.

        Raises:
            PersistenceError: If the final commit fails.
        """
        if self._active_session.get() is not None:
            yield
            return

        session = self._session_factory()
        token = self._active_session.set(session)
        try:
            yield
        except Exception:
            session.rollback()
            raise
        else:
            try:
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise PersistenceError("commit transaction", exc) from exc
        finally:
            self._active_session.reset(token)
            session.close()

    def dispose(self) -> None:
        self._engine.dispose()


def _use_explicit_sqlite_transactions(engine: Engine) -> None:
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINTs nest correctly.

    pysqlite otherwise defers BEGIN to the first DML statement, and a
    SAVEPOINT released before that commits the whole transaction.
    """

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(connection):
        connection.exec_driver_sql("BEGIN")
