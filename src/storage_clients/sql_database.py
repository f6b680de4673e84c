"""SQLAlchemy engine and session management for the SQL-backed stores.

Both the table backend and the blob-index backend keep their rows in a SQL
database reached through one SqlDatabase instance per store.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, ProgrammingError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Driver messages that indicate the query references a column/table the
# deployed schema does not have.
_SCHEMA_MISMATCH_PATTERNS = (
    "no such column",
    "no such table",
    "unknown column",
    "does not exist",
    "invalid column",
)


class SqlDatabase:
    """SQLAlchemy database wrapper.

    Usage:
        db = SqlDatabase("sqlite:///wiki.db")
        db.create_all(Base)
        with db.session() as s:
            ...

    In-memory SQLite URLs share a single connection so every session sees
    the same database.
    """

    def __init__(self, database_url: str, echo: bool = False) -> None:
        self.database_url = database_url

        engine_kwargs = {"echo": echo}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_pre_ping"] = True

        self._engine: Engine = create_engine(database_url, **engine_kwargs)
        self._sessionmaker: sessionmaker[Session] = sessionmaker(
            bind=self._engine,
            expire_on_commit=False,
            autoflush=False,
        )
        self._disposed = False

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Provides a Session with commit/rollback semantics."""
        session: Session = self._sessionmaker()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_all(self, base: type[DeclarativeBase]) -> None:
        """Create missing tables for the given declarative base."""
        base.metadata.create_all(self._engine)
        logger.debug(f"Ensured schema for {len(base.metadata.tables)} table(s)")

    def dispose(self) -> None:
        if self._disposed:
            return
        self._engine.dispose()
        self._disposed = True

    @staticmethod
    def is_schema_mismatch(error: Optional[BaseException]) -> bool:
        """Whether a SQL error was caused by a missing column or table."""
        if not isinstance(error, (OperationalError, ProgrammingError)):
            return False
        message = str(error).lower()
        return any(pattern in message for pattern in _SCHEMA_MISMATCH_PATTERNS)

    @staticmethod
    def describe(error: SQLAlchemyError) -> str:
        """Short, single-line description of a SQL error for logs."""
        original = getattr(error, "orig", None)
        return str(original if original is not None else error).splitlines()[0]
