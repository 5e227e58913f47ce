"""Storage collaborator for the ledger engine.

Wraps a SQLAlchemy session factory and exposes the three operations the
engine relies on: ``query``, ``insert_atomic`` and ``run_in_transaction``.
Every call runs in its own transaction; any exception raised inside rolls
it back, so callers observe either the full effect or none.
"""

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional, Sequence, TypeVar

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from src.db.base import Base
from src.db.engine import create_ledger_engine, get_sync_engine
from src.ledger_errors.exceptions import PersistenceFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LedgerStore:
    """Transactional access to the ledger tables."""

    def __init__(
        self,
        engine: Optional[Engine] = None,
        session_factory: Optional[sessionmaker] = None,
    ) -> None:
        self._engine = engine or get_sync_engine()
        self._session_factory = session_factory or sessionmaker(
            bind=self._engine, expire_on_commit=False
        )

    @classmethod
    def from_url(cls, url: str, create_schema: bool = True) -> "LedgerStore":
        """Build a store for a database URL, optionally creating the tables."""
        store = cls(engine=create_ledger_engine(url))
        if create_schema:
            store.create_schema()
        return store

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_schema(self) -> None:
        """Create all ledger tables that do not exist yet."""
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            logger.error("Schema creation failed: %s", exc)
            raise PersistenceFailure("Failed to create ledger schema", exc) from exc

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Yield a session inside one transaction.

        Commits on normal exit, rolls back on any exception. Storage errors
        are re-raised as PersistenceFailure; domain errors pass through.
        """
        session = self._session_factory()
        try:
            with session.begin():
                yield session
        except SQLAlchemyError as exc:
            logger.error("Ledger transaction rolled back: %s", exc)
            raise PersistenceFailure(f"Storage operation failed: {exc}", exc) from exc
        finally:
            session.close()

    def run_in_transaction(self, fn: Callable[[Session], T]) -> T:
        """Run ``fn(session)`` atomically and return its result."""
        with self.session_scope() as session:
            return fn(session)

    def query(self, statement: Any, scalars: bool = True) -> List[Any]:
        """Execute a read statement and return all results.

        Args:
            statement: A SQLAlchemy selectable.
            scalars: Return the first column of each row (ORM entities for
                ``select(Model)``) instead of Row objects.
        """
        with self.session_scope() as session:
            result = session.execute(statement)
            return list(result.scalars().all() if scalars else result.all())

    def insert_atomic(self, rows: Sequence[Base]) -> List[Base]:
        """Insert all rows in one transaction; ids are populated on return."""
        rows = list(rows)

        def _insert(session: Session) -> List[Base]:
            session.add_all(rows)
            session.flush()
            return rows

        return self.run_in_transaction(_insert)
