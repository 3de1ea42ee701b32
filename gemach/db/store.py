"""
Explicit store handle passed into every core operation.

Wraps a SQLAlchemy engine and session factory. Workers that share nothing
but the database each build their own ``Store`` from the same URL; the
booking invariant is enforced by the database, never by in-process locks.
"""

import logging
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from gemach.config import settings
from gemach.db.models import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")

SQLITE_BUSY_TIMEOUT_SEC = 15


def _configure_sqlite(engine: Engine) -> None:
    """Make every SQLite transaction take the write lock up front.

    pysqlite defers BEGIN until the first write, which would let two workers
    read the same free slot before either writes.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Store:
    """Database handle: engine, session factory and transaction helpers."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, url: Optional[str] = None, create_tables: bool = True) -> "Store":
        """Build a store for ``url`` (defaults to ``DATABASE_URL``)."""
        url = url or settings.store.database_url
        if url.startswith("sqlite"):
            kwargs: dict = {
                "connect_args": {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_SEC},
            }
            if url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
            engine = create_engine(url, **kwargs)
            _configure_sqlite(engine)
        else:
            engine = create_engine(url, pool_pre_ping=True)

        store = cls(engine)
        if create_tables:
            store.create_tables()
        logger.debug("Store ready: %s", engine.url.render_as_string(hide_password=True))
        return store

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Yield a session that commits on success and rolls back on error."""
        session = self._sessions()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def run_with_retry(
        self, work: Callable[[Session], T], retries: Optional[int] = None
    ) -> T:
        """Run ``work`` in its own transaction, retrying on transient contention.

        Only ``OperationalError`` (locks, dropped connections) is retried.
        Anything else, including integrity violations, propagates at once.
        """
        retries = retries or settings.store.commit_retries
        for attempt in range(1, retries + 1):
            try:
                with self.transaction() as session:
                    return work(session)
            except OperationalError as exc:
                if attempt == retries:
                    logger.error("Store operation failed after %d attempts: %s", attempt, exc)
                    raise
                logger.warning(
                    "Transient store error (attempt %d/%d): %s", attempt, retries, exc
                )
                time.sleep(settings.store.retry_backoff_sec * attempt)
        raise RuntimeError("unreachable")  # pragma: no cover
