"""Engine, connection pool and session scopes.

The engine owns a bounded ``QueuePool``: at most ``pool_size`` connections
are checked out at once (no overflow) and a caller that finds the pool
exhausted blocks for ``pool_timeout`` seconds before failing. Sessions are
only handed out through the context managers below, so the connection goes
back to the pool on every exit path.

Each scope also applies the per-operation timeout: on PostgreSQL it is set
as the transaction's ``statement_timeout``; :class:`Deadline` lets the
store check the same budget between statements on any backend.
"""

import logging
import time
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, Session
from sqlalchemy.pool import StaticPool

from .errors import StoreTimeoutError

logger = logging.getLogger("orders.db")


class Base(DeclarativeBase):
    pass


def _enable_sqlite_foreign_keys(dbapi_connection, _record):
    cur = dbapi_connection.cursor()
    cur.execute("PRAGMA foreign_keys=ON")
    cur.close()


def build_engine(database_url: str, pool_size: int = 10, pool_timeout: float = 30.0) -> Engine:
    """Create the engine backing the order store.

    Args:
        database_url: SQLAlchemy URL.
        pool_size: Maximum number of simultaneously checked-out connections.
        pool_timeout: Seconds to wait for a free connection before failing.

    Returns:
        Engine: Configured engine. SQLite engines get foreign keys enabled
        on every connection so ``ON DELETE CASCADE`` applies.
    """
    url = make_url(database_url)
    kwargs = {"pool_pre_ping": True}

    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            # a single shared connection is the only way to keep one in-memory db
            kwargs["poolclass"] = StaticPool
        else:
            kwargs.update(pool_size=pool_size, max_overflow=0, pool_timeout=pool_timeout)
    else:
        kwargs.update(pool_size=pool_size, max_overflow=0, pool_timeout=pool_timeout)

    engine = create_engine(url, **kwargs)
    if url.get_backend_name() == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def init_db(engine: Engine) -> None:
    """Create the ``order`` and ``items`` tables if they do not exist."""
    from . import models  # noqa: F401  (registers the tables on Base.metadata)

    Base.metadata.create_all(engine)


def wait_for_database(engine: Engine, timeout: float = 30.0, interval: float = 1.0) -> None:
    """Block until the database accepts connections.

    Raises:
        sqlalchemy.exc.OperationalError: If it is still unreachable after
            ``timeout`` seconds.
    """
    deadline = time.monotonic() + timeout
    while True:
        try:
            with engine.connect() as conn:
                conn.execute(text("select 1"))
            return
        except Exception:
            if time.monotonic() > deadline:
                raise
            logger.info("database not ready, retrying")
            time.sleep(interval)


class Deadline:
    """Per-operation time budget checked between statements.

    Args:
        seconds: Budget; ``None`` or ``0`` disables the check.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(self, seconds: float | None, clock=time.monotonic):
        self.seconds = seconds
        self._clock = clock
        self._started = clock()

    def remaining(self) -> float | None:
        if not self.seconds:
            return None
        return self.seconds - (self._clock() - self._started)

    def check(self) -> None:
        """Raise :class:`StoreTimeoutError` once the budget is spent."""
        left = self.remaining()
        if left is not None and left <= 0:
            raise StoreTimeoutError()


def _apply_statement_timeout(session: Session, timeout: float | None) -> None:
    if not timeout or session.get_bind().dialect.name != "postgresql":
        return
    session.execute(
        text("select set_config('statement_timeout', :ms, true)"),
        {"ms": str(int(timeout * 1000))},
    )


@contextmanager
def transaction_scope(engine: Engine, timeout: float | None = None):
    """Yield a session inside a transaction.

    Commits when the block exits normally; rolls back and re-raises on any
    exception. The session is closed, returning its connection to the pool,
    in both cases.
    """
    with Session(engine, expire_on_commit=False) as s:
        with s.begin():
            _apply_statement_timeout(s, timeout)
            yield s


@contextmanager
def read_scope(engine: Engine, timeout: float | None = None):
    """Yield a session for read-only queries; nothing is committed."""
    with Session(engine) as s:
        _apply_statement_timeout(s, timeout)
        yield s
