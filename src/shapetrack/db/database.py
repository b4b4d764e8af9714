"""SQLite store: connection pool, schema management and retry policy.

A Database object is the single owner of the connection pool. Create it
once at process start (the web app does this in its lifespan handler),
pass it to whatever needs the store, and close it at shutdown:

    db = Database.from_config(load_app_config().database)
    db.open()
    try:
        rows = db.fetch_all("SELECT * FROM students")
    finally:
        db.close()

Retry policy (Database.run):
- "no such table": schema is (re)created, operation retried once.
- connection lost ("unable to open database", "disk I/O error", closed
  connection): pool is recreated, operation retried once.
- busy/locked after the sqlite busy timeout: operation retried once.
- a second failure of the same kind raises StoreUnavailableError.
- anything else from sqlite raises InternalError (logged with traceback).

Pool exhaustion blocks for up to pool_timeout seconds, then raises
StoreUnavailableError.
"""

from __future__ import annotations

import queue
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Generator, Iterable, TypeVar

import structlog

from shapetrack.config.app_config import DatabaseConfig
from shapetrack.errors import (
    ConflictError,
    InternalError,
    ShapetrackError,
    StoreUnavailableError,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

TABLES = ("students", "learning_sessions", "assessment_sessions", "active_sessions")

SCHEMA_SQL = """
-- students: registry; student_id is the natural key for every child table
CREATE TABLE IF NOT EXISTS students (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id TEXT NOT NULL UNIQUE,
    first_name TEXT NOT NULL,
    last_name TEXT NOT NULL,
    date_of_birth TEXT,
    email TEXT,
    phone TEXT,
    emergency_contact TEXT,
    emergency_phone TEXT,
    medical_notes TEXT,
    learning_goals TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS learning_sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id TEXT NOT NULL REFERENCES students(student_id) ON DELETE CASCADE,
    shape TEXT NOT NULL,
    explanation TEXT NOT NULL,
    timestamp TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS assessment_sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id TEXT NOT NULL REFERENCES students(student_id) ON DELETE CASCADE,
    question TEXT NOT NULL,
    answer TEXT NOT NULL DEFAULT '',
    assessment TEXT NOT NULL,
    timestamp TEXT NOT NULL DEFAULT (datetime('now'))
);

-- active_sessions: assessment markers, history is kept after completion
CREATE TABLE IF NOT EXISTS active_sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id TEXT NOT NULL REFERENCES students(student_id) ON DELETE CASCADE,
    status TEXT NOT NULL DEFAULT 'active'
        CHECK(status IN ('active', 'completed', 'cancelled')),
    started_at TEXT NOT NULL,
    ended_at TEXT
);

-- At most one active marker per student
CREATE UNIQUE INDEX IF NOT EXISTS idx_active_sessions_one_active
    ON active_sessions(student_id) WHERE status = 'active';

-- Indexes
CREATE INDEX IF NOT EXISTS idx_learning_sessions_student
    ON learning_sessions(student_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_assessment_sessions_student
    ON assessment_sessions(student_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_active_sessions_student
    ON active_sessions(student_id, status);
CREATE INDEX IF NOT EXISTS idx_active_sessions_started
    ON active_sessions(status, started_at);
"""

# Error message fragments -> recovery kind
_MISSING_TABLE = "missing_table"
_CONNECTION_LOST = "connection_lost"
_BUSY = "busy"

_RECOVERABLE_MARKERS: tuple[tuple[str, str], ...] = (
    ("no such table", _MISSING_TABLE),
    ("unable to open database", _CONNECTION_LOST),
    ("disk i/o error", _CONNECTION_LOST),
    ("closed database", _CONNECTION_LOST),
    ("database is locked", _BUSY),
    ("database table is locked", _BUSY),
)


def _classify(error: sqlite3.Error) -> str | None:
    """Return the recovery kind for a sqlite error, or None if not recoverable."""
    message = str(error).lower()
    for fragment, kind in _RECOVERABLE_MARKERS:
        if fragment in message:
            return kind
    return None


def _connect(path: Path, busy_timeout: float) -> sqlite3.Connection:
    """Open a connection in autocommit mode; transactions are explicit."""
    conn = sqlite3.connect(
        path,
        timeout=busy_timeout,
        isolation_level=None,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


class ConnectionPool:
    """Bounded pool of sqlite connections.

    At most `size` connections exist at once. Callers beyond that wait up
    to `timeout` seconds for a connection to be released.
    """

    def __init__(self, path: Path, size: int, timeout: float, busy_timeout: float):
        self.path = path
        self.size = size
        self.timeout = timeout
        self.busy_timeout = busy_timeout
        self._idle: queue.LifoQueue[sqlite3.Connection] = queue.LifoQueue()
        self._slots = threading.BoundedSemaphore(size)
        self._closed = False

    def acquire(self) -> sqlite3.Connection:
        if self._closed:
            raise StoreUnavailableError("Connection pool is closed")

        if not self._slots.acquire(timeout=self.timeout):
            logger.warning("database.pool_exhausted", size=self.size, timeout=self.timeout)
            raise StoreUnavailableError("Connection pool exhausted")

        try:
            return self._idle.get_nowait()
        except queue.Empty:
            pass

        try:
            return _connect(self.path, self.busy_timeout)
        except BaseException:
            self._slots.release()
            raise

    def release(self, conn: sqlite3.Connection, discard: bool = False) -> None:
        if discard or self._closed:
            conn.close()
        else:
            self._idle.put(conn)
        self._slots.release()

    def close(self) -> None:
        """Close idle connections; checked-out ones close when released."""
        self._closed = True
        while True:
            try:
                self._idle.get_nowait().close()
            except queue.Empty:
                break


class Database:
    """Owned handle to the SQLite store."""

    def __init__(
        self,
        path: Path | str,
        pool_size: int = 10,
        pool_timeout: float = 60.0,
        busy_timeout: float = 5.0,
    ):
        self.path = Path(path)
        self.pool_size = pool_size
        self.pool_timeout = pool_timeout
        self.busy_timeout = busy_timeout
        self._pool: ConnectionPool | None = None
        self._pool_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> Database:
        return cls(
            path=config.path,
            pool_size=config.pool_size,
            pool_timeout=config.pool_timeout,
            busy_timeout=config.busy_timeout,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self) -> None:
        """Create the pool and make sure the schema exists."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._pool_lock:
            if self._pool is None:
                self._pool = self._new_pool()
        self.init_schema()
        logger.info("database.opened", path=str(self.path), pool_size=self.pool_size)

    def close(self) -> None:
        with self._pool_lock:
            if self._pool is not None:
                self._pool.close()
                self._pool = None
        logger.info("database.closed", path=str(self.path))

    def __enter__(self) -> Database:
        self.open()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _new_pool(self) -> ConnectionPool:
        return ConnectionPool(
            self.path,
            size=self.pool_size,
            timeout=self.pool_timeout,
            busy_timeout=self.busy_timeout,
        )

    def _current_pool(self) -> ConnectionPool:
        with self._pool_lock:
            if self._pool is None:
                raise StoreUnavailableError("Database is not open")
            return self._pool

    def recreate_pool(self) -> None:
        """Replace the pool after a connection failure."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._pool_lock:
            old = self._pool
            self._pool = self._new_pool()
        if old is not None:
            old.close()
        logger.warning("database.pool_recreated", path=str(self.path))

    # -------------------------------------------------------------------------
    # Connections and transactions
    # -------------------------------------------------------------------------

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Borrow a pooled connection.

        Connections that fail with an operational error are discarded
        instead of returned to the pool.
        """
        pool = self._current_pool()
        conn = pool.acquire()
        discard = False
        try:
            yield conn
        except (sqlite3.OperationalError, sqlite3.ProgrammingError) as e:
            discard = _classify(e) == _CONNECTION_LOST
            raise
        finally:
            pool.release(conn, discard=discard)

    @contextmanager
    def transaction(self, immediate: bool = False) -> Generator[sqlite3.Connection, None, None]:
        """Run statements in one transaction.

        Args:
            immediate: Take the write lock up front (BEGIN IMMEDIATE), so
                check-then-insert sequences are serialized across connections.

        Example:
            with db.transaction(immediate=True) as conn:
                conn.execute("INSERT INTO ...", params)
        """
        with self.connection() as conn:
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            try:
                yield conn
                conn.commit()
            except BaseException:
                if conn.in_transaction:
                    conn.rollback()
                raise

    def run(self, operation: Callable[[sqlite3.Connection], T], immediate: bool = False) -> T:
        """Run `operation` inside a transaction, applying the retry policy.

        Domain errors raised by the operation propagate untouched and roll
        the transaction back.
        """
        for attempt in (1, 2):
            try:
                with self.transaction(immediate=immediate) as conn:
                    return operation(conn)
            except ShapetrackError:
                raise
            except sqlite3.IntegrityError as e:
                logger.warning("database.integrity_error", error=str(e))
                raise ConflictError("Operation conflicts with existing data") from e
            except sqlite3.Error as e:
                kind = _classify(e)
                if kind is None:
                    logger.exception("database.query_failed", error=str(e))
                    raise InternalError("Database operation failed") from e
                if attempt == 2:
                    logger.error("database.unavailable", reason=kind, error=str(e))
                    raise StoreUnavailableError("Database unavailable, please retry later") from e

                logger.warning("database.retrying", reason=kind, error=str(e))
                self._recover(kind)

        raise AssertionError("unreachable")  # pragma: no cover

    def _recover(self, kind: str) -> None:
        if kind == _CONNECTION_LOST:
            self.recreate_pool()
        if kind in (_MISSING_TABLE, _CONNECTION_LOST):
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.connection() as conn:
                conn.executescript(SCHEMA_SQL)
            logger.info("database.schema_restored", path=str(self.path))

    # -------------------------------------------------------------------------
    # Query helpers
    # -------------------------------------------------------------------------

    def fetch_all(self, query: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
        params = tuple(params)
        return self.run(lambda conn: conn.execute(query, params).fetchall())

    def fetch_one(self, query: str, params: Iterable[Any] = ()) -> sqlite3.Row | None:
        params = tuple(params)
        return self.run(lambda conn: conn.execute(query, params).fetchone())

    def execute(self, query: str, params: Iterable[Any] = ()) -> int:
        """Execute a write statement and return the affected row count."""
        params = tuple(params)
        return self.run(lambda conn: conn.execute(query, params).rowcount)

    # -------------------------------------------------------------------------
    # Schema
    # -------------------------------------------------------------------------

    def init_schema(self) -> None:
        """Create all tables and indexes. Idempotent."""
        with self.connection() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(SCHEMA_SQL)
        logger.debug("database.schema_ready", path=str(self.path))

    def table_status(self) -> dict[str, bool]:
        """Report which of the expected tables exist."""
        rows = self.fetch_all("SELECT name FROM sqlite_master WHERE type = 'table'")
        existing = {row["name"] for row in rows}
        return {table: table in existing for table in TABLES}

    def ping(self) -> bool:
        """Return True if a trivial query succeeds."""
        try:
            self.fetch_one("SELECT 1")
        except ShapetrackError:
            return False
        return True
