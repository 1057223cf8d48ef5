"""
Database Connection Manager

Provides PostgreSQL connection management using psycopg2.

A thread-safe pool backs the connection so that category pipelines can
run in parallel; a semaphore makes workers wait for a free connection
instead of failing when the pool is exhausted.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Optional

import psycopg2
from psycopg2.extras import RealDictCursor
from psycopg2.pool import ThreadedConnectionPool

from omop_prevalence.config import Config, DatabaseConfig, get_config
from omop_prevalence.exceptions import InvalidConnection

logger = logging.getLogger(__name__)


class DatabaseConnection:
    """
    Connection manager for the OMOP clinical data repository.

    Usage:
        with DatabaseConnection() as db:
            with db.cursor() as cur:
                cur.execute("SELECT COUNT(*) AS n FROM cdm.person")
                row = cur.fetchone()
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        min_connections: Optional[int] = None,
        max_connections: Optional[int] = None,
        statement_timeout_ms: Optional[int] = None,
        config: Optional[DatabaseConfig] = None,
    ):
        """
        Initialize database connection manager.

        Arguments left as None are taken from the database section of the
        global configuration.

        Args:
            database_url: PostgreSQL connection string (OMOP_DATABASE_URL)
            min_connections: Connections opened up front (OMOP_MIN_CONNECTIONS)
            max_connections: Upper bound on concurrent connections (OMOP_MAX_CONNECTIONS)
            statement_timeout_ms: Default per-query timeout (OMOP_STATEMENT_TIMEOUT_MS, 0 = none)
            config: Database configuration to use instead of the global one
        """
        db_config = config or get_config().database

        self.database_url = database_url or db_config.database_url
        if not self.database_url:
            raise ValueError(
                "Database URL required. Set OMOP_DATABASE_URL environment variable "
                "or pass database_url parameter."
            )

        self.min_connections = db_config.min_connections if min_connections is None else min_connections
        self.max_connections = db_config.max_connections if max_connections is None else max_connections
        if self.max_connections < self.min_connections:
            raise ValueError("max_connections must be >= min_connections")

        if statement_timeout_ms is None:
            statement_timeout_ms = db_config.statement_timeout_ms
        self.statement_timeout_ms = statement_timeout_ms or None
        self.pool: Optional[ThreadedConnectionPool] = None
        self._closed = False
        self._slots = threading.BoundedSemaphore(self.max_connections)
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: Optional[Config] = None) -> "DatabaseConnection":
        """Build a connection manager from a full configuration (default: global)."""
        config = config or get_config()
        return cls(config=config.database)

    def connect(self) -> None:
        """Open the connection pool."""
        with self._lock:
            if self.pool is not None and not self.pool.closed:
                return
            try:
                self.pool = ThreadedConnectionPool(
                    self.min_connections, self.max_connections, dsn=self.database_url
                )
            except psycopg2.Error as e:
                logger.error(f"Failed to connect to database: {e}")
                raise InvalidConnection(f"Failed to connect to database: {e}") from e
            self._closed = False
            logger.info("Connected to OMOP database")

    def close(self) -> None:
        """Close all pooled connections. The manager cannot be reused afterwards."""
        with self._lock:
            if self.pool is not None:
                self.pool.closeall()
                self.pool = None
                logger.info("Closed OMOP database connection")
            self._closed = True

    def is_connected(self) -> bool:
        """Check if the pool is open."""
        return self.pool is not None and not self.pool.closed

    def ensure_connected(self) -> None:
        """
        Open the pool on first use.

        Raises:
            InvalidConnection: If the connection has been closed
        """
        if self.is_connected():
            return
        if self._closed:
            raise InvalidConnection("Database connection is not valid or has been closed.")
        self.connect()

    @contextmanager
    def cursor(self, dict_cursor: bool = True, statement_timeout_ms: Optional[int] = None):
        """
        Context manager for a read-only database cursor.

        Checks a connection out of the pool, applies the statement timeout,
        and rolls back and returns the connection on exit.

        Args:
            dict_cursor: If True, returns RealDictCursor for dict-like row access
            statement_timeout_ms: Override the default per-query timeout

        Yields:
            Database cursor
        """
        self.ensure_connected()
        timeout = self.statement_timeout_ms if statement_timeout_ms is None else statement_timeout_ms

        with self._slots:
            pool = self.pool
            if pool is None:
                raise InvalidConnection("Database connection is not valid or has been closed.")
            conn = pool.getconn()
            try:
                cursor_factory = RealDictCursor if dict_cursor else None
                with conn.cursor(cursor_factory=cursor_factory) as cur:
                    if timeout is not None:
                        cur.execute("SET statement_timeout = %s", (int(timeout),))
                    yield cur
            finally:
                discard = bool(conn.closed)
                if not discard:
                    try:
                        conn.rollback()
                    except psycopg2.Error as e:
                        logger.warning(f"Discarding broken connection: {e}")
                        discard = True
                pool.putconn(conn, close=discard)

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
