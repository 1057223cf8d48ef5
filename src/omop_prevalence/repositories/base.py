"""
Base repository with common database operations.

Provides connection checks, per-query timeouts, bounded retries for
transient connectivity errors, and translation of psycopg2 errors into
store errors.
"""

import logging
import random
import time
from functools import wraps
from typing import Any, Callable, Dict, Optional, Set, Union

import psycopg2
from psycopg2 import errors as pg_errors
from psycopg2 import sql

from omop_prevalence.database.connection import DatabaseConnection
from omop_prevalence.exceptions import StoreError, QueryTimeout
from omop_prevalence.validation import validate_schema

logger = logging.getLogger(__name__)

Query = Union[str, sql.Composable]


def require_connection(f: Callable) -> Callable:
    """Decorator to ensure database connection before method execution."""
    @wraps(f)
    def wrapper(self, *args, **kwargs):
        self.db.ensure_connected()
        return f(self, *args, **kwargs)
    return wrapper


class BaseRepository:
    """
    Base repository providing common read operations.

    Vocabulary and event repositories inherit from this.
    """

    def __init__(
        self,
        db: DatabaseConnection,
        schema: str,
        statement_timeout_ms: Optional[int] = None,
        max_retries: int = 2,
        retry_backoff: float = 1.0,
    ):
        """
        Initialize repository with database connection.

        Args:
            db: DatabaseConnection instance (shared across repositories)
            schema: Schema holding this repository's tables
            statement_timeout_ms: Per-query deadline (None = connection default)
            max_retries: Retries for transient connectivity errors
            retry_backoff: Base delay in seconds, doubled per attempt

        Raises:
            InvalidSchema: If schema is not a valid identifier
        """
        self.db = db
        self.schema = validate_schema(schema)
        self.statement_timeout_ms = statement_timeout_ms
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff

    def _execute(self, query: Query, params: Optional[Dict[str, Any]] = None, fetch: str = "all") -> Any:
        """
        Execute query and return results.

        Query cancellations are never retried. Dropped connections are
        retried up to max_retries times with exponential backoff.

        Args:
            query: SQL query string or composed query
            params: Query parameters
            fetch: "all", "one" or "none"

        Returns:
            Query results based on fetch type

        Raises:
            QueryTimeout: If the statement timeout was hit
            StoreError: On any other database error
        """
        attempt = 0
        while True:
            try:
                with self.db.cursor(statement_timeout_ms=self.statement_timeout_ms) as cur:
                    cur.execute(query, params)
                    if fetch == "all":
                        return cur.fetchall()
                    elif fetch == "one":
                        return cur.fetchone()
                    return None
            except pg_errors.QueryCanceled as e:
                logger.error(f"Query exceeded {self.statement_timeout_ms} ms timeout")
                raise QueryTimeout(f"Query exceeded statement timeout: {e}") from e
            except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
                if attempt >= self.max_retries:
                    logger.error(f"Query failed after {attempt + 1} attempt(s): {e}")
                    raise StoreError(f"Error executing query: {e}") from e
                delay = self.retry_backoff * (2 ** attempt) + random.uniform(0, self.retry_backoff)
                attempt += 1
                logger.warning(f"Transient database error, retry {attempt}/{self.max_retries} "
                               f"in {delay:.1f}s: {e}")
                time.sleep(delay)
            except psycopg2.Error as e:
                logger.error(f"Query failed: {e}")
                raise StoreError(f"Error executing query: {e}") from e

    def _fetch_ids(self, query: Query, params: Optional[Dict[str, Any]] = None) -> Set[int]:
        """Run a query returning a concept_id column and collect the ids."""
        rows = self._execute(query, params, fetch="all") or []
        return {int(row["concept_id"]) for row in rows if row["concept_id"] is not None}

    def _fetch_count(self, query: Query, params: Optional[Dict[str, Any]] = None) -> int:
        """Run a query returning a single count column ``n``."""
        row = self._execute(query, params, fetch="one")
        if not row or row["n"] is None:
            return 0
        return int(row["n"])
