"""Database connection pool and read access to the Pulp content store."""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import psycopg2
from psycopg2.extras import RealDictCursor
from psycopg2.pool import PoolError, ThreadedConnectionPool

from rpm_content.infrastructure.config import DatabaseConfig, QueryLogConfig

logger = logging.getLogger(__name__)
query_logger = logging.getLogger(f"{__name__}.queries")


class StoreUnavailable(Exception):
    """Raised when no database connection can be obtained."""
    pass


class QueryExecutionError(Exception):
    """Raised when a statement fails in the database."""
    pass


class ContentDatabase:
    """Read-only access to the Pulp PostgreSQL database through a pool."""

    def __init__(self, config: Optional[DatabaseConfig] = None, query_log: Optional[QueryLogConfig] = None):
        """
        Initialize the content database.

        Args:
            config: Connection settings. If None, uses POSTGRES_* env vars.
            query_log: Statement tracing. If None, uses POSTGRES_LOG_* env vars.
        """
        if config is None:
            config = DatabaseConfig.from_env()
        if query_log is None:
            query_log = QueryLogConfig.from_env()

        self.config = config
        self.query_log = query_log
        self.pool: Optional[ThreadedConnectionPool] = None
        self._pool_lock = threading.Lock()
        # ThreadedConnectionPool fails instead of blocking when exhausted,
        # so callers queue here for one of the pool_limit slots.
        self._slots = threading.BoundedSemaphore(config.pool_limit)

    def connect(self) -> ThreadedConnectionPool:
        """Initialize connection pool."""
        with self._pool_lock:
            if self.pool:
                return self.pool
            try:
                self.pool = ThreadedConnectionPool(1, self.config.pool_limit, self.config.dsn())
                logger.info(
                    f"Database connection pool created "
                    f"({self.config.host}:{self.config.port}/{self.config.name}, max {self.config.pool_limit})"
                )
            except psycopg2.Error as e:
                logger.error(f"Error creating connection pool: {e}")
                raise StoreUnavailable(f"error establishing connection: {e}") from e
            return self.pool

    def close(self):
        """Close connection pool."""
        with self._pool_lock:
            if self.pool:
                self.pool.closeall()
                self.pool = None
                logger.info("Database connection pool closed")

    def _get_connection(self):
        """
        Get a connection from the pool, waiting while all of them are in use.

        Raises:
            StoreUnavailable: If no connection frees up within the acquire
                timeout or the pool cannot hand one out
        """
        timeout = self.config.acquire_timeout or None
        if not self._slots.acquire(timeout=timeout):
            logger.error(f"Timed out after {timeout}s waiting for a database connection")
            raise StoreUnavailable(f"timed out after {timeout}s waiting for a connection")

        try:
            pool = self.connect()
            conn = pool.getconn()
        except (PoolError, psycopg2.OperationalError) as e:
            self._slots.release()
            logger.error(f"Error acquiring database connection: {e}")
            raise StoreUnavailable(f"error acquiring connection: {e}") from e
        except BaseException:
            self._slots.release()
            raise
        # Each statement runs on its own; nothing holds a transaction open.
        conn.autocommit = True
        return pool, conn

    def _return_connection(self, pool, conn):
        """Return a connection to the pool it came from, discarding it if it was closed."""
        try:
            if not pool.closed:
                pool.putconn(conn, close=bool(conn.closed))
        finally:
            self._slots.release()

    @contextmanager
    def connection(self) -> Iterator[Any]:
        """Hold one pooled connection for the duration of the block."""
        pool, conn = self._get_connection()
        try:
            yield conn
        finally:
            self._return_connection(pool, conn)

    def _execute(self, cur, query: str, params: Dict[str, Any]):
        if not self.query_log.enabled:
            cur.execute(query, params)
            return
        started = time.monotonic()
        cur.execute(query, params)
        elapsed_ms = (time.monotonic() - started) * 1000
        statement = cur.query.decode("utf-8", "replace") if isinstance(cur.query, bytes) else cur.query
        query_logger.log(self.query_log.levelno, f"Query ({elapsed_ms:.1f} ms, {cur.rowcount} rows): {statement}")

    def fetch_all(self, conn, query: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Run a query and return its rows as dicts keyed by column name."""
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                self._execute(cur, query, params)
                return cur.fetchall()
        except psycopg2.Error as e:
            logger.error(f"Error executing query: {e}")
            raise QueryExecutionError(str(e)) from e

    def fetch_value(self, conn, query: str, params: Dict[str, Any]) -> Any:
        """Run a query and return the first column of its first row."""
        try:
            with conn.cursor() as cur:
                self._execute(cur, query, params)
                row = cur.fetchone()
                return row[0] if row else None
        except psycopg2.Error as e:
            logger.error(f"Error executing query: {e}")
            raise QueryExecutionError(str(e)) from e
