"""PostgreSQL client built on a psycopg2 connection pool."""

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator, Optional, Sequence

from psycopg2 import pool
from psycopg2.extras import RealDictCursor

from dynschema.exceptions import ConfigError

if TYPE_CHECKING:
    from dynschema.config import Config

__all__ = ["BACKENDS", "PostgresClient", "VerifyOnlyClient", "create_client"]

logger = logging.getLogger(__name__)


class PostgresClient:
    """Thread-safe client for catalog reads and transactional DDL.

    Each call borrows a connection from a ``ThreadedConnectionPool`` and
    returns it on every exit path.
    """

    def __init__(
        self,
        dsn: Optional[str] = None,
        min_connections: int = 1,
        max_connections: int = 10,
        **connect_kwargs: Any,
    ) -> None:
        self._dsn = dsn
        self._min_connections = min_connections
        self._max_connections = max_connections
        self._connect_kwargs = connect_kwargs
        self._pool: pool.ThreadedConnectionPool | None = None

    @classmethod
    def from_config(cls, config: "Config") -> "PostgresClient":
        return cls(
            dsn=config.dsn,
            min_connections=config.min_connections,
            max_connections=config.max_connections,
            **config.connect_kwargs(),
        )

    def connect(self) -> None:
        """Open the connection pool. Must be called before use."""
        if self._pool is not None:
            raise RuntimeError("Already connected. Call close() before reconnecting.")
        if self._dsn:
            self._pool = pool.ThreadedConnectionPool(
                self._min_connections, self._max_connections, self._dsn, **self._connect_kwargs
            )
        else:
            self._pool = pool.ThreadedConnectionPool(
                self._min_connections, self._max_connections, **self._connect_kwargs
            )
        logger.debug(
            f"Opened connection pool ({self._min_connections}-{self._max_connections})"
        )

    @contextmanager
    def connection(self) -> Iterator[Any]:
        if self._pool is None:
            raise RuntimeError("Not connected. Call connect() first.")
        conn = self._pool.getconn()
        try:
            yield conn
        finally:
            self._pool.putconn(conn)

    def fetchall(
        self, sql: str, params: Optional[Sequence[Any]] = None
    ) -> list[dict[str, Any]]:
        """Run a read query and return rows as dicts."""
        with self.connection() as conn:
            with conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                    cursor.execute(sql, params)
                    return [dict(row) for row in cursor.fetchall()]

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        """Yield a cursor inside one transaction.

        Commits when the block exits normally; rolls back and re-raises
        otherwise.
        """
        with self.connection() as conn:
            conn.autocommit = False
            try:
                with conn.cursor() as cursor:
                    yield cursor
            except BaseException:
                conn.rollback()
                raise
            self._finish(conn)

    def _finish(self, conn: Any) -> None:
        conn.commit()

    def close(self) -> None:
        if self._pool is not None:
            try:
                self._pool.closeall()
            finally:
                self._pool = None

    def __enter__(self) -> "PostgresClient":
        self.connect()
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()


class VerifyOnlyClient(PostgresClient):
    """Runs every transaction to the end and then rolls it back.

    Statements are checked by the real database but nothing is committed.
    """

    def _finish(self, conn: Any) -> None:
        conn.rollback()
        logger.info("Verify-only backend: transaction rolled back")


BACKENDS: dict[str, type[PostgresClient]] = {
    "postgres": PostgresClient,
    "verify": VerifyOnlyClient,
}


def create_client(config: "Config") -> PostgresClient:
    """Build the client for the configured backend. Not yet connected."""
    try:
        client_cls = BACKENDS[config.backend]
    except KeyError:
        raise ConfigError(
            f"Unknown backend {config.backend!r}. Valid backends: {', '.join(BACKENDS)}"
        ) from None
    return client_cls.from_config(config)
