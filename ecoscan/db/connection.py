"""PostgreSQL connection pool"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool
from ecoscan.config import DATABASE_URL

logger = logging.getLogger(__name__)

POOL_MIN_SIZE = 2
POOL_MAX_SIZE = 10
# Seconds a caller waits for a free connection before PoolTimeout
POOL_TIMEOUT = 10.0


class Database:
    """
    Owns the async connection pool shared by the PostgreSQL store.

    Every connection hands out dict rows, so queries read columns by name.
    The API lifespan opens the pool on startup and closes it on shutdown.
    """

    def __init__(self, connection_string: str = DATABASE_URL):
        self.connection_string = connection_string
        self._pool: Optional[AsyncConnectionPool] = None

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    async def init_pool(self) -> None:
        """Open the pool (idempotent)"""
        if self._pool is not None:
            return

        logger.info(f"Opening database pool (min={POOL_MIN_SIZE}, max={POOL_MAX_SIZE})")
        pool = AsyncConnectionPool(
            self.connection_string,
            min_size=POOL_MIN_SIZE,
            max_size=POOL_MAX_SIZE,
            timeout=POOL_TIMEOUT,
            kwargs={"row_factory": dict_row},
            open=False
        )
        await pool.open()
        self._pool = pool

    async def close_pool(self) -> None:
        if self._pool:
            logger.info("Closing database pool")
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """Borrow a connection; it goes back to the pool on exit"""
        if not self._pool:
            raise RuntimeError("Database pool not initialized")

        async with self._pool.connection() as conn:
            yield conn


# Global database instance
db = Database()
