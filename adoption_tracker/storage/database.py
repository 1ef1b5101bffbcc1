"""
Async PostgreSQL access for the tracker.

A thin wrapper over an asyncpg pool exposing the four query shapes the
repositories use. Subscriber payloads live in JSONB columns, so every
pooled connection registers a codec that maps them to and from dicts.
"""

import json
import logging
from typing import Any

import asyncpg

from adoption_tracker.config.settings import get_settings

logger = logging.getLogger(__name__)

# Refresh writes are single-row; anything slower than this is a stuck pool
COMMAND_TIMEOUT_SECONDS = 60


async def _register_jsonb(conn: asyncpg.Connection) -> None:
    await conn.set_type_codec(
        "jsonb",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog",
    )


class Database:
    """
    Connection pool shared by the project, job and notification repositories.

    Usage:
        db = Database()
        await db.connect()
        rows = await db.fetch("SELECT * FROM projects WHERE stars >= $1", 100)
        await db.close()
    """

    def __init__(
        self,
        database_url: str | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
    ):
        settings = get_settings()
        self._url = database_url or str(settings.database_url)
        self._min_size = min_size or settings.db_pool_min_size
        self._max_size = max_size or settings.db_pool_max_size
        self._pool: asyncpg.Pool | None = None

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        """Open the pool. Errors propagate after being logged."""
        try:
            self._pool = await asyncpg.create_pool(
                self._url,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=COMMAND_TIMEOUT_SECONDS,
                init=_register_jsonb,
            )
        except Exception as e:
            logger.error(f"Could not open database pool: {e}")
            raise
        logger.info(f"Database pool open ({self._min_size}-{self._max_size} connections)")

    async def close(self) -> None:
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None
        logger.info("Database pool closed")

    def _require_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._pool

    async def execute(self, query: str, *args: Any) -> str:
        """Run a statement and return its status tag (e.g. ``UPDATE 1``)."""
        return await self._require_pool().execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        return await self._require_pool().fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        return await self._require_pool().fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        return await self._require_pool().fetchval(query, *args)

    async def health_check(self) -> bool:
        """True if the pool answers ``SELECT 1``."""
        try:
            return await self.fetchval("SELECT 1") == 1
        except Exception as e:
            logger.warning(f"Database health check failed: {e}")
            return False
