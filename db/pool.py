# db/pool.py
from __future__ import annotations

import logging
from typing import Optional

import aiomysql

from config import MySqlConfig
from domain.errors import StoreFailureError

log = logging.getLogger(__name__)


class DbPool:
    """
    Central DB pool lifecycle manager.
    - Create once at startup
    - Reuse pool everywhere (repositories)
    - Close on shutdown
    """

    def __init__(self) -> None:
        self._pool: Optional[aiomysql.Pool] = None

    @property
    def pool(self) -> aiomysql.Pool:
        if self._pool is None:
            raise RuntimeError("DB pool is not initialized. Call await DbPool.start() first.")
        return self._pool

    @property
    def started(self) -> bool:
        return self._pool is not None

    async def start(self, cfg: MySqlConfig) -> None:
        if self._pool is not None:
            return

        log.info("Connecting to MySQL %s:%s/%s (pool %d..%d)", cfg.host, cfg.port, cfg.database, cfg.minsize, cfg.maxsize)
        try:
            self._pool = await aiomysql.create_pool(
                host=cfg.host,
                port=cfg.port,
                user=cfg.user,
                password=cfg.password,
                db=cfg.database,
                minsize=cfg.minsize,
                maxsize=cfg.maxsize,
                connect_timeout=cfg.connect_timeout,
                autocommit=True,  # single statements outside transaction() commit immediately
                charset="utf8mb4",
            )
        except (aiomysql.Error, OSError) as e:
            raise StoreFailureError(f"Could not open MySQL pool: {e}") from e

        # sanity check connection works immediately
        await self.ping()

    async def ping(self) -> None:
        """
        Verifies pool is usable. Raises StoreFailureError if not.
        """
        try:
            async with self.pool.acquire() as conn:
                async with conn.cursor() as cur:
                    await cur.execute("SELECT 1;")
                    await cur.fetchone()
        except aiomysql.Error as e:
            raise StoreFailureError(f"MySQL ping failed: {e}") from e

    async def close(self) -> None:
        if self._pool is None:
            return
        self._pool.close()
        await self._pool.wait_closed()
        self._pool = None
        log.info("MySQL pool closed")
