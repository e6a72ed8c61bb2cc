# repositories/base_repo.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Mapping, Sequence

import aiomysql

from db.pool import DbPool
from db.tx import get_cursor, transaction
from domain.errors import StoreFailureError


class BaseRepo:
    """
    Base repository with small helpers to keep concrete repos readable.
    Repos should not contain bracket rules.

    Every helper joins the transaction opened by transaction() in the
    current task, if any, and wraps driver errors in StoreFailureError.
    """

    def __init__(self, db: DbPool) -> None:
        self._db = db

    @property
    def pool(self) -> aiomysql.Pool:
        return self._db.pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        try:
            async with transaction(self.pool, dict_rows=True):
                yield
        except aiomysql.Error as e:
            raise StoreFailureError(str(e)) from e

    async def fetch_one(self, sql: str, params: Sequence[Any] | None = None) -> Mapping[str, Any] | None:
        try:
            async with get_cursor(self.pool, dict_rows=True) as cur:
                await cur.execute(sql, params or ())
                return await cur.fetchone()
        except aiomysql.Error as e:
            raise StoreFailureError(str(e)) from e

    async def fetch_all(self, sql: str, params: Sequence[Any] | None = None) -> list[Mapping[str, Any]]:
        try:
            async with get_cursor(self.pool, dict_rows=True) as cur:
                await cur.execute(sql, params or ())
                rows = await cur.fetchall()
                return list(rows or [])
        except aiomysql.Error as e:
            raise StoreFailureError(str(e)) from e

    async def execute(self, sql: str, params: Sequence[Any] | None = None) -> int:
        try:
            async with transaction(self.pool, dict_rows=False) as (_conn, cur):
                await cur.execute(sql, params or ())
                return cur.rowcount
        except aiomysql.Error as e:
            raise StoreFailureError(str(e)) from e

    async def execute_many(self, sql: str, params_seq: Iterable[Sequence[Any]]) -> int:
        try:
            async with transaction(self.pool, dict_rows=False) as (_conn, cur):
                await cur.executemany(sql, list(params_seq))
                return cur.rowcount
        except aiomysql.Error as e:
            raise StoreFailureError(str(e)) from e

    async def insert_returning_id(self, sql: str, params: Sequence[Any] | None = None) -> int:
        try:
            async with transaction(self.pool, dict_rows=False) as (_conn, cur):
                await cur.execute(sql, params or ())
                return int(cur.lastrowid)
        except aiomysql.Error as e:
            raise StoreFailureError(str(e)) from e
