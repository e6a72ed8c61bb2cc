# db/tx.py
from __future__ import annotations

from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import AsyncIterator, Optional, Tuple

import aiomysql

# Cursor of the transaction open in the current task, if any.
# Repositories route statements through it so one unit of work shares a connection.
_active_cursor: ContextVar[Optional[aiomysql.Cursor]] = ContextVar("active_cursor", default=None)


def active_cursor() -> Optional[aiomysql.Cursor]:
    return _active_cursor.get()


@asynccontextmanager
async def get_cursor(
    pool: aiomysql.Pool, *, dict_rows: bool = True
) -> AsyncIterator[aiomysql.Cursor]:
    """
    Yields the active transaction cursor when inside transaction(),
    otherwise a fresh autocommit cursor (DictCursor by default).
    """
    cur = _active_cursor.get()
    if cur is not None:
        yield cur
        return

    cursor_cls = aiomysql.DictCursor if dict_rows else aiomysql.Cursor
    async with pool.acquire() as conn:
        async with conn.cursor(cursor_cls) as cur:
            yield cur


@asynccontextmanager
async def transaction(
    pool: aiomysql.Pool, *, dict_rows: bool = True
) -> AsyncIterator[Tuple[aiomysql.Connection, aiomysql.Cursor]]:
    """
    Runs statements inside a transaction.
    - Commits on success
    - Rolls back on exception
    - Nested use joins the outer transaction

    Usage:
        async with transaction(pool) as (conn, cur):
            await cur.execute(...)
            ...
    """
    outer = _active_cursor.get()
    if outer is not None:
        yield outer.connection, outer
        return

    cursor_cls = aiomysql.DictCursor if dict_rows else aiomysql.Cursor

    async with pool.acquire() as conn:
        await conn.begin()
        try:
            async with conn.cursor(cursor_cls) as cur:
                token = _active_cursor.set(cur)
                try:
                    yield conn, cur
                finally:
                    _active_cursor.reset(token)
            await conn.commit()
        except BaseException:
            await conn.rollback()
            raise
