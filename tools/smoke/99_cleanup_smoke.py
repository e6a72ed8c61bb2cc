from __future__ import annotations

import os, sys

HERE = os.path.dirname(__file__)
ROOT = os.path.abspath(os.path.join(HERE, "..", ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import asyncio
from config import load_config
from db.pool import DbPool
from db.tx import get_cursor

async def main() -> None:
    cfg = load_config()

    run_id = os.getenv("SMOKE_RUN_ID")
    pattern = f"SMOKE_{run_id}" if run_id else "SMOKE_%"

    db = DbPool()
    await db.start(cfg.mysql)

    # Delete in FK-safe order
    statements = [
        ("DELETE m FROM bracket_match m JOIN tournament t ON t.tournament_id=m.tournament_id WHERE t.name LIKE %s;", (pattern,)),
        ("DELETE p FROM tournament_participant p JOIN tournament t ON t.tournament_id=p.tournament_id WHERE t.name LIKE %s;", (pattern,)),
        ("DELETE FROM tournament WHERE name LIKE %s;", (pattern,)),
    ]

    async with get_cursor(db.pool, dict_rows=False) as cur:
        for sql, params in statements:
            await cur.execute(sql, params)
            print(f"OK: {cur.rowcount} rows affected")

    await db.close()
    print(f"OK: cleanup done for {pattern}")

if __name__ == "__main__":
    asyncio.run(main())
