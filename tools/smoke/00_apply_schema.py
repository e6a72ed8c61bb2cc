from __future__ import annotations

import os, sys
from pathlib import Path

HERE = os.path.dirname(__file__)
ROOT = os.path.abspath(os.path.join(HERE, "..", ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import asyncio
from config import load_config
from db.pool import DbPool
from db.tx import get_cursor

SCHEMA = Path(ROOT) / "db" / "schema.sql"


def _statements(sql: str) -> list[str]:
    lines = [ln for ln in sql.splitlines() if not ln.strip().startswith("--")]
    return [s.strip() for s in "\n".join(lines).split(";") if s.strip()]


async def main() -> None:
    cfg = load_config()

    db = DbPool()
    await db.start(cfg.mysql)

    async with get_cursor(db.pool, dict_rows=False) as cur:
        for stmt in _statements(SCHEMA.read_text(encoding="utf-8")):
            await cur.execute(stmt)
            print(f"OK: {stmt.splitlines()[0]}")

    await db.close()
    print("OK: schema applied.")

if __name__ == "__main__":
    asyncio.run(main())
