# manages connection to the local key/value database, internal to storage package
import asyncio
import os
from contextlib import asynccontextmanager
from sqlite3 import Row

import aiosqlite

from utils.logger import get_logger

_logger = get_logger(__name__)

DB_PATH = "data/storefront.sqlite"

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
"""

_initialized = False
_init_lock = asyncio.Lock()


async def _init_db(conn: aiosqlite.Connection) -> None:
    _logger.info(f"Initializing local store at {DB_PATH}...")
    await conn.executescript(SCHEMA)
    await conn.commit()


async def _table_exists(conn: aiosqlite.Connection, table_name: str) -> bool:
    cur = await conn.execute(
        """
        SELECT name
        FROM sqlite_master
        WHERE type = 'table'
          AND name = ?;
        """,
        (table_name,),
    )
    row = await cur.fetchone()
    await cur.close()
    return row is not None


@asynccontextmanager
async def connect() -> aiosqlite.Connection:
    """Async context manager yielding an aiosqlite connection.

    Creates the parent directory and the kv table on first use.
    """
    global _initialized
    parent = os.path.dirname(DB_PATH)
    if parent:
        os.makedirs(parent, exist_ok=True)

    conn = await aiosqlite.connect(DB_PATH)
    conn.row_factory = Row

    if not _initialized:
        async with _init_lock:
            if not _initialized:
                if not await _table_exists(conn, "kv"):
                    await _init_db(conn)
                _initialized = True
    try:
        yield conn
    finally:
        await conn.close()
