# localStorage-style string key/value access over the kv table
from __future__ import annotations

import json
from typing import Any, Optional

from storage.database import connect

CART_KEY = "shopping-cart"
AUTH_TOKEN_KEY = "auth_token"
USER_KEY = "user"
CHECKOUT_MARKER_KEY = "checkout-in-progress"


async def get_item(key: str) -> Optional[str]:
    """Return the stored string for key, or None."""
    async with connect() as conn:
        cur = await conn.execute("SELECT value FROM kv WHERE key = ?;", (key,))
        row = await cur.fetchone()
        await cur.close()
    return row[0] if row else None


async def set_item(key: str, value: str) -> None:
    """Overwrite the value stored under key."""
    async with connect() as conn:
        await conn.execute(
            """
            INSERT INTO kv(key, value, updated_at) VALUES (?, ?, datetime('now'))
            ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                           updated_at = excluded.updated_at;
            """,
            (key, value),
        )
        await conn.commit()


async def remove_item(key: str) -> None:
    async with connect() as conn:
        await conn.execute("DELETE FROM kv WHERE key = ?;", (key,))
        await conn.commit()


async def get_json(key: str) -> Any:
    """Stored value decoded as JSON; None when missing. Raises ValueError when corrupt."""
    raw = await get_item(key)
    if raw is None:
        return None
    return json.loads(raw)


async def set_json(key: str, value: Any) -> None:
    await set_item(key, json.dumps(value))
