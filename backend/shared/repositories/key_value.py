"""Repository for the kv_store table.

Hash-style storage: each ``namespace`` behaves like a hash whose fields are
``key``s holding one opaque text value.
"""

from __future__ import annotations

import logging

import asyncpg

logger = logging.getLogger(__name__)


class KeyValueRepository:
    """Pure SQL operations for kv_store."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def hget(self, namespace: str, key: str) -> str | None:
        """Return the stored value, or None when the field does not exist."""
        async with self.pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT value FROM kv_store WHERE namespace = $1 AND key = $2",
                namespace,
                key,
            )

    async def hset(self, namespace: str, key: str, value: str) -> bool:
        """Insert or overwrite a field. Returns True when the field was new."""
        async with self.pool.acquire() as conn:
            inserted = await conn.fetchval(
                """
                INSERT INTO kv_store (namespace, key, value)
                VALUES ($1, $2, $3)
                ON CONFLICT (namespace, key) DO UPDATE SET
                    value      = EXCLUDED.value,
                    updated_at = NOW()
                RETURNING (xmax = 0) AS inserted
                """,
                namespace,
                key,
                value,
            )
            return bool(inserted)

    async def hdel(self, namespace: str, key: str) -> int:
        """Delete a field. Returns the number of removed fields (0 or 1)."""
        async with self.pool.acquire() as conn:
            status = await conn.execute(
                "DELETE FROM kv_store WHERE namespace = $1 AND key = $2",
                namespace,
                key,
            )
            # asyncpg returns the command tag, e.g. "DELETE 1"
            return int(status.split()[-1]) if status else 0

    async def hkeys(self, namespace: str) -> list[str]:
        """All keys in *namespace*, oldest first."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT key FROM kv_store WHERE namespace = $1 ORDER BY created_at, key",
                namespace,
            )
            return [r["key"] for r in rows]
