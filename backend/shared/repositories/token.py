"""Repository for the tokens table."""

from __future__ import annotations

import logging

import asyncpg

from shared.models.token import Token

logger = logging.getLogger(__name__)


class TokenRepository:
    """Pure SQL operations for broadcaster OAuth tokens."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def get_token(self, user_id: str) -> Token | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT user_id, token, refresh, created_at, updated_at "
                "FROM tokens WHERE user_id = $1",
                user_id,
            )
            if not row:
                return None
            return Token(**dict(row))

    async def list_tokens(self) -> list[Token]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT user_id, token, refresh, created_at, updated_at FROM tokens"
            )
            return [Token(**dict(r)) for r in rows]

    async def upsert_token(self, user_id: str, token: str, refresh: str) -> None:
        """Insert or update an OAuth token."""
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO tokens (user_id, token, refresh)
                VALUES ($1, $2, $3)
                ON CONFLICT (user_id) DO UPDATE SET
                    token      = EXCLUDED.token,
                    refresh    = EXCLUDED.refresh,
                    updated_at = NOW()
                """,
                user_id,
                token,
                refresh,
            )
