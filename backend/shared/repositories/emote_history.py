"""Repository for the emote_adds table (append-only emote history ledger)."""

from __future__ import annotations

import logging

import asyncpg

from shared.models.emote_history import EmoteAdd, EmoteChangeType, RewardType

logger = logging.getLogger(__name__)

_SELECT_COLS = "id, channel_twitch_id, type, change_type, emote_id, created_at, updated_at"

# id breaks ties between rows written within the same timestamp tick, which
# keeps OFFSET pagination free of overlaps and gaps.
_ORDER_BY = "ORDER BY updated_at DESC, id DESC"


def _row_to_emote_add(row: asyncpg.Record) -> EmoteAdd:
    d = dict(row)
    d["type"] = RewardType(d["type"])
    d["change_type"] = EmoteChangeType(d["change_type"])
    return EmoteAdd(**d)


class EmoteHistoryRepository:
    """Pure SQL operations for emote_adds.

    Rows are only ever inserted; nothing here updates or deletes.
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def append(
        self,
        channel_twitch_id: str,
        reward_type: RewardType,
        emote_id: str,
        change_type: EmoteChangeType,
    ) -> EmoteAdd:
        """Insert one history record. Timestamps are assigned by the database."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO emote_adds (channel_twitch_id, type, change_type, emote_id)
                VALUES ($1, $2, $3, $4)
                RETURNING {_SELECT_COLS}
                """,
                channel_twitch_id,
                RewardType(reward_type).value,
                EmoteChangeType(change_type).value,
                emote_id,
            )
            if row is None:
                raise ValueError("Failed to append emote history: no row returned")
            return _row_to_emote_add(row)

    async def query_recent(
        self,
        channel_twitch_id: str,
        reward_type: RewardType,
        change_type: EmoteChangeType = EmoteChangeType.ADD,
        limit: int = 1,
    ) -> list[EmoteAdd]:
        """Most recent records of one change type, newest first."""
        if limit < 1:
            return []
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_SELECT_COLS} FROM emote_adds "
                "WHERE channel_twitch_id = $1 AND type = $2 AND change_type = $3 "
                f"{_ORDER_BY} LIMIT $4",
                channel_twitch_id,
                RewardType(reward_type).value,
                EmoteChangeType(change_type).value,
                limit,
            )
            return [_row_to_emote_add(r) for r in rows]

    async def paginate(
        self,
        channel_twitch_id: str,
        page: int,
        page_size: int,
        added_only: bool,
    ) -> list[EmoteAdd]:
        """One page of a channel's history, newest first.

        Pages are 1-based. ``added_only`` selects additions, otherwise every
        other change type.
        """
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")

        operator = "=" if added_only else "<>"
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_SELECT_COLS} FROM emote_adds "
                f"WHERE channel_twitch_id = $1 AND change_type {operator} $2 "
                f"{_ORDER_BY} OFFSET $3 LIMIT $4",
                channel_twitch_id,
                EmoteChangeType.ADD.value,
                (page - 1) * page_size,
                page_size,
            )
            return [_row_to_emote_add(r) for r in rows]

    async def active_emote_ids(self, channel_twitch_id: str, reward_type: RewardType) -> list[str]:
        """Emotes added through redemptions and not removed since, newest first."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT a.emote_id
                FROM emote_adds a
                WHERE a.channel_twitch_id = $1 AND a.type = $2 AND a.change_type = $3
                  AND NOT EXISTS (
                      SELECT 1 FROM emote_adds r
                      WHERE r.channel_twitch_id = a.channel_twitch_id
                        AND r.type = a.type
                        AND r.emote_id = a.emote_id
                        AND r.change_type = $4
                        AND r.id > a.id
                  )
                ORDER BY a.updated_at DESC, a.id DESC
                """,
                channel_twitch_id,
                RewardType(reward_type).value,
                EmoteChangeType.ADD.value,
                EmoteChangeType.REMOVE.value,
            )
            return [r["emote_id"] for r in rows]

    async def count_active(self, channel_twitch_id: str, reward_type: RewardType) -> int:
        """Slot usage for a channel and reward type."""
        return len(await self.active_emote_ids(channel_twitch_id, reward_type))
