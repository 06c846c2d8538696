"""Repository for the channel_point_rewards table."""

from __future__ import annotations

import logging

import asyncpg

from shared.cache import AsyncTTLCache, cached
from shared.models.channel_point_reward import ChannelPointReward
from shared.models.emote_history import RewardType

logger = logging.getLogger(__name__)

_SELECT_COLS = (
    "owner_twitch_id, type, reward_id, title, cost, enabled, "
    "additional_options, created_at, updated_at"
)


def _row_to_reward(row: asyncpg.Record) -> ChannelPointReward:
    d = dict(row)
    d["type"] = RewardType(d["type"])
    d["additional_options"] = d.get("additional_options") or "{}"
    return ChannelPointReward(**d)


def _cache_key(owner_twitch_id: str, reward_type: RewardType) -> str:
    return f"reward:{owner_twitch_id}:{RewardType(reward_type).value}"


class ChannelPointRewardRepository:
    """Pure SQL operations for channel_point_rewards.

    *cache* backs :meth:`get_reward` for dashboard reads. Redemption checks
    use :meth:`fetch_reward`, which always reads the table.
    """

    def __init__(self, pool: asyncpg.Pool, cache: AsyncTTLCache | None = None) -> None:
        self.pool = pool
        self.cache = cache
        self._cached_fetch = (
            cached(cache=cache, key_func=_cache_key)(self.fetch_reward)
            if cache is not None
            else None
        )

    async def fetch_reward(
        self, owner_twitch_id: str, reward_type: RewardType
    ) -> ChannelPointReward | None:
        """Get the reward for a channel and type straight from the table."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_SELECT_COLS} FROM channel_point_rewards "
                "WHERE owner_twitch_id = $1 AND type = $2",
                owner_twitch_id,
                RewardType(reward_type).value,
            )
            if not row:
                return None
            return _row_to_reward(row)

    async def get_reward(
        self, owner_twitch_id: str, reward_type: RewardType
    ) -> ChannelPointReward | None:
        """Get the reward for a channel and type (with cache, when configured)."""
        if self._cached_fetch is None:
            return await self.fetch_reward(owner_twitch_id, reward_type)
        return await self._cached_fetch(owner_twitch_id, reward_type)

    async def save_reward(self, reward: ChannelPointReward) -> ChannelPointReward:
        """Insert or update a reward. Invalidates cache."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO channel_point_rewards
                    (owner_twitch_id, type, reward_id, title, cost, enabled, additional_options)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                ON CONFLICT (owner_twitch_id, type) DO UPDATE SET
                    reward_id          = EXCLUDED.reward_id,
                    title              = EXCLUDED.title,
                    cost               = EXCLUDED.cost,
                    enabled            = EXCLUDED.enabled,
                    additional_options = EXCLUDED.additional_options,
                    updated_at         = NOW()
                RETURNING {_SELECT_COLS}
                """,
                reward.owner_twitch_id,
                RewardType(reward.type).value,
                reward.reward_id,
                reward.title,
                reward.cost,
                reward.enabled,
                reward.additional_options,
            )
            result = _row_to_reward(row)
            if self.cache is not None:
                self.cache.invalidate(_cache_key(reward.owner_twitch_id, result.type))
            return result
