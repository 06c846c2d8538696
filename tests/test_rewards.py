"""Tests for the reward repository cache and EmoteService reward handling."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from api.services.emote_service import EmoteService
from shared.cache import AsyncTTLCache
from shared.models.channel_point_reward import ChannelPointReward
from shared.models.emote_history import RewardType
from shared.repositories.channel_point_reward import ChannelPointRewardRepository


def _reward_row(slots_blob: str = '{"Slots":2}') -> dict:
    return {
        "owner_twitch_id": "77",
        "type": "seventv",
        "reward_id": "r1",
        "title": "7TV emote",
        "cost": 500,
        "enabled": True,
        "additional_options": slots_blob,
        "created_at": None,
        "updated_at": None,
    }


def _cached_repo(pool) -> ChannelPointRewardRepository:
    return ChannelPointRewardRepository(pool, cache=AsyncTTLCache(maxsize=8, ttl=300))


# ── AsyncTTLCache ─────────────────────────────────────────────


class TestAsyncTTLCache:
    def test_claim_once(self):
        cache = AsyncTTLCache(maxsize=8, ttl=60)
        assert cache.claim("r1") is True
        assert cache.claim("r1") is False

    def test_invalidate_allows_reclaim(self):
        cache = AsyncTTLCache(maxsize=8, ttl=60)
        cache.claim("r1")
        cache.invalidate("r1")
        assert cache.claim("r1") is True

    def test_stale_is_bounded(self):
        cache = AsyncTTLCache(maxsize=2, ttl=60)
        for key in ("a", "b", "c"):
            cache.set(key, key)
        assert list(cache._stale) == ["b", "c"]


# ── Repository ────────────────────────────────────────────────


class TestChannelPointRewardRepository:
    @pytest.mark.asyncio
    async def test_get_reward_is_cached(self, pool):
        pool.conn.queue("fetchrow", _reward_row())
        repo = _cached_repo(pool)

        first = await repo.get_reward("77", RewardType.SEVENTV)
        second = await repo.get_reward("77", RewardType.SEVENTV)

        assert first is second
        assert first.type is RewardType.SEVENTV
        assert len(pool.conn.calls) == 1

    @pytest.mark.asyncio
    async def test_save_invalidates(self, pool):
        updated = _reward_row('{"Slots":5}')
        pool.conn.queue("fetchrow", _reward_row(), updated, updated)
        repo = _cached_repo(pool)

        await repo.get_reward("77", RewardType.SEVENTV)
        await repo.save_reward(
            ChannelPointReward(
                owner_twitch_id="77",
                type=RewardType.SEVENTV,
                additional_options='{"Slots":5}',
            )
        )
        fresh = await repo.get_reward("77", RewardType.SEVENTV)

        assert fresh.additional_options == '{"Slots":5}'
        assert len(pool.conn.calls) == 3

    @pytest.mark.asyncio
    async def test_stale_value_on_outage(self, pool, monkeypatch):
        monkeypatch.setattr("shared.cache.asyncio.sleep", AsyncMock())
        pool.conn.queue("fetchrow", _reward_row())
        repo = _cached_repo(pool)
        cached = await repo.get_reward("77", RewardType.SEVENTV)

        repo.cache.invalidate("reward:77:seventv")
        pool.conn.queue("fetchrow", *[ConnectionError("db down")] * 3)

        assert await repo.get_reward("77", RewardType.SEVENTV) is cached

    @pytest.mark.asyncio
    async def test_outage_without_stale_raises(self, pool, monkeypatch):
        monkeypatch.setattr("shared.cache.asyncio.sleep", AsyncMock())
        pool.conn.queue("fetchrow", *[ConnectionError("db down")] * 3)
        repo = _cached_repo(pool)

        with pytest.raises(ConnectionError):
            await repo.get_reward("77", RewardType.SEVENTV)

    @pytest.mark.asyncio
    async def test_fetch_reward_skips_cache(self, pool):
        pool.conn.queue("fetchrow", _reward_row(), _reward_row('{"Slots":1}'))
        repo = _cached_repo(pool)

        await repo.get_reward("77", RewardType.SEVENTV)
        fresh = await repo.fetch_reward("77", RewardType.SEVENTV)

        assert fresh.additional_options == '{"Slots":1}'
        assert len(pool.conn.calls) == 2

    @pytest.mark.asyncio
    async def test_without_cache_every_read_hits_table(self, pool):
        pool.conn.queue("fetchrow", _reward_row(), _reward_row())
        repo = ChannelPointRewardRepository(pool)

        await repo.get_reward("77", RewardType.SEVENTV)
        await repo.get_reward("77", RewardType.SEVENTV)

        assert len(pool.conn.calls) == 2


# ── EmoteService ──────────────────────────────────────────────


class TestEmoteServiceRewards:
    @pytest.mark.asyncio
    async def test_unconfigured_reward_has_no_slots(self):
        rewards = AsyncMock()
        rewards.get_reward.return_value = None
        service = EmoteService(AsyncMock(), rewards, AsyncMock())

        reward = await service.get_reward("77", RewardType.BTTV)

        assert reward["slots"] is None
        assert reward["owner_twitch_id"] == "77"
        assert "additional_options" not in reward

    @pytest.mark.asyncio
    async def test_save_encodes_slots(self):
        rewards = AsyncMock()
        rewards.save_reward.side_effect = lambda reward: reward
        service = EmoteService(AsyncMock(), rewards, AsyncMock())

        saved = await service.save_reward(
            "77",
            RewardType.SEVENTV,
            reward_id="r1",
            title="7TV emote",
            cost=500,
            enabled=True,
            slots=3,
        )

        stored = rewards.save_reward.await_args.args[0]
        assert stored.additional_options == '{"Slots":3}'
        assert saved["slots"] == 3

    @pytest.mark.asyncio
    async def test_save_rejects_non_positive_slots(self):
        rewards = AsyncMock()
        service = EmoteService(AsyncMock(), rewards, AsyncMock())

        with pytest.raises(ValueError):
            await service.save_reward(
                "77", RewardType.BTTV, reward_id="", title="", cost=0, enabled=True, slots=0
            )
        rewards.save_reward.assert_not_awaited()
