"""Tests for the SQL repositories against a recording fake pool."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from shared.models.emote_history import EmoteChangeType, RewardType
from shared.repositories.emote_history import EmoteHistoryRepository
from shared.repositories.key_value import KeyValueRepository

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _row(id_: int, emote_id: str, change_type: str = "add") -> dict:
    return {
        "id": id_,
        "channel_twitch_id": "77",
        "type": "seventv",
        "change_type": change_type,
        "emote_id": emote_id,
        "created_at": NOW,
        "updated_at": NOW,
    }


# ── Emote history ─────────────────────────────────────────────


class TestEmoteHistoryRepository:
    @pytest.mark.asyncio
    async def test_append_returns_record(self, pool):
        pool.conn.queue("fetchrow", _row(1, "60ccf4479f5edeff9938fa77"))
        repo = EmoteHistoryRepository(pool)

        record = await repo.append(
            "77", RewardType.SEVENTV, "60ccf4479f5edeff9938fa77", EmoteChangeType.ADD
        )

        assert record.id == 1
        assert record.type is RewardType.SEVENTV
        assert record.change_type is EmoteChangeType.ADD
        method, sql, args = pool.conn.last
        assert "INSERT INTO emote_adds" in sql
        assert args == ("77", "seventv", "add", "60ccf4479f5edeff9938fa77")

    @pytest.mark.asyncio
    async def test_append_without_row_raises(self, pool):
        repo = EmoteHistoryRepository(pool)
        with pytest.raises(ValueError):
            await repo.append("77", RewardType.BTTV, "x" * 24, EmoteChangeType.ADD)

    @pytest.mark.asyncio
    async def test_query_recent(self, pool):
        pool.conn.queue("fetch", [_row(2, "b" * 24), _row(1, "a" * 24)])
        repo = EmoteHistoryRepository(pool)

        records = await repo.query_recent("77", RewardType.SEVENTV, limit=2)

        assert [r.emote_id for r in records] == ["b" * 24, "a" * 24]
        _, sql, args = pool.conn.last
        assert "ORDER BY updated_at DESC, id DESC" in sql
        assert args == ("77", "seventv", "add", 2)

    @pytest.mark.asyncio
    async def test_query_recent_zero_limit_skips_db(self, pool):
        repo = EmoteHistoryRepository(pool)
        assert await repo.query_recent("77", RewardType.BTTV, limit=0) == []
        assert pool.conn.calls == []

    @pytest.mark.asyncio
    async def test_first_page_has_zero_offset(self, pool):
        repo = EmoteHistoryRepository(pool)
        await repo.paginate("77", page=1, page_size=20, added_only=True)

        _, sql, args = pool.conn.last
        assert "change_type = $2" in sql
        assert args == ("77", "add", 0, 20)

    @pytest.mark.asyncio
    async def test_second_page_offset(self, pool):
        repo = EmoteHistoryRepository(pool)
        await repo.paginate("77", page=2, page_size=10, added_only=True)

        _, _, args = pool.conn.last
        assert args[2] == 10
        assert args[3] == 10

    @pytest.mark.asyncio
    async def test_removed_history_uses_inequality(self, pool):
        pool.conn.queue("fetch", [_row(3, "c" * 24, "remove")])
        repo = EmoteHistoryRepository(pool)

        records = await repo.paginate("77", page=1, page_size=5, added_only=False)

        _, sql, _ = pool.conn.last
        assert "change_type <> $2" in sql
        assert "ORDER BY updated_at DESC, id DESC" in sql
        assert records[0].change_type is EmoteChangeType.REMOVE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page, page_size", [(0, 10), (-1, 10), (1, 0)])
    async def test_paginate_rejects_bad_bounds(self, pool, page, page_size):
        repo = EmoteHistoryRepository(pool)
        with pytest.raises(ValueError):
            await repo.paginate("77", page=page, page_size=page_size, added_only=True)
        assert pool.conn.calls == []

    @pytest.mark.asyncio
    async def test_count_active(self, pool):
        pool.conn.queue("fetch", [{"emote_id": "a" * 24}, {"emote_id": "b" * 24}])
        repo = EmoteHistoryRepository(pool)

        assert await repo.count_active("77", RewardType.BTTV) == 2
        _, sql, args = pool.conn.last
        assert "NOT EXISTS" in sql
        assert args == ("77", "bttv", "add", "remove")


# ── Key/value ─────────────────────────────────────────────────


class TestKeyValueRepository:
    @pytest.mark.asyncio
    async def test_hget_missing(self, pool):
        repo = KeyValueRepository(pool)
        assert await repo.hget("userConfig", "77") is None
        _, _, args = pool.conn.last
        assert args == ("userConfig", "77")

    @pytest.mark.asyncio
    async def test_hset_reports_insert(self, pool):
        pool.conn.queue("fetchval", True, False)
        repo = KeyValueRepository(pool)

        assert await repo.hset("userConfig", "77", "{}") is True
        assert await repo.hset("userConfig", "77", "{}") is False
        _, sql, args = pool.conn.last
        assert "ON CONFLICT (namespace, key)" in sql
        assert args == ("userConfig", "77", "{}")

    @pytest.mark.asyncio
    async def test_hdel_parses_command_tag(self, pool):
        pool.conn.queue("execute", "DELETE 1", "DELETE 0")
        repo = KeyValueRepository(pool)

        assert await repo.hdel("userConfig", "77") == 1
        assert await repo.hdel("userConfig", "77") == 0

    @pytest.mark.asyncio
    async def test_hkeys(self, pool):
        pool.conn.queue("fetch", [{"key": "77"}, {"key": "88"}])
        repo = KeyValueRepository(pool)
        assert await repo.hkeys("userConfig") == ["77", "88"]
