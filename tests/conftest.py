"""Shared test fixtures for emotechief."""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from shared.emotechief.config_store import UserConfigStore
from shared.emotechief.options import (
    BttvAdditionalOptions,
    SeventvAdditionalOptions,
    encode_options,
)
from shared.emotechief.orchestrator import EmoteChief
from shared.models.channel_point_reward import ChannelPointReward
from shared.models.emote_history import EmoteAdd, EmoteChangeType, RewardType
from shared.models.redemption import RedemptionEvent
from shared.models.user_config import Redemption, Redemptions, UserConfig

CHANNEL_ID = "77"
CHANNEL_LOGIN = "gempir"
BTTV_ID = "5f1b0186cf6d2144653d2970"
SEVENTV_ID = "60ccf4479f5edeff9938fa77"


# ── Fake asyncpg pool ─────────────────────────────────────────


class FakeConnection:
    """Records every query; results are popped from per-method queues."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, tuple]] = []
        self.results: dict[str, list[Any]] = {
            "fetch": [],
            "fetchrow": [],
            "fetchval": [],
            "execute": [],
        }

    def queue(self, method: str, *results: Any) -> None:
        self.results[method].extend(results)

    def _next(self, method: str, default: Any) -> Any:
        queue = self.results[method]
        result = queue.pop(0) if queue else default
        if isinstance(result, BaseException):
            raise result
        return result

    async def fetch(self, sql: str, *args: Any) -> list:
        self.calls.append(("fetch", sql, args))
        return self._next("fetch", [])

    async def fetchrow(self, sql: str, *args: Any) -> Any:
        self.calls.append(("fetchrow", sql, args))
        return self._next("fetchrow", None)

    async def fetchval(self, sql: str, *args: Any) -> Any:
        self.calls.append(("fetchval", sql, args))
        return self._next("fetchval", None)

    async def execute(self, sql: str, *args: Any) -> str:
        self.calls.append(("execute", sql, args))
        return self._next("execute", "OK")

    @property
    def last(self) -> tuple[str, str, tuple]:
        return self.calls[-1]


class _Acquire:
    def __init__(self, conn: FakeConnection) -> None:
        self.conn = conn

    async def __aenter__(self) -> FakeConnection:
        return self.conn

    async def __aexit__(self, *exc: Any) -> None:
        return None


class FakePool:
    def __init__(self) -> None:
        self.conn = FakeConnection()

    def acquire(self, timeout: float | None = None) -> _Acquire:
        return _Acquire(self.conn)


@pytest.fixture
def pool() -> FakePool:
    return FakePool()


# ── In-memory collaborators ───────────────────────────────────


class InMemoryKeyValue:
    """Hash semantics of KeyValueRepository without a database."""

    def __init__(self) -> None:
        self.data: dict[tuple[str, str], str] = {}
        self.fail: BaseException | None = None

    def _check(self) -> None:
        if self.fail is not None:
            raise self.fail

    async def hget(self, namespace: str, key: str) -> str | None:
        self._check()
        return self.data.get((namespace, key))

    async def hset(self, namespace: str, key: str, value: str) -> bool:
        self._check()
        new = (namespace, key) not in self.data
        self.data[(namespace, key)] = value
        return new

    async def hdel(self, namespace: str, key: str) -> int:
        self._check()
        return 1 if self.data.pop((namespace, key), None) is not None else 0

    async def hkeys(self, namespace: str) -> list[str]:
        self._check()
        return [k for ns, k in self.data if ns == namespace]


class InMemoryLedger:
    """Append-only history with the same reads as EmoteHistoryRepository."""

    def __init__(self) -> None:
        self.records: list[EmoteAdd] = []
        self._ids = itertools.count(1)
        self.fail_append: BaseException | None = None

    async def append(
        self,
        channel_twitch_id: str,
        reward_type: RewardType,
        emote_id: str,
        change_type: EmoteChangeType,
    ) -> EmoteAdd:
        if self.fail_append is not None:
            raise self.fail_append
        now = datetime.now(timezone.utc)
        record = EmoteAdd(
            id=next(self._ids),
            channel_twitch_id=channel_twitch_id,
            type=reward_type,
            change_type=change_type,
            emote_id=emote_id,
            created_at=now,
            updated_at=now,
        )
        self.records.append(record)
        return record

    async def active_emote_ids(self, channel_twitch_id: str, reward_type: RewardType) -> list[str]:
        active: dict[str, int] = {}
        for r in self.records:
            if r.channel_twitch_id != channel_twitch_id or r.type != reward_type:
                continue
            if r.change_type == EmoteChangeType.ADD:
                active[r.emote_id] = r.id
            else:
                active.pop(r.emote_id, None)
        return sorted(active, key=active.get, reverse=True)

    async def count_active(self, channel_twitch_id: str, reward_type: RewardType) -> int:
        return len(await self.active_emote_ids(channel_twitch_id, reward_type))


class InMemoryRewards:
    def __init__(self) -> None:
        self.rewards: dict[tuple[str, RewardType], ChannelPointReward] = {}

    async def fetch_reward(
        self, owner_twitch_id: str, reward_type: RewardType
    ) -> ChannelPointReward | None:
        return self.rewards.get((owner_twitch_id, reward_type))

    get_reward = fetch_reward

    def put(self, reward: ChannelPointReward) -> None:
        self.rewards[(reward.owner_twitch_id, reward.type)] = reward


def make_reward(
    reward_type: RewardType = RewardType.BTTV,
    *,
    slots: int = 1,
    enabled: bool = True,
    reward_id: str = "",
    owner: str = CHANNEL_ID,
) -> ChannelPointReward:
    options_cls = (
        BttvAdditionalOptions if reward_type == RewardType.BTTV else SeventvAdditionalOptions
    )
    return ChannelPointReward(
        owner_twitch_id=owner,
        type=reward_type,
        reward_id=reward_id,
        title="Bttv emote" if reward_type == RewardType.BTTV else "7TV emote",
        cost=1000,
        enabled=enabled,
        additional_options=encode_options(options_cls(slots=slots)),
    )


_redemption_ids = itertools.count(1)


def make_event(
    user_input: str = f"https://betterttv.com/emotes/{BTTV_ID}",
    *,
    reward_title: str = "Bttv emote",
    reward_id: str = "reward-1",
    redemption_id: str | None = None,
) -> RedemptionEvent:
    return RedemptionEvent(
        redemption_id=redemption_id or f"redemption-{next(_redemption_ids)}",
        reward_id=reward_id,
        reward_title=reward_title,
        broadcaster_id=CHANNEL_ID,
        broadcaster_login=CHANNEL_LOGIN,
        user_id="1001",
        user_login="viewer",
        user_input=user_input,
    )


def make_provider(reward_type: RewardType) -> AsyncMock:
    provider = AsyncMock()
    provider.reward_type = reward_type
    return provider


# ── Wired fixtures ────────────────────────────────────────────


@pytest.fixture
def kv() -> InMemoryKeyValue:
    return InMemoryKeyValue()


@pytest.fixture
def subscriber() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def config_store(kv: InMemoryKeyValue, subscriber: AsyncMock) -> UserConfigStore:
    return UserConfigStore(kv, subscriber, timeout=1.0)  # type: ignore[arg-type]


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def rewards() -> InMemoryRewards:
    r = InMemoryRewards()
    r.put(make_reward(RewardType.BTTV, slots=1))
    r.put(make_reward(RewardType.SEVENTV, slots=2))
    return r


@pytest.fixture
def providers() -> dict[RewardType, AsyncMock]:
    return {rt: make_provider(rt) for rt in RewardType}


@pytest.fixture
def status() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def chat() -> AsyncMock:
    return AsyncMock()


@pytest_asyncio.fixture
async def chief(
    config_store: UserConfigStore,
    rewards: InMemoryRewards,
    ledger: InMemoryLedger,
    providers: dict[RewardType, AsyncMock],
    status: AsyncMock,
    chat: AsyncMock,
) -> EmoteChief:
    """EmoteChief for a channel with both reward types active."""
    await config_store.replace(
        CHANNEL_ID,
        UserConfig(
            redemptions=Redemptions(
                bttv=Redemption(title="Bttv emote", active=True),
                seventv=Redemption(title="7TV emote", active=True),
            )
        ),
    )
    return EmoteChief(
        config_store,
        rewards,  # type: ignore[arg-type]
        ledger,  # type: ignore[arg-type]
        providers,
        status,
        chat,
        timeout=1.0,
    )
