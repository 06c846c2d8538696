"""EmoteChief: processes channel-point redemptions end to end.

Success path:  RECEIVED -> PARSED -> VERIFIED -> APPLIED -> RECORDED
Failure path:  RECEIVED -> PARSED | REJECTED -> REFUNDED

An event only ever ends deducted-and-applied (fulfilled) or
refunded-and-not-applied. A ledger entry is written only after the provider
confirmed the change.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, TypeVar

from shared.cache import AsyncTTLCache
from shared.models.emote_history import EmoteChangeType, RewardType
from shared.models.redemption import RedemptionEvent
from shared.repositories.channel_point_reward import ChannelPointRewardRepository
from shared.repositories.emote_history import EmoteHistoryRepository

from .config_store import UserConfigStore
from .parser import extract_emote_id
from .providers import EmoteProvider
from .verifier import verify

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RedemptionState(StrEnum):
    RECEIVED = "received"
    PARSED = "parsed"
    VERIFIED = "verified"
    APPLIED = "applied"
    RECORDED = "recorded"
    REJECTED = "rejected"
    REFUNDED = "refunded"
    # Not ours to handle: no matching active reward, or already seen
    IGNORED = "ignored"
    DUPLICATE = "duplicate"


@dataclass
class RedemptionResult:
    state: RedemptionState
    reward_type: RewardType | None = None
    emote_id: str = ""
    reason: str = ""


class RedemptionStatusClient(Protocol):
    """Marks a redemption fulfilled or refunds its points on the platform."""

    async def fulfill(self, event: RedemptionEvent) -> None: ...

    async def refund(self, event: RedemptionEvent) -> None: ...


class ChatClient(Protocol):
    async def say(self, channel_id: str, message: str) -> None: ...


class KeyedLocks:
    """One asyncio.Lock per key, dropped once nobody holds or waits on it.

    Users are counted on entry to :meth:`hold` before any await, so a key
    with a woken but not yet running waiter is never dropped.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class EmoteChief:
    """Composes parser, verifier, ledger, config store and collaborators.

    The bot passes a *status* client for redemptions; the API builds one
    without it and only uses the owner operations.
    """

    def __init__(
        self,
        config_store: UserConfigStore,
        rewards: ChannelPointRewardRepository,
        ledger: EmoteHistoryRepository,
        providers: Mapping[RewardType, EmoteProvider],
        status: RedemptionStatusClient | None = None,
        chat: ChatClient | None = None,
        *,
        timeout: float = 5.0,
        dedup_ttl: float = 3600.0,
    ) -> None:
        self.config_store = config_store
        self.rewards = rewards
        self.ledger = ledger
        self.providers = dict(providers)
        self.status = status
        self.chat = chat
        self.timeout = timeout
        self._seen = AsyncTTLCache(maxsize=4096, ttl=dedup_ttl)
        self._locks = KeyedLocks()

    async def _timed(self, awaitable: Awaitable[T]) -> T:
        return await asyncio.wait_for(awaitable, timeout=self.timeout)

    # ------------------------------------------------------------------
    # Redemptions
    # ------------------------------------------------------------------

    async def process_redemption(self, event: RedemptionEvent) -> RedemptionResult:
        """Handle one redemption. Never raises for expected failures."""
        if not self._seen.claim(event.redemption_id):
            logger.info(f"Duplicate redemption {event.redemption_id}, skipping")
            return RedemptionResult(RedemptionState.DUPLICATE, reason="already processed")

        channel_id = event.broadcaster_id
        try:
            reward_type = await self._resolve_reward_type(event)
        except Exception as e:
            # Unknown whether the reward is ours: leave it unfulfilled and allow redelivery.
            self._seen.invalidate(event.redemption_id)
            logger.error(
                f"Can't load config for {channel_id}, leaving redemption "
                f"{event.redemption_id} untouched: {type(e).__name__}: {e}"
            )
            return RedemptionResult(RedemptionState.REJECTED, reason="config unavailable")

        if reward_type is None:
            return RedemptionResult(RedemptionState.IGNORED, reason="no active reward")

        emote_id, found = extract_emote_id(event.user_input, reward_type)
        if not found:
            return await self._reject(
                event, reward_type, "", "no emote link found",
                chat=f"@{event.user_login} no {reward_type.value} emote link found in your message",
            )

        # Uncached: dashboard edits apply to the very next redemption.
        try:
            reward = await self._timed(self.rewards.fetch_reward(channel_id, reward_type))
        except Exception as e:
            logger.warning(f"Reward lookup failed for {channel_id}/{reward_type}: {e}")
            reward = None

        provider = self.providers.get(reward_type)
        if provider is None:
            return await self._reject(event, reward_type, emote_id, "provider not configured")

        async with self._locks.hold(f"{channel_id}:{reward_type.value}"):
            try:
                active = await self._timed(self.ledger.active_emote_ids(channel_id, reward_type))
            except Exception as e:
                logger.error(f"Usage lookup failed for {channel_id}/{reward_type}: {e}")
                return await self._reject(event, reward_type, emote_id, "usage unavailable")

            if emote_id in active:
                return await self._reject(
                    event, reward_type, emote_id, "emote already added",
                    chat=f"@{event.user_login} that emote was already added",
                )

            if not verify(reward, len(active), event):
                return await self._reject(
                    event, reward_type, emote_id, "verification failed",
                    chat=f"@{event.user_login} no free {reward_type.value} emote slot",
                )

            try:
                await self._timed(provider.add_emote(channel_id, emote_id))
            except TimeoutError:
                # Not retried: the provider may or may not have applied it.
                logger.warning(
                    f"Add of {emote_id} to {channel_id} timed out; outcome unknown, refunding"
                )
                return await self._reject(event, reward_type, emote_id, "provider timeout")
            except Exception as e:
                logger.warning(f"Add of {emote_id} to {channel_id} failed: {e}")
                return await self._reject(
                    event, reward_type, emote_id, "provider rejected",
                    chat=f"@{event.user_login} failed to add emote: {e}",
                )

            try:
                await self._timed(
                    self.ledger.append(channel_id, reward_type, emote_id, EmoteChangeType.ADD)
                )
            except Exception as e:
                logger.error(f"Added {emote_id} to {channel_id} but could not record it: {e}")
                return await self._compensate(event, reward_type, emote_id, provider)

        logger.info(
            f"[{reward_type.value}] {event.user_login} added {emote_id} to "
            f"{event.broadcaster_login} (redemption {event.redemption_id})"
        )
        await self._fulfill(event)
        await self._say(channel_id, f"@{event.user_login} added new {reward_type.value} emote {emote_id}")
        return RedemptionResult(RedemptionState.RECORDED, reward_type, emote_id)

    async def _resolve_reward_type(self, event: RedemptionEvent) -> RewardType | None:
        config = await self.config_store.get(event.broadcaster_id)
        title = event.reward_title.strip().lower()
        for reward_type, redemption in config.redemptions.items():
            if redemption.active and redemption.title.strip().lower() == title:
                return reward_type
        return None

    async def _compensate(
        self,
        event: RedemptionEvent,
        reward_type: RewardType,
        emote_id: str,
        provider: EmoteProvider,
    ) -> RedemptionResult:
        """Undo an unrecorded add so the ledger stays the source of truth."""
        try:
            await self._timed(provider.remove_emote(event.broadcaster_id, emote_id))
        except Exception as e:
            logger.error(
                f"Could not roll back unrecorded emote {emote_id} in {event.broadcaster_id}: {e}"
            )
            await self._fulfill(event)
            return RedemptionResult(
                RedemptionState.APPLIED, reward_type, emote_id, reason="applied but not recorded"
            )
        return await self._reject(event, reward_type, emote_id, "ledger unavailable")

    async def _reject(
        self,
        event: RedemptionEvent,
        reward_type: RewardType,
        emote_id: str,
        reason: str,
        *,
        chat: str | None = None,
    ) -> RedemptionResult:
        logger.info(
            f"Rejecting redemption {event.redemption_id} in {event.broadcaster_login} "
            f"({reward_type.value}): {reason}"
        )
        state = RedemptionState.REJECTED
        try:
            if self.status is None:
                raise RuntimeError("no redemption status client")
            await self._timed(self.status.refund(event))
            state = RedemptionState.REFUNDED
        except Exception as e:
            logger.error(f"Refund of {event.redemption_id} failed: {type(e).__name__}: {e}")
        if chat:
            await self._say(event.broadcaster_id, chat)
        return RedemptionResult(state, reward_type, emote_id, reason)

    async def _fulfill(self, event: RedemptionEvent) -> None:
        if self.status is None:
            return
        try:
            await self._timed(self.status.fulfill(event))
        except Exception as e:
            logger.warning(f"Could not mark {event.redemption_id} fulfilled: {e}")

    async def _say(self, channel_id: str, message: str) -> None:
        if self.chat is None:
            return
        try:
            await self.chat.say(channel_id, message)
        except Exception as e:
            logger.warning(f"Chat message to {channel_id} failed: {e}")

    # ------------------------------------------------------------------
    # Owner operations
    # ------------------------------------------------------------------

    async def remove_emote(self, channel_id: str, reward_type: RewardType, emote_id: str) -> bool:
        """Remove an emote this system added, freeing its slot.

        Returns False when the emote is not active in the ledger. Provider
        and ledger failures propagate.
        """
        provider = self.providers.get(reward_type)
        if provider is None:
            raise KeyError(f"no provider configured for {reward_type}")

        async with self._locks.hold(f"{channel_id}:{reward_type.value}"):
            active = await self._timed(self.ledger.active_emote_ids(channel_id, reward_type))
            if emote_id not in active:
                return False
            await self._timed(provider.remove_emote(channel_id, emote_id))
            await self._timed(
                self.ledger.append(channel_id, reward_type, emote_id, EmoteChangeType.REMOVE)
            )
        logger.info(f"[{reward_type.value}] removed {emote_id} from {channel_id}")
        return True
