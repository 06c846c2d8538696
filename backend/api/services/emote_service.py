"""Emote service: history, reward options and slot removal for the dashboard."""

import logging
from dataclasses import asdict

from shared.emotechief.options import (
    BttvAdditionalOptions,
    SeventvAdditionalOptions,
    decode_options,
    encode_options,
)
from shared.emotechief.orchestrator import EmoteChief
from shared.models.channel_point_reward import ChannelPointReward
from shared.models.emote_history import RewardType
from shared.repositories.channel_point_reward import ChannelPointRewardRepository
from shared.repositories.emote_history import EmoteHistoryRepository

logger = logging.getLogger(__name__)

_OPTION_TYPES = {
    RewardType.BTTV: BttvAdditionalOptions,
    RewardType.SEVENTV: SeventvAdditionalOptions,
}


class EmoteService:
    """API-facing emote operations."""

    def __init__(
        self,
        ledger: EmoteHistoryRepository,
        rewards: ChannelPointRewardRepository,
        chief: EmoteChief,
    ) -> None:
        self.ledger = ledger
        self.rewards = rewards
        self.chief = chief

    async def history(
        self, channel_id: str, page: int, page_size: int, added_only: bool
    ) -> list[dict]:
        records = await self.ledger.paginate(channel_id, page, page_size, added_only)
        return [asdict(r) for r in records]

    async def get_reward(self, channel_id: str, reward_type: RewardType) -> dict:
        """Stored reward with decoded slots; slots is None when unset or invalid."""
        reward = await self.rewards.get_reward(channel_id, reward_type)
        if reward is None:
            reward = ChannelPointReward(owner_twitch_id=channel_id, type=reward_type)
        return self._to_dict(reward)

    async def save_reward(
        self,
        channel_id: str,
        reward_type: RewardType,
        *,
        reward_id: str,
        title: str,
        cost: int,
        enabled: bool,
        slots: int,
    ) -> dict:
        """Validates *slots* (ValueError on bad input) and upserts the reward."""
        options = _OPTION_TYPES[reward_type](slots=slots)
        reward = await self.rewards.save_reward(
            ChannelPointReward(
                owner_twitch_id=channel_id,
                type=reward_type,
                reward_id=reward_id,
                title=title,
                cost=cost,
                enabled=enabled,
                additional_options=encode_options(options),
            )
        )
        logger.info(f"Channel {channel_id} saved {reward_type.value} reward: {slots} slot(s)")
        return self._to_dict(reward)

    async def remove_emote(self, channel_id: str, reward_type: RewardType, emote_id: str) -> bool:
        return await self.chief.remove_emote(channel_id, reward_type, emote_id)

    async def active_emotes(self, channel_id: str, reward_type: RewardType) -> list[str]:
        return await self.ledger.active_emote_ids(channel_id, reward_type)

    @staticmethod
    def _to_dict(reward: ChannelPointReward) -> dict:
        options = decode_options(reward.type, reward.additional_options)
        d = asdict(reward)
        d.pop("additional_options")
        d["slots"] = options.slots if options else None
        return d
