"""Data model for the channel_point_rewards table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .emote_history import RewardType


@dataclass
class ChannelPointReward:
    """Per-channel reward record.

    ``additional_options`` is the raw JSON blob for the reward type; it is
    decoded on demand by ``shared.emotechief.options``.
    """

    owner_twitch_id: str
    type: RewardType
    reward_id: str = ""
    title: str = ""
    cost: int = 0
    enabled: bool = True
    additional_options: str = "{}"
    created_at: datetime | None = None
    updated_at: datetime | None = None
