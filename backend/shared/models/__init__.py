"""Shared data models for all Emotechief backend services."""

from .channel_point_reward import ChannelPointReward
from .emote_history import EmoteAdd, EmoteChangeType, RewardType
from .redemption import RedemptionEvent
from .token import Token
from .user_config import (
    Protected,
    Redemption,
    Redemptions,
    UserConfig,
    create_default_user_config,
)

__all__ = [
    "ChannelPointReward",
    "EmoteAdd",
    "EmoteChangeType",
    "Protected",
    "Redemption",
    "RedemptionEvent",
    "Redemptions",
    "RewardType",
    "Token",
    "UserConfig",
    "create_default_user_config",
]
