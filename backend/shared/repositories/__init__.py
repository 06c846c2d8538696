"""Shared repository layer for all Emotechief backend services."""

from .channel_point_reward import ChannelPointRewardRepository
from .emote_history import EmoteHistoryRepository
from .key_value import KeyValueRepository
from .token import TokenRepository

__all__ = [
    "ChannelPointRewardRepository",
    "EmoteHistoryRepository",
    "KeyValueRepository",
    "TokenRepository",
]
