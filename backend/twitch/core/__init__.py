"""Bot runtime: settings, logging, the AutoBot and its EventSub subscriptions."""

from .config import BOT_SCOPES, BROADCASTER_SCOPES, COMPONENTS_DIR, get_settings
from .logging import setup_logging
from .subscriptions import get_channel_subscriptions

__all__ = [
    "BOT_SCOPES",
    "BROADCASTER_SCOPES",
    "COMPONENTS_DIR",
    "get_channel_subscriptions",
    "get_settings",
    "setup_logging",
]
