"""Services layer - Business logic

This module provides service classes for handling business logic.
Services are initialized with their dependencies and accessed through dependency injection.
"""

from .auth_service import AuthService
from .emote_service import EmoteService
from .twitch_api import TwitchAPIClient
from .user_config_service import (
    Caller,
    ManagedChannel,
    NotAnEditorError,
    UnknownChannelError,
    UserConfigService,
)

__all__ = [
    "AuthService",
    "Caller",
    "EmoteService",
    "ManagedChannel",
    "NotAnEditorError",
    "TwitchAPIClient",
    "UnknownChannelError",
    "UserConfigService",
]
