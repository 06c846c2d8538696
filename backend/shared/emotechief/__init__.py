"""Redemption verification and emote lifecycle."""

from .config_store import USER_CONFIG_NAMESPACE, ChannelSubscriber, UserConfigStore
from .errors import (
    ConfigCorruptedError,
    ConfigStorageError,
    EmotechiefError,
    EmoteProviderError,
    SubscriptionError,
)
from .options import BttvAdditionalOptions, SeventvAdditionalOptions, decode_options
from .orchestrator import EmoteChief, RedemptionResult, RedemptionState
from .parser import extract_emote_id, get_bttv_emote_id, get_seventv_emote_id
from .providers import BttvClient, EmoteProvider, SevenTvClient, build_providers
from .verifier import verify

__all__ = [
    "USER_CONFIG_NAMESPACE",
    "BttvAdditionalOptions",
    "BttvClient",
    "ChannelSubscriber",
    "ConfigCorruptedError",
    "ConfigStorageError",
    "EmoteChief",
    "EmoteProvider",
    "EmoteProviderError",
    "EmotechiefError",
    "RedemptionResult",
    "RedemptionState",
    "SevenTvClient",
    "SeventvAdditionalOptions",
    "SubscriptionError",
    "UserConfigStore",
    "build_providers",
    "decode_options",
    "extract_emote_id",
    "get_bttv_emote_id",
    "get_seventv_emote_id",
    "verify",
]
