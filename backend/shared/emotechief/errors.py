"""Exceptions raised by the emote lifecycle core.

Parse misses and failed verifications are ordinary results, not errors;
everything here means an operation could not be completed.
"""

from __future__ import annotations


class EmotechiefError(Exception):
    """Base class for emote lifecycle failures."""


class ConfigCorruptedError(EmotechiefError):
    """A stored user config exists but cannot be decoded."""

    def __init__(self, user_id: str, reason: str) -> None:
        super().__init__(f"stored config for {user_id} is corrupted: {reason}")
        self.user_id = user_id
        self.reason = reason


class ConfigStorageError(EmotechiefError):
    """Reading or writing the config store failed or timed out."""


class SubscriptionError(EmotechiefError):
    """Subscribing or unsubscribing channel-point events failed."""


class EmoteProviderError(EmotechiefError):
    """An emote provider rejected or failed an add/remove."""

    def __init__(self, provider: str, message: str, *, status: int | None = None) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status = status
