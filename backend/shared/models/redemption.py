"""Inbound channel-point redemption event."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class RedemptionEvent:
    """Platform-agnostic view of a channel-point redemption.

    Built from the EventSub payload by the bot; the core never persists it.
    """

    redemption_id: str
    reward_id: str
    reward_title: str
    broadcaster_id: str
    broadcaster_login: str
    user_id: str
    user_login: str
    user_input: str = ""
    redeemed_at: datetime | None = None
