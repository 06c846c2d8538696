"""Data model for the emote_adds table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class RewardType(StrEnum):
    """Emote provider a reward operates on."""

    BTTV = "bttv"
    SEVENTV = "seventv"


class EmoteChangeType(StrEnum):
    """What happened to the emote in a ledger entry."""

    ADD = "add"
    REMOVE = "remove"


@dataclass(frozen=True)
class EmoteAdd:
    """Append-only emote history record."""

    id: int
    channel_twitch_id: str
    type: RewardType
    change_type: EmoteChangeType
    emote_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
