"""Data model for the tokens table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Token:
    """Broadcaster OAuth token, written by the auth flow and loaded by the bot."""

    user_id: str
    token: str
    refresh: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
