"""Extract provider emote ids from free-form redemption messages."""

from __future__ import annotations

import re

from shared.models.emote_history import RewardType

# Provider ids are Mongo ObjectIds: 24 hex characters.
_EMOTE_ID_RE = re.compile(r"[0-9a-fA-F]{24}")

# First URL occurrence per provider; the segment is validated separately so
# a malformed first link is a miss rather than falling through to a later one.
_URL_PATTERNS: dict[RewardType, re.Pattern[str]] = {
    RewardType.SEVENTV: re.compile(
        r"https?://(?:www\.|old\.)?7tv\.app/emotes/(\w*)", re.IGNORECASE
    ),
    RewardType.BTTV: re.compile(
        r"https?://(?:www\.)?betterttv\.com/emotes/(\w*)", re.IGNORECASE
    ),
}


def extract_emote_id(message: str, provider: RewardType | str) -> tuple[str, bool]:
    """Return ``(emote_id, found)`` for the first *provider* emote link in *message*.

    Never raises and never touches the network; whether the emote exists is
    the provider's business.
    """
    try:
        pattern = _URL_PATTERNS[RewardType(provider)]
    except (ValueError, KeyError):
        return "", False

    match = pattern.search(message or "")
    if match is None:
        return "", False

    segment = match.group(1)
    if not _EMOTE_ID_RE.fullmatch(segment):
        return "", False
    return segment, True


def get_seventv_emote_id(message: str) -> str:
    emote_id, _ = extract_emote_id(message, RewardType.SEVENTV)
    return emote_id


def get_bttv_emote_id(message: str) -> str:
    emote_id, _ = extract_emote_id(message, RewardType.BTTV)
    return emote_id
