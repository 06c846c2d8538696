"""Typed per-reward-type options decoded from the stored JSON blob."""

from __future__ import annotations

import logging
from typing import TypeAlias

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError

from shared.models.emote_history import RewardType

logger = logging.getLogger(__name__)


class _SlotOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    slots: StrictInt = Field(alias="Slots", gt=0)


class BttvAdditionalOptions(_SlotOptions):
    reward_type: RewardType = RewardType.BTTV


class SeventvAdditionalOptions(_SlotOptions):
    reward_type: RewardType = RewardType.SEVENTV


AdditionalOptions: TypeAlias = BttvAdditionalOptions | SeventvAdditionalOptions

_VARIANTS: dict[RewardType, type[_SlotOptions]] = {
    RewardType.BTTV: BttvAdditionalOptions,
    RewardType.SEVENTV: SeventvAdditionalOptions,
}


def decode_options(reward_type: RewardType | str, raw: str | None) -> AdditionalOptions | None:
    """Decode *raw* into the variant for *reward_type*.

    Returns ``None`` for an unknown type, empty blob or anything that fails
    validation. ``None`` means "deny".
    """
    try:
        variant = _VARIANTS[RewardType(reward_type)]
    except (ValueError, KeyError):
        logger.warning(f"No options variant for reward type {reward_type!r}")
        return None

    if not raw:
        return None

    try:
        return variant.model_validate_json(raw)  # type: ignore[return-value]
    except ValidationError as e:
        logger.warning(f"Invalid {reward_type} options: {e.error_count()} error(s)")
        return None


def encode_options(options: AdditionalOptions) -> str:
    return options.model_dump_json(by_alias=True, exclude={"reward_type"})
