"""Fail-closed redemption verification."""

from __future__ import annotations

import logging

from shared.models.channel_point_reward import ChannelPointReward
from shared.models.redemption import RedemptionEvent

from .options import decode_options

logger = logging.getLogger(__name__)


def verify(
    reward: ChannelPointReward | None,
    current_usage: int,
    event: RedemptionEvent | None,
) -> bool:
    """Decide whether *event* may add another emote for *reward*.

    Pure: reads nothing and mutates nothing. Any missing or undecodable
    input yields ``False``; nothing here raises.
    """
    try:
        if reward is None or event is None:
            return False
        if not reward.enabled:
            return False
        if reward.reward_id and event.reward_id and reward.reward_id != event.reward_id:
            logger.debug(
                f"Reward id mismatch for {reward.owner_twitch_id}: "
                f"{reward.reward_id} != {event.reward_id}"
            )
            return False

        options = decode_options(reward.type, reward.additional_options)
        if options is None:
            return False

        return 0 <= current_usage < options.slots
    except Exception as e:
        logger.warning(f"Verification failed closed: {type(e).__name__}: {e}")
        return False
