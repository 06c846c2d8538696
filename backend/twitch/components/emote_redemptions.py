import logging
from typing import TYPE_CHECKING

import twitchio
from twitchio.ext import commands

from shared.emotechief.config_store import UserConfigStore
from shared.emotechief.orchestrator import EmoteChief, RedemptionState
from shared.emotechief.providers import build_providers
from shared.models.redemption import RedemptionEvent
from shared.repositories.channel_point_reward import ChannelPointRewardRepository
from shared.repositories.emote_history import EmoteHistoryRepository
from shared.repositories.key_value import KeyValueRepository
from twitch.core.config import get_settings

if TYPE_CHECKING:
    from twitch.core.bot import Bot


LOGGER: logging.Logger = logging.getLogger("EmoteChief")


def to_redemption_event(payload: twitchio.ChannelPointsRedemptionAdd) -> RedemptionEvent:
    return RedemptionEvent(
        redemption_id=payload.id,
        reward_id=payload.reward.id,
        reward_title=payload.reward.title,
        broadcaster_id=payload.broadcaster.id,
        broadcaster_login=payload.broadcaster.name or "",
        user_id=payload.user.id,
        user_login=payload.user.name or "",
        user_input=payload.user_input or "",
        redeemed_at=payload.redeemed_at,
    )


class PayloadStatusClient:
    """Fulfils or refunds through the EventSub payload of a redemption in flight.

    Payloads are held only while their redemption is being processed.
    """

    def __init__(self) -> None:
        self._pending: dict[str, twitchio.ChannelPointsRedemptionAdd] = {}

    def hold(self, payload: twitchio.ChannelPointsRedemptionAdd) -> None:
        self._pending[payload.id] = payload

    def release(self, redemption_id: str) -> None:
        self._pending.pop(redemption_id, None)

    async def fulfill(self, event: RedemptionEvent) -> None:
        await self._pending[event.redemption_id].fulfill(token_for=event.broadcaster_id)

    async def refund(self, event: RedemptionEvent) -> None:
        await self._pending[event.redemption_id].refund(token_for=event.broadcaster_id)


class BotChat:
    """Sends chat messages as the bot account."""

    def __init__(self, bot: "Bot") -> None:
        self.bot = bot

    async def say(self, channel_id: str, message: str) -> None:
        broadcaster = self.bot.create_partialuser(user_id=channel_id)
        await broadcaster.send_message(
            message=message, sender=self.bot.bot_id, token_for=self.bot.bot_id
        )


class EmoteRedemptionsComponent(commands.Component):
    """Turns channel-point redemptions into 7TV / BetterTTV emote adds.

    Every redemption ends either fulfilled with the emote added and recorded,
    or refunded with nothing recorded.
    """

    def __init__(self, bot: "Bot") -> None:
        self.bot = bot
        settings = get_settings()
        pool = bot.token_database

        self.status = PayloadStatusClient()
        self.providers = build_providers(
            seventv_token=settings.seventv_token, bttv_token=settings.bttv_token
        )
        self.chief = EmoteChief(
            config_store=UserConfigStore(
                KeyValueRepository(pool), bot, timeout=settings.operation_timeout
            ),
            rewards=ChannelPointRewardRepository(pool),
            ledger=EmoteHistoryRepository(pool),
            providers=self.providers,
            status=self.status,
            chat=BotChat(bot),
            timeout=settings.operation_timeout,
        )

    async def component_teardown(self) -> None:
        for provider in self.providers.values():
            await provider.close()

    @commands.Component.listener()
    async def event_custom_redemption_add(
        self,
        payload: twitchio.ChannelPointsRedemptionAdd,
    ) -> None:
        event = to_redemption_event(payload)
        LOGGER.debug(
            f"{event.user_login} redeemed '{event.reward_title}' in {event.broadcaster_login}"
        )

        self.status.hold(payload)
        try:
            result = await self.chief.process_redemption(event)
        finally:
            self.status.release(event.redemption_id)

        if result.state not in (RedemptionState.IGNORED, RedemptionState.DUPLICATE):
            LOGGER.info(
                f"Redemption {event.redemption_id} in {event.broadcaster_login}: "
                f"{result.state.value}" + (f" ({result.reason})" if result.reason else "")
            )


async def setup(bot: "Bot") -> None:
    """Entry point for the module."""
    await bot.add_component(EmoteRedemptionsComponent(bot))


async def teardown(bot: "Bot") -> None:
    """Optional teardown coroutine for cleanup."""
    ...
