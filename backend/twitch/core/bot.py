"""Twitch bot: lifecycle, token storage and channel-point subscriptions."""

from __future__ import annotations

import asyncio
import logging

import asyncpg
import twitchio
from twitchio import eventsub
from twitchio.ext import commands

from shared.emotechief.config_store import USER_CONFIG_NAMESPACE
from shared.emotechief.errors import SubscriptionError
from shared.repositories.key_value import KeyValueRepository
from shared.repositories.token import TokenRepository
from twitch.core.config import COMPONENTS_DIR
from twitch.core.subscriptions import get_channel_subscriptions

LOGGER: logging.Logger = logging.getLogger("Bot")


class Bot(commands.AutoBot):
    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        bot_id: str,
        owner_id: str,
        conduit_id: str | None,
        token_database: asyncpg.Pool,
        subs: list[eventsub.SubscriptionPayload] | None = None,
    ) -> None:
        self.token_database = token_database
        self._subscribed_channels: set[str] = set()
        self._subscription_ids: dict[str, list[str]] = {}
        self._bot_id = bot_id

        self.tokens = TokenRepository(token_database)
        self.key_values = KeyValueRepository(token_database)

        init_kwargs: dict = dict(
            client_id=client_id,
            client_secret=client_secret,
            bot_id=bot_id,
            owner_id=owner_id,
            prefix="!",
            subscriptions=subs or [],
            force_subscribe=True,
        )
        if conduit_id:
            init_kwargs["conduit_id"] = conduit_id

        super().__init__(**init_kwargs)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    async def setup_hook(self) -> None:
        if COMPONENTS_DIR.exists():
            for file in COMPONENTS_DIR.glob("*.py"):
                if file.stem == "__init__":
                    continue
                module_name = f"twitch.components.{file.stem}"
                try:
                    await self.load_module(module_name)
                except Exception as e:
                    LOGGER.exception(f"Failed to load component {module_name}: {e}")

        asyncio.create_task(self._subscribe_initial_channels())
        asyncio.create_task(self._pool_heartbeat_loop())

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def event_ready(self) -> None:
        LOGGER.info("Successfully logged in as: %s", self.bot_id)

    async def event_eventsub_ready(self) -> None:
        LOGGER.info("EventSub is ready to receive notifications")

    async def event_eventsub_error(self, error: Exception) -> None:
        LOGGER.error(f"EventSub error: {error}")

    async def event_oauth_authorized(
        self, payload: twitchio.authentication.UserTokenPayload
    ) -> None:
        await self.add_token(payload.access_token, payload.refresh_token)

        if not payload.user_id:
            return

        if payload.user_id == self.bot_id:
            LOGGER.info("Bot account authorized")
            return

        LOGGER.info(f"Channel authorized: {payload.user_id}")
        await self.subscribe_channel_events(payload.user_id)

    # ------------------------------------------------------------------
    # Token management
    # ------------------------------------------------------------------

    async def add_token(
        self, token: str, refresh: str
    ) -> twitchio.authentication.ValidateTokenPayload:
        resp: twitchio.authentication.ValidateTokenPayload = await super().add_token(token, refresh)

        if resp.user_id:
            for attempt in range(1, 4):
                try:
                    await self.tokens.upsert_token(resp.user_id, token, refresh)
                    break
                except Exception as e:
                    if attempt < 3:
                        LOGGER.warning(f"save_token attempt {attempt}/3 failed: {e}")
                        await asyncio.sleep(2)
                    else:
                        LOGGER.error(f"save_token failed after 3 attempts: {e}")

        login = resp.login or "unknown"
        LOGGER.info(f"Added token to database: {login} ({resp.user_id})")
        return resp

    async def load_tokens(self, path: str | None = None) -> None:
        tokens = await self.tokens.list_tokens()

        for tok in tokens:
            try:
                await self.add_token(tok.token, tok.refresh)
            except twitchio.exceptions.InvalidTokenException as e:
                LOGGER.warning(
                    f"Invalid token for user_id {tok.user_id}, skipping. "
                    f"User needs to re-authenticate: {e}"
                )

    # ------------------------------------------------------------------
    # Channel-point subscriptions
    # ------------------------------------------------------------------

    async def _subscribe(self, broadcaster_user_id: str) -> None:
        """Subscribe the channel's events; raises SubscriptionError on real failures."""
        if broadcaster_user_id in self._subscribed_channels:
            LOGGER.debug(f"Already subscribed: {broadcaster_user_id}")
            return

        subs = get_channel_subscriptions(broadcaster_user_id)
        try:
            resp = await self.multi_subscribe(subs)
        except Exception as e:
            raise SubscriptionError(f"subscribe failed for {broadcaster_user_id}: {e}") from e

        if resp.errors:
            non_conflict = [
                e for e in resp.errors if "409" not in str(e) and "already exists" not in str(e)
            ]
            if non_conflict:
                raise SubscriptionError(
                    f"subscribe failed for {broadcaster_user_id}: {non_conflict}"
                )

        subscription_ids: list[str] = []
        for success_item in resp.success:
            sub_id = success_item.response.get("id")
            if sub_id and isinstance(sub_id, str):
                subscription_ids.append(sub_id)

        if subscription_ids:
            self._subscription_ids[broadcaster_user_id] = subscription_ids

        self._subscribed_channels.add(broadcaster_user_id)
        LOGGER.info(f"Subscribed to channel points for: {broadcaster_user_id}")

    async def subscribe_channel_events(self, broadcaster_user_id: str) -> None:
        try:
            await self._subscribe(broadcaster_user_id)
        except SubscriptionError as e:
            LOGGER.exception(f"Failed to subscribe channel {broadcaster_user_id}: {e}")

    async def subscribe_channel_points(self, user_id: str) -> None:
        await self._subscribe(user_id)

    async def unsubscribe_channel_points(self, user_id: str) -> None:
        """Delete the subscriptions this process created; nothing tracked is a success."""
        failed: list[str] = []
        for sub_id in self._subscription_ids.pop(user_id, []):
            try:
                await self.delete_eventsub_subscription(sub_id)
                LOGGER.debug(f"Deleted subscription {sub_id} for channel {user_id}")
            except Exception as e:
                LOGGER.warning(f"Failed to delete subscription {sub_id}: {e}")
                failed.append(sub_id)

        if failed:
            self._subscription_ids[user_id] = failed
            raise SubscriptionError(f"could not delete subscriptions {failed} for {user_id}")

        self._subscribed_channels.discard(user_id)
        LOGGER.info(f"Unsubscribed from channel points for: {user_id}")

    async def _subscribe_initial_channels(self) -> None:
        """Subscribe every channel that has a stored emote config."""
        try:
            await asyncio.sleep(2)

            channel_ids = await self.key_values.hkeys(USER_CONFIG_NAMESPACE)
            LOGGER.info(f"Subscribing to {len(channel_ids)} configured channels...")

            for channel_id in channel_ids:
                if channel_id == self._bot_id:
                    continue
                await self.subscribe_channel_events(channel_id)

            LOGGER.info("Initial channel subscription complete")
        except Exception as e:
            LOGGER.exception(f"Error subscribing to initial channels: {e}")

    async def _pool_heartbeat_loop(self) -> None:
        """Periodically ping the DB pool to keep the idle connection alive.

        heartbeat(25s) < max_inactive(30s). With min_size=1 the heartbeat
        covers the single idle connection.
        """
        while True:
            await asyncio.sleep(25)
            try:
                async with self.token_database.acquire(timeout=10.0) as conn:
                    await conn.fetchval("SELECT 1")
                LOGGER.debug("Pool heartbeat OK")
            except asyncio.CancelledError:
                break
            except Exception as e:
                LOGGER.warning(f"Pool heartbeat failed: {type(e).__name__}: {e}")
