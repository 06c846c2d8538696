"""Per-user configuration store with a server-controlled ``Protected`` subtree."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import Protocol, TypeVar

from pydantic import ValidationError

from shared.models.user_config import Protected, UserConfig, create_default_user_config
from shared.repositories.key_value import KeyValueRepository

from .errors import ConfigCorruptedError, ConfigStorageError, SubscriptionError

logger = logging.getLogger(__name__)

T = TypeVar("T")

USER_CONFIG_NAMESPACE = "userConfig"


class ChannelSubscriber(Protocol):
    """Creates and tears down channel-point event subscriptions for a user."""

    async def subscribe_channel_points(self, user_id: str) -> None: ...

    async def unsubscribe_channel_points(self, user_id: str) -> None: ...


class UserConfigStore:
    """Get / replace / delete user configs.

    Writes are last-write-wins per user. A client always submits the whole
    document, so two overlapping GET-then-POST round trips from the same
    user can drop the earlier change.
    """

    def __init__(
        self,
        kv: KeyValueRepository,
        subscriber: ChannelSubscriber,
        *,
        timeout: float = 5.0,
    ) -> None:
        self.kv = kv
        self.subscriber = subscriber
        self.timeout = timeout

    async def _call(self, op: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except TimeoutError as e:
            raise ConfigStorageError(f"{op} timed out after {self.timeout}s") from e
        except Exception as e:
            raise ConfigStorageError(f"{op} failed: {type(e).__name__}: {e}") from e

    async def _load(self, user_id: str) -> UserConfig | None:
        raw = await self._call("read config", self.kv.hget(USER_CONFIG_NAMESPACE, user_id))
        if not raw:
            return None
        try:
            return UserConfig.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Can't decode saved config for {user_id}: {e.error_count()} error(s)")
            raise ConfigCorruptedError(user_id, str(e)) from None

    async def get(self, user_id: str) -> UserConfig:
        """Stored config, or the default document when none was ever saved."""
        config = await self._load(user_id)
        if config is None:
            return create_default_user_config()
        return config

    async def replace(self, user_id: str, incoming: UserConfig) -> UserConfig:
        """Persist *incoming* with ``Protected`` carried over from the stored copy.

        Whatever ``Protected`` the caller sent is discarded. The first write
        for a user also subscribes their channel-point events; the subscribe
        runs before the write, so a failed subscribe leaves nothing stored
        and the next attempt is still treated as a creation.
        """
        existing = await self._load(user_id)
        protected = existing.protected.model_copy(deep=True) if existing else Protected()

        to_save = UserConfig(
            redemptions=incoming.redemptions.model_copy(deep=True),
            editors=list(incoming.editors),
            protected=protected,
        )

        if existing is None:
            await self._subscribe(user_id)

        await self._call("write config", self.kv.hset(USER_CONFIG_NAMESPACE, user_id, to_save.to_json()))
        if existing is None:
            logger.info(f"Created new config for: {user_id}")
        return to_save

    async def delete(self, user_id: str) -> None:
        """Remove the config, then unsubscribe. Either failure propagates.

        If unsubscribing fails the document is already gone; unsubscribing
        is idempotent, so repeating the delete closes the gap.
        """
        removed = await self._call("delete config", self.kv.hdel(USER_CONFIG_NAMESPACE, user_id))
        logger.info(f"Deleted config for {user_id} (existed={bool(removed)})")

        try:
            await asyncio.wait_for(
                self.subscriber.unsubscribe_channel_points(user_id), timeout=self.timeout
            )
        except SubscriptionError:
            raise
        except Exception as e:
            raise SubscriptionError(f"unsubscribe failed for {user_id}: {e}") from e

    async def set_editor_for(self, user_id: str, channel: str, present: bool) -> UserConfig | None:
        """Add or remove *channel* in the stored ``Protected.EditorFor`` of *user_id*.

        The only writer of ``Protected``. Users without a stored config are
        left alone; their ``EditorFor`` starts empty when they first save.
        """
        existing = await self._load(user_id)
        if existing is None:
            logger.debug(f"No config for {user_id}, skipping EditorFor update")
            return None

        editor_for = [c for c in existing.protected.editor_for if c.lower() != channel.lower()]
        if present:
            editor_for.append(channel)
        if editor_for == existing.protected.editor_for:
            return existing

        updated = existing.model_copy(update={"protected": Protected(editor_for=editor_for)})
        await self._call("write config", self.kv.hset(USER_CONFIG_NAMESPACE, user_id, updated.to_json()))
        return updated

    async def _subscribe(self, user_id: str) -> None:
        try:
            await asyncio.wait_for(
                self.subscriber.subscribe_channel_points(user_id), timeout=self.timeout
            )
        except SubscriptionError:
            raise
        except Exception as e:
            raise SubscriptionError(f"subscribe failed for {user_id}: {e}") from e
