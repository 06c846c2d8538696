"""User config service: resolves who is being managed and keeps EditorFor in sync."""

import logging
from dataclasses import dataclass

from shared.emotechief.config_store import UserConfigStore
from shared.emotechief.errors import ConfigCorruptedError
from shared.models.user_config import UserConfig

from .twitch_api import TwitchAPIClient

logger = logging.getLogger(__name__)


class NotAnEditorError(PermissionError):
    """Caller asked to manage a channel that does not list them as editor."""


class UnknownChannelError(LookupError):
    pass


@dataclass(frozen=True)
class Caller:
    user_id: str
    login: str


@dataclass(frozen=True)
class ManagedChannel:
    user_id: str
    login: str


class UserConfigService:
    """API-facing user config operations."""

    def __init__(self, store: UserConfigStore, twitch_api: TwitchAPIClient) -> None:
        self.store = store
        self.twitch_api = twitch_api

    async def resolve_channel(self, caller: Caller, managing: str | None) -> ManagedChannel:
        """The caller's own channel, or *managing* if the caller is one of its editors."""
        if not managing or managing.lower() == caller.login.lower():
            return ManagedChannel(caller.user_id, caller.login)

        user = await self.twitch_api.get_user_by_login(managing)
        if not user:
            raise UnknownChannelError(managing)

        config = await self.store.get(user["id"])
        if not config.is_editor(caller.login):
            logger.warning(f"{caller.login} tried to manage {managing} without editor rights")
            raise NotAnEditorError(managing)
        return ManagedChannel(user["id"], user["name"])

    async def get_config(self, caller: Caller, managing: str | None = None) -> UserConfig:
        channel = await self.resolve_channel(caller, managing)
        return await self.store.get(channel.user_id)

    async def save_config(
        self, caller: Caller, incoming: UserConfig, managing: str | None = None
    ) -> UserConfig:
        """Replace the managed channel's config, then update editors' EditorFor."""
        channel = await self.resolve_channel(caller, managing)
        previous = await self.store.get(channel.user_id)
        saved = await self.store.replace(channel.user_id, incoming)

        before = {e.lower() for e in previous.editors}
        after = {e.lower() for e in saved.editors}
        await self._sync_editor_for(channel.login, after - before, present=True)
        await self._sync_editor_for(channel.login, before - after, present=False)
        return saved

    async def delete_config(self, caller: Caller) -> None:
        """Only owners delete; editors never reach this."""
        try:
            editors = {e.lower() for e in (await self.store.get(caller.user_id)).editors}
        except ConfigCorruptedError:
            editors = set()
        await self.store.delete(caller.user_id)
        await self._sync_editor_for(caller.login, editors, present=False)

    async def _sync_editor_for(self, channel_login: str, editors: set[str], present: bool) -> None:
        # Best effort: the owner's save already succeeded.
        for login in sorted(editors):
            try:
                user = await self.twitch_api.get_user_by_login(login)
                if not user:
                    logger.warning(f"Editor {login} of {channel_login} not found on Twitch")
                    continue
                await self.store.set_editor_for(user["id"], channel_login, present)
            except Exception as e:
                logger.error(f"Failed to update EditorFor of {login} for {channel_login}: {e}")
