"""Tests for UserConfigService: editor access and EditorFor bookkeeping."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from api.services.user_config_service import (
    Caller,
    NotAnEditorError,
    UnknownChannelError,
    UserConfigService,
)
from shared.emotechief.config_store import USER_CONFIG_NAMESPACE
from shared.emotechief.errors import SubscriptionError
from shared.models.user_config import Protected, UserConfig

OWNER = Caller(user_id="77", login="gempir")
EDITOR = Caller(user_id="88", login="Alice")

USERS = {
    "gempir": {"id": "77", "name": "gempir", "display_name": "gempir"},
    "alice": {"id": "88", "name": "alice", "display_name": "Alice"},
    "bob": {"id": "99", "name": "bob", "display_name": "Bob"},
}


@pytest.fixture
def twitch_api() -> AsyncMock:
    api = AsyncMock()
    api.get_user_by_login.side_effect = lambda login: USERS.get(login.lower())
    return api


@pytest.fixture
def service(config_store, twitch_api) -> UserConfigService:
    return UserConfigService(config_store, twitch_api)


# ── resolve_channel ───────────────────────────────────────────


class TestResolveChannel:
    @pytest.mark.asyncio
    async def test_own_channel_without_managing(self, service, twitch_api):
        channel = await service.resolve_channel(OWNER, None)
        assert channel.user_id == "77"
        twitch_api.get_user_by_login.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_managing_self_is_own_channel(self, service, twitch_api):
        channel = await service.resolve_channel(OWNER, "GEMPIR")
        assert channel.user_id == "77"
        twitch_api.get_user_by_login.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_editor_may_manage(self, service, config_store):
        await config_store.replace("77", UserConfig(editors=["alice"]))

        channel = await service.resolve_channel(EDITOR, "gempir")

        assert channel.user_id == "77"
        assert channel.login == "gempir"

    @pytest.mark.asyncio
    async def test_non_editor_refused(self, service, config_store):
        await config_store.replace("77", UserConfig(editors=["bob"]))
        with pytest.raises(NotAnEditorError):
            await service.resolve_channel(EDITOR, "gempir")

    @pytest.mark.asyncio
    async def test_unknown_login(self, service):
        with pytest.raises(UnknownChannelError):
            await service.resolve_channel(EDITOR, "nobody")


# ── save / delete ─────────────────────────────────────────────


class TestSaveConfig:
    @pytest.mark.asyncio
    async def test_new_editor_gets_editor_for(self, service, config_store):
        await config_store.replace("88", UserConfig())

        await service.save_config(OWNER, UserConfig(editors=["Alice"]))

        alice = await config_store.get("88")
        assert alice.protected.editor_for == ["gempir"]

    @pytest.mark.asyncio
    async def test_dropped_editor_loses_editor_for(self, service, config_store):
        await config_store.replace("88", UserConfig())
        await service.save_config(OWNER, UserConfig(editors=["alice"]))

        await service.save_config(OWNER, UserConfig(editors=[]))

        alice = await config_store.get("88")
        assert alice.protected.editor_for == []

    @pytest.mark.asyncio
    async def test_client_protected_ignored(self, service, config_store):
        saved = await service.save_config(
            OWNER, UserConfig(protected=Protected(editor_for=["someone"]))
        )
        assert saved.protected.editor_for == []

    @pytest.mark.asyncio
    async def test_editor_saves_managed_config(self, service, config_store, subscriber):
        await config_store.replace("77", UserConfig(editors=["alice"]))

        saved = await service.save_config(EDITOR, UserConfig(editors=["alice", "bob"]), "gempir")

        assert saved.editors == ["alice", "bob"]
        assert (await config_store.get("77")).editors == ["alice", "bob"]
        assert subscriber.subscribe_channel_points.await_count == 1

    @pytest.mark.asyncio
    async def test_editor_sync_failure_is_not_fatal(self, service, config_store, twitch_api):
        twitch_api.get_user_by_login.side_effect = RuntimeError("helix down")
        saved = await service.save_config(OWNER, UserConfig(editors=["alice"]))
        assert saved.editors == ["alice"]


class TestDeleteConfig:
    @pytest.mark.asyncio
    async def test_delete_clears_editor_for(self, service, config_store, kv, subscriber):
        await config_store.replace("88", UserConfig())
        await service.save_config(OWNER, UserConfig(editors=["alice"]))

        await service.delete_config(OWNER)

        assert (USER_CONFIG_NAMESPACE, "77") not in kv.data
        assert (await config_store.get("88")).protected.editor_for == []
        subscriber.unsubscribe_channel_points.assert_awaited_once_with("77")

    @pytest.mark.asyncio
    async def test_corrupted_config_still_deleted(self, service, kv):
        kv.data[(USER_CONFIG_NAMESPACE, "77")] = "garbage"
        await service.delete_config(OWNER)
        assert kv.data == {}

    @pytest.mark.asyncio
    async def test_unsubscribe_failure_propagates(self, service, subscriber):
        subscriber.unsubscribe_channel_points.side_effect = SubscriptionError("helix 500")
        with pytest.raises(SubscriptionError):
            await service.delete_config(OWNER)
