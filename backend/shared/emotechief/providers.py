"""Emote provider clients (7TV, BetterTTV).

Both act on the channel's emote set with a token belonging to an account
the broadcaster made an editor. Whether an emote exists or may be shared is
left to the provider; any non-success answer becomes ``EmoteProviderError``.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from shared.models.emote_history import RewardType

from .errors import EmoteProviderError

logger = logging.getLogger(__name__)

SEVENTV_API = "https://7tv.io/v3"
BTTV_API = "https://api.betterttv.net/3"

_SEVENTV_CHANGE_EMOTE = """
mutation ChangeEmoteInSet($id: ObjectID!, $action: ListItemAction!, $emote_id: ObjectID!) {
  emoteSet(id: $id) {
    id
    emotes(id: $emote_id, action: $action) {
      id
      name
    }
  }
}
"""


class EmoteProvider(Protocol):
    reward_type: RewardType

    async def add_emote(self, channel_twitch_id: str, emote_id: str) -> None: ...

    async def remove_emote(self, channel_twitch_id: str, emote_id: str) -> None: ...


class _ProviderClient:
    reward_type: RewardType
    name: str

    def __init__(self, token: str, *, http: httpx.AsyncClient | None = None) -> None:
        self.token = token
        self._http = http or httpx.AsyncClient(timeout=10.0)

    async def close(self) -> None:
        await self._http.aclose()

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    def _raise_for(self, response: httpx.Response, action: str) -> None:
        if response.is_success:
            return
        try:
            detail = response.json().get("message") or response.text
        except ValueError:
            detail = response.text
        raise EmoteProviderError(
            self.name, f"{action} failed (HTTP {response.status_code}): {detail}",
            status=response.status_code,
        )

    async def _request(self, method: str, url: str, action: str, **kwargs) -> httpx.Response:
        try:
            response = await self._http.request(method, url, headers=self._headers(), **kwargs)
        except httpx.TimeoutException as e:
            raise EmoteProviderError(self.name, f"{action} timed out") from e
        except httpx.HTTPError as e:
            raise EmoteProviderError(self.name, f"{action} failed: {e}") from e
        self._raise_for(response, action)
        return response


class SevenTvClient(_ProviderClient):
    reward_type = RewardType.SEVENTV
    name = "7tv"

    async def _emote_set_id(self, channel_twitch_id: str) -> str:
        response = await self._request(
            "GET", f"{SEVENTV_API}/users/twitch/{channel_twitch_id}", "emote set lookup"
        )
        emote_set = response.json().get("emote_set") or {}
        set_id = emote_set.get("id")
        if not set_id:
            raise EmoteProviderError(self.name, f"no active emote set for {channel_twitch_id}")
        return set_id

    async def _change(self, channel_twitch_id: str, emote_id: str, action: str) -> None:
        set_id = await self._emote_set_id(channel_twitch_id)
        response = await self._request(
            "POST",
            f"{SEVENTV_API}/gql",
            f"emote {action.lower()}",
            json={
                "operationName": "ChangeEmoteInSet",
                "query": _SEVENTV_CHANGE_EMOTE,
                "variables": {"id": set_id, "action": action, "emote_id": emote_id},
            },
        )
        errors = response.json().get("errors")
        if errors:
            raise EmoteProviderError(self.name, errors[0].get("message", "unknown error"))
        logger.info(f"[7TV] {action} {emote_id} in set {set_id} ({channel_twitch_id})")

    async def add_emote(self, channel_twitch_id: str, emote_id: str) -> None:
        await self._change(channel_twitch_id, emote_id, "ADD")

    async def remove_emote(self, channel_twitch_id: str, emote_id: str) -> None:
        await self._change(channel_twitch_id, emote_id, "REMOVE")


class BttvClient(_ProviderClient):
    reward_type = RewardType.BTTV
    name = "bttv"

    async def _bttv_user_id(self, channel_twitch_id: str) -> str:
        response = await self._request(
            "GET", f"{BTTV_API}/cached/users/twitch/{channel_twitch_id}", "user lookup"
        )
        user_id = response.json().get("id")
        if not user_id:
            raise EmoteProviderError(self.name, f"no BetterTTV user for {channel_twitch_id}")
        return user_id

    async def add_emote(self, channel_twitch_id: str, emote_id: str) -> None:
        user_id = await self._bttv_user_id(channel_twitch_id)
        await self._request("PUT", f"{BTTV_API}/emotes/{emote_id}/shared/{user_id}", "emote add")
        logger.info(f"[BTTV] added {emote_id} ({channel_twitch_id})")

    async def remove_emote(self, channel_twitch_id: str, emote_id: str) -> None:
        user_id = await self._bttv_user_id(channel_twitch_id)
        await self._request(
            "DELETE", f"{BTTV_API}/emotes/{emote_id}/shared/{user_id}", "emote remove"
        )
        logger.info(f"[BTTV] removed {emote_id} ({channel_twitch_id})")


def build_providers(
    *, seventv_token: str = "", bttv_token: str = ""
) -> dict[RewardType, SevenTvClient | BttvClient]:
    """Clients for every provider that has a token; the rest stay unconfigured."""
    providers: dict[RewardType, SevenTvClient | BttvClient] = {}
    if bttv_token:
        providers[RewardType.BTTV] = BttvClient(bttv_token)
    if seventv_token:
        providers[RewardType.SEVENTV] = SevenTvClient(seventv_token)
    if not providers:
        logger.warning("No emote provider tokens configured, every redemption will be refunded")
    return providers
