"""Twitch Helix client used by the API.

Broadcaster login (OAuth code exchange), user lookups with the app token,
and channel-point EventSub subscriptions delivered through a conduit.
"""

import asyncio
import logging
import time
from urllib.parse import quote

import httpx

from shared.emotechief.errors import SubscriptionError

logger = logging.getLogger(__name__)

HELIX_BASE = "https://api.twitch.tv/helix"
OAUTH_BASE = "https://id.twitch.tv/oauth2"

REDEMPTION_ADD_TYPE = "channel.channel_points_custom_reward_redemption.add"


class TwitchAPIClient:
    """Client for interacting with Twitch API.

    Manages a shared httpx client for connection reuse and caches
    the app access token to avoid redundant token requests.
    """

    BROADCASTER_SCOPES = [
        "channel:bot",
        "channel:read:redemptions",
        "channel:manage:redemptions",
    ]

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        conduit_id: str = "",
        api_url: str = "http://localhost:8000",
        *,
        http: httpx.AsyncClient | None = None,
    ):
        if not client_id or not client_secret:
            raise ValueError("Twitch client_id and client_secret are required")

        self.client_id = client_id
        self.client_secret = client_secret
        self.conduit_id = conduit_id
        self.api_url = api_url

        self._http = http or httpx.AsyncClient(timeout=10.0)

        self._app_token: str | None = None
        self._app_token_expires_at: float = 0.0
        self._app_token_lock = asyncio.Lock()

    async def close(self) -> None:
        """Close the shared HTTP client. Call on app shutdown."""
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _app_headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Client-Id": self.client_id}

    async def _ensure_app_token(self) -> str | None:
        """Return a cached app access token, refreshing only when expired."""
        now = time.monotonic()
        if self._app_token and now < self._app_token_expires_at:
            return self._app_token

        async with self._app_token_lock:
            now = time.monotonic()
            if self._app_token and now < self._app_token_expires_at:
                return self._app_token

            try:
                response = await self._http.post(
                    f"{OAUTH_BASE}/token",
                    data={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "grant_type": "client_credentials",
                    },
                )
                if response.status_code != 200:
                    logger.error(f"Failed to get app token: {response.status_code}")
                    return None

                data = response.json()
                self._app_token = data.get("access_token")
                # Refresh 5 min early
                expires_in = data.get("expires_in", 0)
                self._app_token_expires_at = now + max(expires_in - 300, 0)
                return self._app_token

            except Exception as e:
                logger.exception(f"Error getting app access token: {e}")
                return None

    async def _helix(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        json: dict | None = None,
    ) -> httpx.Response:
        """Helix request with the app token. Transport errors propagate."""
        token = await self._ensure_app_token()
        if not token:
            raise httpx.HTTPError("no app access token")
        return await self._http.request(
            method,
            f"{HELIX_BASE}/{path}",
            params=params,
            json=json,
            headers=self._app_headers(token),
        )

    # ------------------------------------------------------------------
    # OAuth (broadcaster login)
    # ------------------------------------------------------------------

    def generate_oauth_url(self) -> str:
        """Generate Twitch OAuth authorization URL."""
        redirect_uri = f"{self.api_url}/api/auth/twitch/callback"
        scope_string = "+".join(s.replace(":", "%3A") for s in self.BROADCASTER_SCOPES)
        encoded_redirect_uri = quote(redirect_uri, safe="")

        return (
            f"{OAUTH_BASE}/authorize"
            f"?client_id={self.client_id}"
            f"&redirect_uri={encoded_redirect_uri}"
            f"&response_type=code"
            f"&scope={scope_string}"
        )

    async def exchange_code_for_token(
        self, code: str
    ) -> tuple[bool, str | None, dict[str, str] | None]:
        """Exchange OAuth code for access token.

        Returns:
            Tuple of (success, error_message, token_data)
            token_data contains: access_token, refresh_token, user_id, login
        """
        try:
            token_response = await self._http.post(
                f"{OAUTH_BASE}/token",
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": f"{self.api_url}/api/auth/twitch/callback",
                },
            )

            if token_response.status_code != 200:
                logger.error(f"Failed to exchange code: {token_response.status_code}")
                logger.error(f"Response: {token_response.text}")
                return False, "token_exchange_failed", None

            token_data = token_response.json()
            access_token = token_data.get("access_token")
            if not access_token:
                logger.error("No access_token in response")
                return False, "no_access_token", None

            response = await self._http.get(
                f"{HELIX_BASE}/users", headers=self._app_headers(access_token)
            )
            users = response.json().get("data", []) if response.status_code == 200 else []
            if not users:
                return False, "user_fetch_failed", None

            return (
                True,
                None,
                {
                    "access_token": access_token,
                    "refresh_token": token_data.get("refresh_token") or "",
                    "user_id": users[0]["id"],
                    "login": users[0]["login"],
                },
            )

        except httpx.TimeoutException:
            logger.error("Timeout while exchanging code for token")
            return False, "timeout", None
        except Exception as e:
            logger.exception(f"Unexpected error exchanging code: {e}")
            return False, "exchange_failed", None

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user_by_login(self, login: str) -> dict[str, str] | None:
        """Look up a Twitch user by login name."""
        return await self._fetch_user(params={"login": login.lower()})

    async def _fetch_user(self, *, params: dict[str, str]) -> dict[str, str] | None:
        try:
            response = await self._helix("GET", "users", params=params)
            if response.status_code != 200:
                logger.error(f"Failed to fetch user: params={params}")
                return None

            users = response.json().get("data", [])
            if not users:
                logger.warning(f"No user found for params: {params}")
                return None

            user = users[0]
            return {
                "id": user.get("id"),
                "name": user.get("login"),
                "display_name": user.get("display_name"),
            }

        except Exception as e:
            logger.exception(f"Error fetching user info: {e}")
            return None

    # ------------------------------------------------------------------
    # EventSub (channel points)
    # ------------------------------------------------------------------

    async def subscribe_channel_points(self, user_id: str) -> None:
        """Route the user's redemptions to the bot's conduit.

        An existing subscription (409) counts as success.
        """
        if not self.conduit_id:
            raise SubscriptionError("no EventSub conduit configured")

        try:
            response = await self._helix(
                "POST",
                "eventsub/subscriptions",
                json={
                    "type": REDEMPTION_ADD_TYPE,
                    "version": "1",
                    "condition": {"broadcaster_user_id": user_id},
                    "transport": {"method": "conduit", "conduit_id": self.conduit_id},
                },
            )
        except httpx.HTTPError as e:
            raise SubscriptionError(f"subscribe request failed for {user_id}: {e}") from e

        if response.status_code == 409:
            logger.debug(f"Channel points already subscribed for {user_id}")
            return
        if response.status_code not in (200, 202):
            raise SubscriptionError(
                f"subscribe failed for {user_id}: HTTP {response.status_code} {response.text}"
            )
        logger.info(f"Subscribed channel points for {user_id}")

    async def unsubscribe_channel_points(self, user_id: str) -> None:
        """Delete every redemption subscription for the user.

        Finding none is a success, so repeating the call is safe.
        """
        try:
            sub_ids = await self._list_redemption_subscriptions(user_id)
            for sub_id in sub_ids:
                response = await self._helix(
                    "DELETE", "eventsub/subscriptions", params={"id": sub_id}
                )
                if response.status_code not in (204, 404):
                    raise SubscriptionError(
                        f"delete subscription {sub_id} failed: HTTP {response.status_code}"
                    )
        except httpx.HTTPError as e:
            raise SubscriptionError(f"unsubscribe request failed for {user_id}: {e}") from e

        logger.info(f"Unsubscribed channel points for {user_id} ({len(sub_ids)} removed)")

    async def _list_redemption_subscriptions(self, user_id: str) -> list[str]:
        sub_ids: list[str] = []
        cursor: str | None = None
        while True:
            params = {"user_id": user_id}
            if cursor:
                params["after"] = cursor
            response = await self._helix("GET", "eventsub/subscriptions", params=params)
            if response.status_code != 200:
                raise SubscriptionError(
                    f"list subscriptions failed for {user_id}: HTTP {response.status_code}"
                )
            body = response.json()
            sub_ids.extend(
                s["id"] for s in body.get("data", []) if s.get("type") == REDEMPTION_ADD_TYPE
            )
            cursor = (body.get("pagination") or {}).get("cursor")
            if not cursor:
                return sub_ids
