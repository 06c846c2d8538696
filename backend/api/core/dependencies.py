"""Dependency injection utilities for FastAPI"""

import logging

import asyncpg
from fastapi import Cookie, Depends, HTTPException

from api.core.config import get_settings
from api.core.database import get_database_manager
from api.services import (
    AuthService,
    Caller,
    EmoteService,
    TwitchAPIClient,
    UserConfigService,
)
from shared.cache import AsyncTTLCache
from shared.emotechief.config_store import UserConfigStore
from shared.emotechief.orchestrator import EmoteChief
from shared.emotechief.providers import BttvClient, SevenTvClient, build_providers
from shared.models.emote_history import RewardType
from shared.repositories import (
    ChannelPointRewardRepository,
    EmoteHistoryRepository,
    KeyValueRepository,
)

logger = logging.getLogger(__name__)


# ============================================
# Service Dependencies
# ============================================


def get_auth_service() -> AuthService:
    """Get AuthService instance (dependency injection)"""
    settings = get_settings()
    return AuthService(
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        expire_days=settings.jwt_expire_days,
    )


_twitch_api: TwitchAPIClient | None = None
_providers: dict[RewardType, BttvClient | SevenTvClient] | None = None
_emote_chief: EmoteChief | None = None
_reward_cache: AsyncTTLCache | None = None


def get_twitch_api() -> TwitchAPIClient:
    """Get shared TwitchAPIClient singleton (connection reuse + token cache)."""
    global _twitch_api
    if _twitch_api is None:
        settings = get_settings()
        _twitch_api = TwitchAPIClient(
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            conduit_id=settings.conduit_id,
            api_url=settings.api_url,
        )
    return _twitch_api


def get_emote_providers() -> dict[RewardType, BttvClient | SevenTvClient]:
    """Provider clients for every reward type that has a token configured."""
    global _providers
    if _providers is None:
        settings = get_settings()
        _providers = build_providers(
            seventv_token=settings.seventv_token, bttv_token=settings.bttv_token
        )
    return _providers


async def close_clients() -> None:
    """Close shared HTTP clients. Call on app shutdown."""
    global _twitch_api, _providers, _emote_chief, _reward_cache
    if _twitch_api is not None:
        await _twitch_api.close()
        _twitch_api = None
    for provider in (_providers or {}).values():
        await provider.close()
    _providers = None
    _emote_chief = None
    _reward_cache = None


def get_reward_cache() -> AsyncTTLCache:
    """Dashboard reward reads; save_reward in this process invalidates it."""
    global _reward_cache
    if _reward_cache is None:
        _reward_cache = AsyncTTLCache(maxsize=128, ttl=300)
    return _reward_cache


def get_db_pool() -> asyncpg.Pool:
    db_manager = get_database_manager()
    if not db_manager.is_connected:
        raise HTTPException(status_code=503, detail="Database not ready")
    return db_manager.pool


def get_config_store(
    pool: asyncpg.Pool = Depends(get_db_pool),
    twitch_api: TwitchAPIClient = Depends(get_twitch_api),
) -> UserConfigStore:
    return UserConfigStore(
        KeyValueRepository(pool), twitch_api, timeout=get_settings().operation_timeout
    )


def get_user_config_service(
    store: UserConfigStore = Depends(get_config_store),
    twitch_api: TwitchAPIClient = Depends(get_twitch_api),
) -> UserConfigService:
    return UserConfigService(store, twitch_api)


def get_emote_chief(
    pool: asyncpg.Pool = Depends(get_db_pool),
    store: UserConfigStore = Depends(get_config_store),
) -> EmoteChief:
    """Process-wide EmoteChief so removals share one set of channel locks."""
    global _emote_chief
    if _emote_chief is None:
        _emote_chief = EmoteChief(
            store,
            ChannelPointRewardRepository(pool),
            EmoteHistoryRepository(pool),
            get_emote_providers(),
            timeout=get_settings().operation_timeout,
        )
    return _emote_chief


def get_emote_service(
    pool: asyncpg.Pool = Depends(get_db_pool),
    chief: EmoteChief = Depends(get_emote_chief),
    reward_cache: AsyncTTLCache = Depends(get_reward_cache),
) -> EmoteService:
    return EmoteService(
        EmoteHistoryRepository(pool),
        ChannelPointRewardRepository(pool, cache=reward_cache),
        chief,
    )


# ============================================
# Authentication Dependencies
# ============================================


def _get_token_payload(auth_token: str | None = Cookie(None)) -> dict:
    """Verify JWT and return full payload"""
    auth_service = get_auth_service()

    if not auth_token:
        logger.warning("No auth token provided")
        raise HTTPException(status_code=401, detail="Not logged in")

    payload = auth_service.verify_token(auth_token)

    if not payload:
        logger.warning("Invalid or expired token")
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return payload


async def get_current_caller(
    auth_token: str | None = Cookie(None),
) -> Caller:
    """Return the caller's Twitch id and login, used for editor checks"""
    payload = _get_token_payload(auth_token)
    return Caller(user_id=str(payload["sub"]), login=str(payload["login"]))
