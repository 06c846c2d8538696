"""Emote history, reward options and slot management API routes"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from api.core.config import get_settings
from api.core.dependencies import get_current_caller, get_emote_service, get_user_config_service
from api.services import Caller, EmoteService, NotAnEditorError, UnknownChannelError, UserConfigService
from shared.emotechief.errors import EmoteProviderError
from shared.models.emote_history import RewardType

logger = logging.getLogger(__name__)

router = APIRouter(tags=["emotes"])


# ============================================
# Response / Request Models
# ============================================


class EmoteHistoryEntry(BaseModel):
    id: int
    channel_twitch_id: str
    type: RewardType
    change_type: str
    emote_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RewardResponse(BaseModel):
    owner_twitch_id: str
    type: RewardType
    reward_id: str
    title: str
    cost: int
    enabled: bool
    slots: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RewardUpdate(BaseModel):
    reward_id: str = ""
    title: str = ""
    cost: int = Field(default=0, ge=0)
    enabled: bool = True
    slots: int = Field(..., gt=0)


class ActiveEmotesResponse(BaseModel):
    type: RewardType
    emote_ids: list[str]


async def _resolve_channel_id(
    caller: Caller, managing: str | None, user_configs: UserConfigService
) -> str:
    try:
        channel = await user_configs.resolve_channel(caller, managing)
    except NotAnEditorError as e:
        raise HTTPException(status_code=403, detail=f"Not an editor of {e}") from None
    except UnknownChannelError as e:
        raise HTTPException(status_code=404, detail=f"Unknown channel {e}") from None
    return channel.user_id


# ============================================
# Emote History
# ============================================


@router.get("/api/emotehistory", response_model=list[EmoteHistoryEntry])
async def get_emote_history(
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1, le=100),
    added: bool = Query(True),
    managing: str | None = Query(None),
    caller: Caller = Depends(get_current_caller),
    user_configs: UserConfigService = Depends(get_user_config_service),
    service: EmoteService = Depends(get_emote_service),
) -> list[EmoteHistoryEntry]:
    """One page of the channel's emote history, newest first."""
    channel_id = await _resolve_channel_id(caller, managing, user_configs)
    try:
        entries = await service.history(
            channel_id, page, page_size or get_settings().history_page_size, added
        )
        return [EmoteHistoryEntry(**e) for e in entries]
    except Exception as e:
        logger.exception(f"Failed to get emote history: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch emote history") from None


# ============================================
# Active emotes / slot removal
# ============================================


@router.get("/api/emotes/{reward_type}", response_model=ActiveEmotesResponse)
async def get_active_emotes(
    reward_type: RewardType,
    managing: str | None = Query(None),
    caller: Caller = Depends(get_current_caller),
    user_configs: UserConfigService = Depends(get_user_config_service),
    service: EmoteService = Depends(get_emote_service),
) -> ActiveEmotesResponse:
    """Emotes currently occupying the channel's slots."""
    channel_id = await _resolve_channel_id(caller, managing, user_configs)
    try:
        emote_ids = await service.active_emotes(channel_id, reward_type)
        return ActiveEmotesResponse(type=reward_type, emote_ids=emote_ids)
    except Exception as e:
        logger.exception(f"Failed to get active emotes: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch active emotes") from None


@router.delete("/api/emotes/{reward_type}/{emote_id}")
async def remove_emote(
    reward_type: RewardType,
    emote_id: str,
    caller: Caller = Depends(get_current_caller),
    service: EmoteService = Depends(get_emote_service),
) -> dict:
    """Remove an emote added by a redemption and free its slot."""
    try:
        removed = await service.remove_emote(caller.user_id, reward_type, emote_id)
    except KeyError:
        raise HTTPException(
            status_code=400, detail=f"No {reward_type.value} provider configured"
        ) from None
    except EmoteProviderError as e:
        logger.exception(f"Provider refused removal: {e}")
        raise HTTPException(status_code=502, detail=f"Failed to remove emote: {e}") from None
    except Exception as e:
        logger.exception(f"Failed to remove emote: {e}")
        raise HTTPException(status_code=500, detail="Failed to remove emote") from None

    if not removed:
        raise HTTPException(status_code=404, detail="Emote is not in an active slot")
    logger.info(f"Channel {caller.user_id} removed {reward_type.value} emote {emote_id}")
    return {"message": "Emote removed"}


# ============================================
# Reward options
# ============================================


@router.get("/api/rewards/{reward_type}", response_model=RewardResponse)
async def get_reward(
    reward_type: RewardType,
    caller: Caller = Depends(get_current_caller),
    service: EmoteService = Depends(get_emote_service),
) -> RewardResponse:
    """The channel's reward settings; slots is null when never configured."""
    try:
        return RewardResponse(**await service.get_reward(caller.user_id, reward_type))
    except Exception as e:
        logger.exception(f"Failed to get reward: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch reward") from None


@router.put("/api/rewards/{reward_type}", response_model=RewardResponse)
async def update_reward(
    reward_type: RewardType,
    body: RewardUpdate,
    caller: Caller = Depends(get_current_caller),
    service: EmoteService = Depends(get_emote_service),
) -> RewardResponse:
    """Update the reward and its slot count."""
    try:
        reward = await service.save_reward(
            caller.user_id,
            reward_type,
            reward_id=body.reward_id,
            title=body.title,
            cost=body.cost,
            enabled=body.enabled,
            slots=body.slots,
        )
        return RewardResponse(**reward)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    except Exception as e:
        logger.exception(f"Failed to update reward: {e}")
        raise HTTPException(status_code=500, detail="Failed to update reward") from None
