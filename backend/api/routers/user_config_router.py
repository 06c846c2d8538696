"""User config API routes"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import ValidationError

from api.core.dependencies import get_current_caller, get_user_config_service
from api.services import Caller, NotAnEditorError, UnknownChannelError, UserConfigService
from shared.emotechief.errors import ConfigCorruptedError, ConfigStorageError, SubscriptionError
from shared.models.user_config import UserConfig

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/userconfig", tags=["userconfig"])


@router.get("")
async def get_user_config(
    managing: str | None = Query(None),
    caller: Caller = Depends(get_current_caller),
    service: UserConfigService = Depends(get_user_config_service),
) -> dict:
    """Stored config, or the default when none was saved yet."""
    try:
        config = await service.get_config(caller, managing)
        return config.to_dict()
    except NotAnEditorError as e:
        raise HTTPException(status_code=403, detail=f"Not an editor of {e}") from None
    except UnknownChannelError as e:
        raise HTTPException(status_code=404, detail=f"Unknown channel {e}") from None
    except ConfigCorruptedError as e:
        logger.error(f"Corrupted config: {e}")
        raise HTTPException(status_code=400, detail="Can't recover config") from None
    except Exception as e:
        logger.exception(f"Failed to get user config: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch config") from None


@router.post("")
async def save_user_config(
    body: Any = Body(...),
    managing: str | None = Query(None),
    caller: Caller = Depends(get_current_caller),
    service: UserConfigService = Depends(get_user_config_service),
) -> dict:
    """Replace the config. ``Protected`` in the body is ignored."""
    if not isinstance(body, dict):
        logger.warning(f"Rejected config from {caller.login}: body is not an object")
        raise HTTPException(status_code=400, detail="Invalid config")

    try:
        incoming = UserConfig.model_validate(body)
    except ValidationError as e:
        logger.warning(f"Rejected config from {caller.login}: {e.error_count()} error(s)")
        raise HTTPException(status_code=400, detail="Invalid config") from None

    try:
        saved = await service.save_config(caller, incoming, managing)
        logger.info(f"{caller.login} saved config (managing={managing or caller.login})")
        return saved.to_dict()
    except NotAnEditorError as e:
        raise HTTPException(status_code=403, detail=f"Not an editor of {e}") from None
    except UnknownChannelError as e:
        raise HTTPException(status_code=404, detail=f"Unknown channel {e}") from None
    except ConfigCorruptedError as e:
        logger.error(f"Corrupted config: {e}")
        raise HTTPException(status_code=400, detail="Can't recover config") from None
    except (ConfigStorageError, SubscriptionError) as e:
        logger.exception(f"Failed processing config: {e}")
        raise HTTPException(status_code=500, detail="Failed processing config") from None
    except Exception as e:
        logger.exception(f"Failed to save user config: {e}")
        raise HTTPException(status_code=500, detail="Failed to save config") from None


@router.delete("")
async def delete_user_config(
    caller: Caller = Depends(get_current_caller),
    service: UserConfigService = Depends(get_user_config_service),
) -> dict:
    """Delete the caller's own config and unsubscribe their channel."""
    try:
        await service.delete_config(caller)
        return {"message": "Config deleted"}
    except SubscriptionError as e:
        logger.exception(f"Failed to unsubscribe: {e}")
        raise HTTPException(status_code=500, detail="Failed to unsubscribe") from None
    except Exception as e:
        logger.exception(f"Failed deleting config: {e}")
        raise HTTPException(status_code=500, detail="Failed deleting config") from None
