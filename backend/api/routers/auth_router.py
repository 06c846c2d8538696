"""Authentication API routes"""

import logging

from fastapi import APIRouter, Depends, Response
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from api.core.config import Settings, get_settings
from api.core.database import get_database_manager
from api.core.dependencies import get_auth_service, get_current_caller, get_twitch_api
from api.services import AuthService, Caller, TwitchAPIClient
from shared.repositories.token import TokenRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["authentication"])


# ============================================
# Response Models
# ============================================


class OAuthURLResponse(BaseModel):
    oauth_url: str
    redirect_uri: str


class UserInfoResponse(BaseModel):
    id: str
    name: str


class LogoutResponse(BaseModel):
    message: str


# ============================================
# Endpoints
# ============================================


@router.get("/twitch/oauth", response_model=OAuthURLResponse)
async def get_twitch_oauth_url(
    twitch_api: TwitchAPIClient = Depends(get_twitch_api),
    settings: Settings = Depends(get_settings),
) -> OAuthURLResponse:
    """Get Twitch OAuth authorization URL."""
    return OAuthURLResponse(
        oauth_url=twitch_api.generate_oauth_url(),
        redirect_uri=f"{settings.api_url}/api/auth/twitch/callback",
    )


@router.get("/twitch/callback")
async def twitch_oauth_callback(
    code: str | None = None,
    error: str | None = None,
    twitch_api: TwitchAPIClient = Depends(get_twitch_api),
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> RedirectResponse:
    """Handle Twitch OAuth callback: store the broadcaster token, set the session cookie."""
    error_redirect = f"{settings.frontend_url}/login"

    if error:
        logger.error(f"OAuth error from Twitch: {error}")
        return RedirectResponse(url=f"{error_redirect}?error={error}")

    if not code:
        logger.error("No OAuth code received from Twitch")
        return RedirectResponse(url=f"{error_redirect}?error=no_code")

    # Check DB readiness (don't use Depends — must redirect, not 503)
    db_manager = get_database_manager()
    if not db_manager.is_connected:
        logger.error("Database not ready during OAuth callback")
        return RedirectResponse(url=f"{error_redirect}?error=db_not_ready")

    success, error_msg, token_data = await twitch_api.exchange_code_for_token(code)
    if not success or not token_data:
        logger.error(f"Failed to exchange code: {error_msg}")
        return RedirectResponse(url=f"{error_redirect}?error={error_msg}")

    user_id = token_data["user_id"]
    login = token_data["login"]

    try:
        await TokenRepository(db_manager.pool).upsert_token(
            user_id, token_data["access_token"], token_data["refresh_token"]
        )
    except Exception as e:
        logger.error(f"DB error during Twitch OAuth for {login}: {type(e).__name__}: {e}")
        return RedirectResponse(url=f"{error_redirect}?error=save_token_failed")

    jwt_token = auth_service.create_access_token(user_id=user_id, login=login)

    response = RedirectResponse(url=f"{settings.frontend_url}/dashboard")
    response.set_cookie(
        key="auth_token",
        value=jwt_token,
        httponly=True,
        secure=True,
        samesite="none",
        max_age=settings.jwt_expire_days * 24 * 60 * 60,
    )

    logger.info(f"User logged in: {login} ({user_id})")
    return response


@router.get("/user", response_model=UserInfoResponse)
async def get_current_user(caller: Caller = Depends(get_current_caller)) -> UserInfoResponse:
    """Get current authenticated user information"""
    return UserInfoResponse(id=caller.user_id, name=caller.login)


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    response: Response,
    caller: Caller = Depends(get_current_caller),
) -> LogoutResponse:
    """Logout current user by clearing auth cookie"""
    response.delete_cookie(
        key="auth_token",
        path="/",
        httponly=True,
        secure=True,
        samesite="none",
    )
    logger.info(f"User logged out: {caller.login}")
    return LogoutResponse(message="Logged out successfully")
