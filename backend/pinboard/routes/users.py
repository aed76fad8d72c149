"""
Pinboard Backend — User Route Handlers
========================================

What:  Account endpoints (register, login, logout), public profiles and the
       follow toggle.
How:   Register and login set the signed session token as an http-only
       cookie; logout clears it. The token itself never appears in a body.

Cookie:
    name      settings.cookie_name ("token")
    max-age   settings.cookie_max_age (30 days)
    httponly  always
    secure    only in production (local development runs over plain HTTP)
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from pinboard.config import Settings
from pinboard.database import get_db_session
from pinboard.dependencies import (
    get_current_user_id,
    get_optional_user_id,
    get_settings,
    get_token_codec,
)
from pinboard.schemas.common import ErrorResponse, MessageResponse
from pinboard.schemas.user import (
    FollowResponse,
    LoginRequest,
    RegisterRequest,
    UserProfileResponse,
    UserResponse,
)
from pinboard.security import TokenCodec
from pinboard.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


def _set_session_cookie(response: Response, settings: Settings, token: str) -> None:
    response.set_cookie(
        key=settings.cookie_name,
        value=token,
        max_age=settings.cookie_max_age,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


@router.post(
    "/auth/register",
    status_code=201,
    response_model=UserResponse,
    responses={
        400: {"description": "Invalid registration data", "model": ErrorResponse},
        409: {"description": "Username or email already taken", "model": ErrorResponse},
    },
    summary="Create an account and start a session",
)
async def register(
    payload: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
    token_codec: TokenCodec = Depends(get_token_codec),
) -> UserResponse:
    user = await user_service.register(db, payload)
    _set_session_cookie(response, settings, token_codec.encode(user.id))
    return user


@router.post(
    "/auth/login",
    response_model=UserResponse,
    responses={401: {"description": "Invalid credentials", "model": ErrorResponse}},
    summary="Log in with email or username",
)
async def login(
    payload: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
    token_codec: TokenCodec = Depends(get_token_codec),
) -> UserResponse:
    user = await user_service.authenticate(db, payload)
    _set_session_cookie(response, settings, token_codec.encode(user.id))
    return user


@router.post("/auth/logout", response_model=MessageResponse, summary="End the session")
async def logout(
    response: Response,
    settings: Settings = Depends(get_settings),
) -> MessageResponse:
    response.delete_cookie(
        key=settings.cookie_name,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return MessageResponse(message="Logout successful")


@router.get(
    "/{username}",
    response_model=UserProfileResponse,
    responses={404: {"description": "Unknown user", "model": ErrorResponse}},
    summary="Public profile with follower counts",
)
async def get_user(
    username: str,
    db: AsyncSession = Depends(get_db_session),
    viewer_id: Optional[uuid.UUID] = Depends(get_optional_user_id),
) -> UserProfileResponse:
    return await user_service.get_profile(db, username, viewer_id)


@router.post(
    "/follow/{username}",
    response_model=FollowResponse,
    responses={
        400: {"description": "Cannot follow yourself", "model": ErrorResponse},
        401: {"description": "Not logged in", "model": ErrorResponse},
        404: {"description": "Unknown user", "model": ErrorResponse},
    },
    summary="Follow or unfollow a user",
)
async def follow_user(
    username: str,
    db: AsyncSession = Depends(get_db_session),
    user_id: uuid.UUID = Depends(get_current_user_id),
) -> FollowResponse:
    return await user_service.toggle_follow(db, user_id, username)
