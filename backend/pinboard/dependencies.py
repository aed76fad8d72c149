"""
Pinboard Backend — Request Dependencies
=========================================

What:  FastAPI dependencies resolving the caller's identity and the
       application-scoped services stored on app.state.
Why:   Routes declare what they need (a required or optional user id, the
       image service) instead of reaching for module globals.

Identity rules:
    get_current_user_id   no cookie → 401, bad token → 403
    get_optional_user_id  no cookie or bad token → None (anonymous)
"""

import uuid
from typing import Optional

from fastapi import Request

from pinboard.config import Settings
from pinboard.exceptions import AuthenticationError, PermissionDeniedError
from pinboard.security import TokenCodec
from pinboard.services.imagekit_service import ImageKitService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_codec(request: Request) -> TokenCodec:
    return request.app.state.token_codec


def get_image_service(request: Request) -> ImageKitService:
    return request.app.state.image_service


def get_current_user_id(request: Request) -> uuid.UUID:
    settings: Settings = request.app.state.settings
    token = request.cookies.get(settings.cookie_name)
    if not token:
        raise AuthenticationError(message="Token not provided")

    user_id = request.app.state.token_codec.decode(token)
    if user_id is None:
        raise PermissionDeniedError(message="Invalid token")

    request.state.user_id = user_id
    return user_id


def get_optional_user_id(request: Request) -> Optional[uuid.UUID]:
    settings: Settings = request.app.state.settings
    token = request.cookies.get(settings.cookie_name)
    if not token:
        return None
    user_id = request.app.state.token_codec.decode(token)
    if user_id is not None:
        request.state.user_id = user_id
    return user_id
