"""
Pinboard Backend — Pin Schemas
================================

Request side:
    CanvasOptions / TextOptions arrive as JSON strings inside the multipart
    form of POST /pins and are parsed with model_validate_json(); they drive
    the image transform (services/image_transform.py).

Response side:
    PinResponse for lists and creation, PinDetailResponse (author embedded)
    for GET /pins/{id}, PinListResponse for the paginated feed.
"""

import re
import uuid
from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import Field, field_validator

from pinboard.schemas.common import APIModel
from pinboard.schemas.user import UserSummary

HEX_COLOR = re.compile(r"^#?[0-9a-fA-F]{3,8}$")
ASPECT_RATIO = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*:\s*(\d+(?:\.\d+)?)\s*$")


class CanvasOptions(APIModel):
    """
    Canvas the client composed the pin on.

    size:             "original", or an aspect ratio "W:H" (e.g. "9:16")
    orientation:      requested orientation of the final image
    background_color: padding colour as hex, "#" optional
    height:           on-screen canvas height in client pixels (its width is
                      always 375 client pixels)
    """
    size: str = "original"
    orientation: Literal["portrait", "landscape"] = "portrait"
    background_color: str = "#ffffff"
    height: float = Field(ge=1, le=100_000, allow_inf_nan=False)

    @field_validator("size")
    @classmethod
    def validate_size(cls, v: str) -> str:
        if v == "original":
            return v
        match = ASPECT_RATIO.match(v)
        if not match or float(match.group(1)) <= 0 or float(match.group(2)) <= 0:
            raise ValueError("size must be 'original' or a positive ratio such as '9:16'")
        return v

    @field_validator("background_color")
    @classmethod
    def validate_color(cls, v: str) -> str:
        if not HEX_COLOR.match(v):
            raise ValueError("backgroundColor must be a hex colour")
        return v


class TextOptions(APIModel):
    """Optional overlay text; positions are in client canvas pixels."""
    text: str = ""
    left: float = Field(default=0, ge=-100_000, le=100_000, allow_inf_nan=False)
    top: float = Field(default=0, ge=-100_000, le=100_000, allow_inf_nan=False)
    font_size: float = Field(default=48, gt=0, le=1000, allow_inf_nan=False)
    color: str = "#000000"

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str) -> str:
        if not HEX_COLOR.match(v):
            raise ValueError("color must be a hex colour")
        return v


class InteractionType(str, Enum):
    LIKE = "like"
    SAVE = "save"


class InteractRequest(APIModel):
    # Closed set: anything else is rejected with 400
    type: InteractionType


class InteractResponse(APIModel):
    type: InteractionType
    active: bool


class InteractionCheckResponse(APIModel):
    like_count: int
    is_liked: bool
    is_saved: bool


class PinResponse(APIModel):
    id: uuid.UUID
    media: str
    width: int
    height: int
    title: str
    description: str
    link: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    board_id: Optional[uuid.UUID] = None
    user_id: uuid.UUID
    created_at: datetime


class PinDetailResponse(PinResponse):
    author: UserSummary


class PinListResponse(APIModel):
    """
    One page of the feed.

    next_cursor is the next page index, or null when this page came back
    short (fewer than the page size). A final page of exactly the page size
    still advertises a next cursor; the following request returns empty.
    """
    pins: List[PinResponse]
    next_cursor: Optional[int] = None
