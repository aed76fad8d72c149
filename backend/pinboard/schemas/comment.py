"""Comment schemas."""

import uuid
from datetime import datetime

from pydantic import Field, field_validator

from pinboard.schemas.common import APIModel
from pinboard.schemas.user import UserSummary


class CommentCreateRequest(APIModel):
    description: str = Field(min_length=1, max_length=2000)
    pin: uuid.UUID

    @field_validator("description")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("description must not be blank")
        return v.strip()


class CommentResponse(APIModel):
    id: uuid.UUID
    description: str
    pin_id: uuid.UUID
    user_id: uuid.UUID
    created_at: datetime


class CommentWithAuthorResponse(CommentResponse):
    author: UserSummary
