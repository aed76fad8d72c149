"""User, auth and follow schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, model_validator

from pinboard.schemas.common import APIModel


class RegisterRequest(APIModel):
    username: str = Field(min_length=1, max_length=50, pattern=r"^\S+$")
    display_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)


class LoginRequest(APIModel):
    """
    Login by email or by username.

    Exactly which identifier the client sends is up to it; at least one must
    be present. If both are sent, a user matching either is accepted.
    """
    email: Optional[EmailStr] = None
    username: Optional[str] = Field(default=None, max_length=50)
    password: str = Field(min_length=1, max_length=128)

    @model_validator(mode="after")
    def require_identifier(self) -> "LoginRequest":
        if not (self.email or self.username):
            raise ValueError("Either email or username is required")
        return self


class UserResponse(APIModel):
    """Public user representation. There is deliberately no password field."""
    id: uuid.UUID
    username: str
    display_name: str
    email: str
    img: Optional[str] = None
    created_at: datetime


class UserSummary(APIModel):
    """Author block embedded in pin details and comments."""
    id: uuid.UUID
    username: str
    display_name: str
    img: Optional[str] = None


class UserProfileResponse(UserResponse):
    follower_count: int
    following_count: int
    # Always false for anonymous callers
    is_following: bool = False


class FollowResponse(APIModel):
    username: str
    is_following: bool
