"""
Pinboard Backend — User Service
=================================

What:  Registration, login, public profiles and the follow toggle.
Why:   Keeps account rules (unique identity, credential checks, self-follow)
       out of the route handlers, which only deal with cookies and status
       codes.
How:   Stateless service; every method receives the request's AsyncSession.
       Password hashing runs in the threadpool (see security.py).

Error Mapping:
    taken username / email      → ConflictError (409)
    unknown login / bad password → AuthenticationError (401), same message
    unknown username            → NotFoundError (404)
    following yourself          → ValidationError (400)
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pinboard.exceptions import (
    AuthenticationError,
    ConflictError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from pinboard.models import Follow, User
from pinboard.schemas.user import (
    FollowResponse,
    LoginRequest,
    RegisterRequest,
    UserProfileResponse,
    UserResponse,
)
from pinboard.security import hash_password_async, verify_password_async
from pinboard.services.relations import toggle_relation

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


def _same_email(email: str):
    # Domains are case-insensitive and most mail hosts ignore local-part case
    return func.lower(User.email) == email.lower()


class UserService:

    async def register(self, db: AsyncSession, payload: RegisterRequest) -> UserResponse:
        """
        Create an account.

        The availability checks give a precise 409; the unique indexes still
        catch two registrations racing for the same name.
        """
        if await self._exists(db, User, User.username == payload.username):
            raise ConflictError(message="Username is already taken", field="username")
        if await self._exists(db, User, _same_email(payload.email)):
            raise ConflictError(message="Email is already registered", field="email")

        user = User(
            username=payload.username,
            display_name=payload.display_name,
            email=payload.email,
            hashed_password=await hash_password_async(payload.password),
        )
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            raise ConflictError(message="Username or email is already taken")
        except SQLAlchemyError as e:
            logger.error("Database error registering %s: %s", payload.username, str(e))
            raise DatabaseError(context={"operation": "register"})

        logger.info("User registered: %s (%s)", user.username, user.id)
        return UserResponse.model_validate(user)

    async def authenticate(self, db: AsyncSession, payload: LoginRequest) -> UserResponse:
        """
        Check credentials by email or username.

        Unknown identifiers and wrong passwords raise the same error so the
        response does not reveal which accounts exist.
        """
        identifiers = []
        if payload.email:
            identifiers.append(_same_email(payload.email))
        if payload.username:
            identifiers.append(User.username == payload.username)

        result = await db.execute(select(User).where(or_(*identifiers)).limit(1))
        user = result.scalar_one_or_none()

        if user is None or not await verify_password_async(payload.password, user.hashed_password):
            logger.info("Failed login for %s", payload.email or payload.username)
            raise AuthenticationError(message=INVALID_CREDENTIALS)

        logger.info("User logged in: %s", user.username)
        return UserResponse.model_validate(user)

    async def get_profile(
        self,
        db: AsyncSession,
        username: str,
        viewer_id: Optional[uuid.UUID] = None,
    ) -> UserProfileResponse:
        user = await self._get_by_username(db, username)

        follower_count = await db.scalar(
            select(func.count()).select_from(Follow).where(Follow.following_id == user.id)
        )
        following_count = await db.scalar(
            select(func.count()).select_from(Follow).where(Follow.follower_id == user.id)
        )
        is_following = False
        if viewer_id is not None and viewer_id != user.id:
            is_following = await self._exists(
                db,
                Follow,
                Follow.follower_id == viewer_id,
                Follow.following_id == user.id,
            )

        return UserProfileResponse(
            **UserResponse.model_validate(user).model_dump(),
            follower_count=follower_count or 0,
            following_count=following_count or 0,
            is_following=is_following,
        )

    async def toggle_follow(
        self,
        db: AsyncSession,
        follower_id: uuid.UUID,
        username: str,
    ) -> FollowResponse:
        target = await self._get_by_username(db, username)
        if target.id == follower_id:
            raise ValidationError(message="You cannot follow yourself", field="username")

        is_following = await toggle_relation(
            db,
            Follow,
            follower_id=follower_id,
            following_id=target.id,
        )
        logger.info(
            "User %s %s %s",
            follower_id,
            "followed" if is_following else "unfollowed",
            target.username,
        )
        return FollowResponse(username=target.username, is_following=is_following)

    async def _get_by_username(self, db: AsyncSession, username: str) -> User:
        result = await db.execute(select(User).where(User.username == username))
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError(resource="user", resource_id=username)
        return user

    @staticmethod
    async def _exists(db: AsyncSession, model, *conditions) -> bool:
        return bool(await db.scalar(select(select(model).where(*conditions).exists())))


user_service = UserService()
