"""
Pinboard Backend — Password Hashing & Session Tokens
======================================================

What:  bcrypt password hashing (passlib) and signed session tokens (python-jose).
How:   The token payload is {"userId": "<uuid>"} signed with HS256. There is
       no "exp" claim; a session ends when the cookie's max-age runs out or
       the user logs out.

bcrypt is deliberately slow (~100-300ms per hash), so the async helpers run
it in Starlette's threadpool instead of on the event loop.
"""

import uuid
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from starlette.concurrency import run_in_threadpool

from pinboard.config import Settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


async def hash_password_async(password: str) -> str:
    return await run_in_threadpool(hash_password, password)


async def verify_password_async(plain_password: str, hashed_password: str) -> bool:
    return await run_in_threadpool(verify_password, plain_password, hashed_password)


class TokenCodec:
    """Signs and verifies session tokens with the configured secret."""

    def __init__(self, settings: Settings):
        if not settings.jwt_secret:
            raise ValueError("JWT_SECRET must be set to sign session tokens")
        self._secret = settings.jwt_secret
        self._algorithm = settings.jwt_algorithm

    def encode(self, user_id: uuid.UUID) -> str:
        return jwt.encode({"userId": str(user_id)}, self._secret, algorithm=self._algorithm)

    def decode(self, token: str) -> Optional[uuid.UUID]:
        """Return the subject user id, or None if the token is not valid."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except JWTError:
            return None
        try:
            return uuid.UUID(str(payload.get("userId")))
        except ValueError:
            return None
