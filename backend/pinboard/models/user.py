"""
Pinboard Backend — User Model
===============================

What:  The `users` table: account identity and profile data.
Why:   Owner of pins, boards, comments and both sides of the follow relation.

Table Design:
    - username: unique index. email: unique index on lower(email), so
      "Bob@Example.com" and "bob@example.com" are one account. Registration
      checks availability first for a friendly 409; the indexes close the
      race between two concurrent registrations.
    - hashed_password: bcrypt hash, never serialized by any response schema.
    - img: optional avatar URL.
"""

from typing import Optional

from sqlalchemy import Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from pinboard.database import Base
from pinboard.models.base import CreatedAtMixin, UUIDPrimaryKeyMixin


class User(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    img: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"


# Emails are unique regardless of case
Index("ix_users_email_lower", func.lower(User.email), unique=True)
