"""
Pinboard Backend — Toggle Relations
=====================================

What:  The `follows`, `likes` and `saves` tables.
Why:   Each row records that a relation is ON; deleting it turns it OFF.
How:   A unique constraint over each pair lets the services toggle with a
       single delete-or-insert: two concurrent "on" requests cannot both
       insert, the loser hits the constraint and observes the row the winner
       created.
"""

import uuid

from sqlalchemy import CheckConstraint, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from pinboard.database import Base
from pinboard.models.base import CreatedAtMixin, UUIDPrimaryKeyMixin


class Follow(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "follows"

    follower_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    following_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        UniqueConstraint("follower_id", "following_id", name="uq_follows_pair"),
        CheckConstraint("follower_id <> following_id", name="ck_follows_not_self"),
    )


class Like(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "likes"

    pin_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("pins.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("pin_id", "user_id", name="uq_likes_pin_user"),
    )


class Save(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "saves"

    pin_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("pins.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("pin_id", "user_id", name="uq_saves_pin_user"),
    )
