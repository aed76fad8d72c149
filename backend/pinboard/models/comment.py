"""The `comments` table. Listed per pin, newest first."""

import uuid

from sqlalchemy import ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pinboard.database import Base
from pinboard.models.base import CreatedAtMixin, UUIDPrimaryKeyMixin
from pinboard.models.user import User


class Comment(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "comments"

    description: Mapped[str] = mapped_column(Text, nullable=False)
    pin_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("pins.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    author: Mapped[User] = relationship(lazy="raise_on_sql")

    __table_args__ = (
        Index("idx_comments_pin_created_at", "pin_id", "created_at"),
    )
