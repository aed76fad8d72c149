"""The `boards` table: a named collection of pins owned by one user."""

import uuid

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from pinboard.database import Base
from pinboard.models.base import CreatedAtMixin, UUIDPrimaryKeyMixin


class Board(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "boards"

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Board(id={self.id}, title='{self.title}')>"
