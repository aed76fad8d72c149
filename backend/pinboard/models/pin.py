"""
Pinboard Backend — Pin Model
==============================

What:  The `pins` table plus its `pin_tags` child table.
Why:   A pin is one uploaded image (stored by the image service) with its
       metadata. Tags live in their own table so that the listing search can
       match an exact tag with an indexed equality lookup on any backend.

Query Patterns:
    - Feed page:    ORDER BY created_at DESC, id LIMIT 21 OFFSET page*21
    - By user:      WHERE user_id = :id        (idx on user_id)
    - By board:     WHERE board_id = :id       (idx on board_id)
    - Search:       title ILIKE '%q%' OR id IN (SELECT pin_id FROM pin_tags WHERE name = :q)
"""

import uuid
from typing import List, Optional

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pinboard.database import Base
from pinboard.models.base import CreatedAtMixin, UUIDPrimaryKeyMixin
from pinboard.models.user import User


class Pin(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "pins"

    # Path of the stored file relative to the image CDN endpoint
    media: Mapped[str] = mapped_column(String(500), nullable=False)
    width: Mapped[int] = mapped_column(Integer, nullable=False)
    height: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    board_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("boards.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Tags are always needed when a pin is serialized, so load them eagerly
    tag_rows: Mapped[List["PinTag"]] = relationship(
        back_populates="pin",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="PinTag.position",
    )
    # Author is only needed on the detail view; loaded explicitly there
    author: Mapped[User] = relationship(lazy="raise_on_sql")

    __table_args__ = (
        Index("idx_pins_created_at", "created_at"),
    )

    @property
    def tags(self) -> List[str]:
        return [row.name for row in self.tag_rows]

    def __repr__(self) -> str:
        return f"<Pin(id={self.id}, title='{self.title}')>"


class PinTag(Base):
    __tablename__ = "pin_tags"

    pin_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("pins.id", ondelete="CASCADE"),
        primary_key=True,
    )
    # Keeps tags in the order the author typed them
    position: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    pin: Mapped[Pin] = relationship(back_populates="tag_rows")
