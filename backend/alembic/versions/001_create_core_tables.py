"""Create core tables

Revision ID: 001
Revises: None
Create Date: 2025-01-15 00:00:00.000000+00:00

What:  users, boards, pins, pin_tags, follows, likes, saves, comments.
How:   Mirrors pinboard/models; the unique constraints on follows/likes/saves
       are what make the toggles atomic, so they must exist in every
       deployed schema.

Rollback: downgrade() drops every table (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column("id", sa.Uuid(), primary_key=True, nullable=False)


def _created_at_column() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def _user_fk(name: str = "user_id") -> sa.Column:
    return sa.Column(name, sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)


def _pin_fk() -> sa.Column:
    return sa.Column("pin_id", sa.Uuid(), sa.ForeignKey("pins.id", ondelete="CASCADE"), nullable=False)


def upgrade() -> None:
    op.create_table(
        "users",
        _id_column(),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("img", sa.String(500), nullable=True),
        _created_at_column(),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email_lower", "users", [sa.text("lower(email)")], unique=True)

    op.create_table(
        "boards",
        _id_column(),
        sa.Column("title", sa.String(200), nullable=False),
        _user_fk(),
        _created_at_column(),
    )
    op.create_index("ix_boards_user_id", "boards", ["user_id"])

    op.create_table(
        "pins",
        _id_column(),
        sa.Column("media", sa.String(500), nullable=False),
        sa.Column("width", sa.Integer(), nullable=False),
        sa.Column("height", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("link", sa.String(500), nullable=True),
        sa.Column(
            "board_id",
            sa.Uuid(),
            sa.ForeignKey("boards.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _user_fk(),
        _created_at_column(),
    )
    op.create_index("ix_pins_board_id", "pins", ["board_id"])
    op.create_index("ix_pins_user_id", "pins", ["user_id"])
    op.create_index("idx_pins_created_at", "pins", ["created_at"])

    op.create_table(
        "pin_tags",
        sa.Column(
            "pin_id",
            sa.Uuid(),
            sa.ForeignKey("pins.id", ondelete="CASCADE"),
            primary_key=True,
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
    )
    op.create_index("ix_pin_tags_name", "pin_tags", ["name"])

    op.create_table(
        "follows",
        _id_column(),
        _user_fk("follower_id"),
        _user_fk("following_id"),
        _created_at_column(),
        sa.UniqueConstraint("follower_id", "following_id", name="uq_follows_pair"),
        sa.CheckConstraint("follower_id <> following_id", name="ck_follows_not_self"),
    )
    op.create_index("ix_follows_follower_id", "follows", ["follower_id"])
    op.create_index("ix_follows_following_id", "follows", ["following_id"])

    for table, constraint in (("likes", "uq_likes_pin_user"), ("saves", "uq_saves_pin_user")):
        op.create_table(
            table,
            _id_column(),
            _pin_fk(),
            _user_fk(),
            _created_at_column(),
            sa.UniqueConstraint("pin_id", "user_id", name=constraint),
        )
        op.create_index(f"ix_{table}_pin_id", table, ["pin_id"])

    op.create_table(
        "comments",
        _id_column(),
        sa.Column("description", sa.Text(), nullable=False),
        _pin_fk(),
        _user_fk(),
        _created_at_column(),
    )
    op.create_index("idx_comments_pin_created_at", "comments", ["pin_id", "created_at"])


def downgrade() -> None:
    op.drop_table("comments")
    op.drop_table("saves")
    op.drop_table("likes")
    op.drop_table("follows")
    op.drop_table("pin_tags")
    op.drop_table("pins")
    op.drop_table("boards")
    op.drop_table("users")
