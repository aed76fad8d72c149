"""
ORM models. Importing this package registers every table on Base.metadata,
which Alembic and Database.create_all() depend on.
"""

from pinboard.models.board import Board
from pinboard.models.comment import Comment
from pinboard.models.interaction import Follow, Like, Save
from pinboard.models.pin import Pin, PinTag
from pinboard.models.user import User

__all__ = ["Board", "Comment", "Follow", "Like", "Pin", "PinTag", "Save", "User"]
