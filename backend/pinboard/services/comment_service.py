"""Comments on pins: newest-first listing with authors, and creation."""

import logging
import uuid
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pinboard.exceptions import DatabaseError, NotFoundError
from pinboard.models import Comment, Pin
from pinboard.schemas.comment import (
    CommentCreateRequest,
    CommentResponse,
    CommentWithAuthorResponse,
)

logger = logging.getLogger(__name__)


class CommentService:

    async def list_comments(self, db: AsyncSession, pin_id: uuid.UUID) -> List[CommentWithAuthorResponse]:
        # An unknown pin simply has no comments
        result = await db.execute(
            select(Comment)
            .options(selectinload(Comment.author))
            .where(Comment.pin_id == pin_id)
            .order_by(Comment.created_at.desc(), Comment.id.desc())
        )
        return [CommentWithAuthorResponse.model_validate(c) for c in result.scalars().all()]

    async def create_comment(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        payload: CommentCreateRequest,
    ) -> CommentResponse:
        if await db.get(Pin, payload.pin) is None:
            raise NotFoundError(resource="pin", resource_id=str(payload.pin))

        comment = Comment(description=payload.description, pin_id=payload.pin, user_id=user_id)
        db.add(comment)
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error saving comment on %s: %s", payload.pin, str(e))
            raise DatabaseError(
                message="Could not save the comment. Please try again.",
                context={"pin_id": str(payload.pin)},
            )

        logger.info("Comment %s added to pin %s by %s", comment.id, payload.pin, user_id)
        return CommentResponse.model_validate(comment)


comment_service = CommentService()
