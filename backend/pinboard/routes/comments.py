"""Comment routes: GET /comments/{pinId} and POST /comments."""

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pinboard.database import get_db_session
from pinboard.dependencies import get_current_user_id
from pinboard.schemas.comment import (
    CommentCreateRequest,
    CommentResponse,
    CommentWithAuthorResponse,
)
from pinboard.schemas.common import ErrorResponse
from pinboard.services.comment_service import comment_service

router = APIRouter(prefix="/comments", tags=["Comments"])


@router.get(
    "/{pin_id}",
    response_model=List[CommentWithAuthorResponse],
    summary="Comments on a pin, newest first",
)
async def list_comments(
    pin_id: uuid.UUID,
    db: AsyncSession = Depends(get_db_session),
) -> List[CommentWithAuthorResponse]:
    return await comment_service.list_comments(db, pin_id)


@router.post(
    "",
    status_code=201,
    response_model=CommentResponse,
    responses={
        401: {"description": "Not logged in", "model": ErrorResponse},
        404: {"description": "Unknown pin", "model": ErrorResponse},
    },
    summary="Comment on a pin",
)
async def create_comment(
    payload: CommentCreateRequest,
    db: AsyncSession = Depends(get_db_session),
    user_id: uuid.UUID = Depends(get_current_user_id),
) -> CommentResponse:
    return await comment_service.create_comment(db, user_id, payload)
