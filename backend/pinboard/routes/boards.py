"""Board routes: GET /boards/{userId}."""

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pinboard.database import get_db_session
from pinboard.schemas.board import BoardWithPinsResponse
from pinboard.services.board_service import board_service

router = APIRouter(prefix="/boards", tags=["Boards"])


@router.get(
    "/{user_id}",
    response_model=List[BoardWithPinsResponse],
    summary="A user's boards with pin count and cover pin",
)
async def list_user_boards(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db_session),
) -> List[BoardWithPinsResponse]:
    return await board_service.list_user_boards(db, user_id)
