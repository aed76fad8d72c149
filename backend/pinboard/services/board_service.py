"""
Board listing for a user's profile: each board with its pin count and the
earliest pin on it (used by the client as the board cover).
"""

import logging
import uuid
from typing import List

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pinboard.exceptions import DatabaseError
from pinboard.models import Board, Pin
from pinboard.schemas.board import BoardWithPinsResponse
from pinboard.schemas.pin import PinResponse

logger = logging.getLogger(__name__)


class BoardService:

    async def list_user_boards(self, db: AsyncSession, user_id: uuid.UUID) -> List[BoardWithPinsResponse]:
        """
        Boards of one user, oldest first.

        Three queries regardless of the number of boards: the boards, a
        grouped count, and the first pin per board picked with ROW_NUMBER().
        """
        try:
            result = await db.execute(
                select(Board)
                .where(Board.user_id == user_id)
                .order_by(Board.created_at, Board.id)
            )
            boards = list(result.scalars().all())
            if not boards:
                return []

            board_ids = [board.id for board in boards]

            counts_result = await db.execute(
                select(Pin.board_id, func.count(Pin.id))
                .where(Pin.board_id.in_(board_ids))
                .group_by(Pin.board_id)
            )
            pin_counts = dict(counts_result.all())

            ranked = (
                select(
                    Pin.id.label("pin_id"),
                    func.row_number()
                    .over(partition_by=Pin.board_id, order_by=(Pin.created_at, Pin.id))
                    .label("row_num"),
                )
                .where(Pin.board_id.in_(board_ids))
                .subquery()
            )
            first_result = await db.execute(
                select(Pin).join(ranked, Pin.id == ranked.c.pin_id).where(ranked.c.row_num == 1)
            )
            first_pins = {pin.board_id: pin for pin in first_result.scalars().all()}
        except SQLAlchemyError as e:
            logger.error("Database error listing boards of %s: %s", user_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve boards. Please try again.",
                context={"user_id": str(user_id)},
            )

        return [
            BoardWithPinsResponse(
                id=board.id,
                title=board.title,
                user_id=board.user_id,
                created_at=board.created_at,
                pin_count=pin_counts.get(board.id, 0),
                first_pin=(
                    PinResponse.model_validate(first_pins[board.id])
                    if board.id in first_pins
                    else None
                ),
            )
            for board in boards
        ]


board_service = BoardService()
