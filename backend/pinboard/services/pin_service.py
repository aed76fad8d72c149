"""
Pinboard Backend — Pin Service (Business Logic Orchestrator)
==============================================================

What:  Pin creation, the paginated feed, pin detail and like/save toggles.
Why:   Pin creation spans three systems (Pillow, ImageKit, the database) and
       has to leave no half-finished state behind; the feed has a fixed
       filter precedence the client depends on.
How:   Stateless service receiving the request's AsyncSession and the
       application's ImageKitService.

Creation Flow (POST /pins):
    ┌──────────┐   ┌──────────────┐   ┌────────────┐   ┌─────────────────┐
    │ Validate │──▶│ Plan         │──▶│ ImageKit   │──▶│ Board + Pin     │
    │ file and │   │ transform    │   │ upload     │   │ (one request    │
    │ options  │   │ (Pillow)     │   │ (retried)  │   │  transaction)   │
    └──────────┘   └──────────────┘   └────────────┘   └─────────────────┘

    On failure:
    - before upload      → 400/404, nothing to undo
    - upload fails       → ImageServiceError (500, upstream text in details)
    - DB write or commit → transaction rolls back (no orphan board),
      fails                uploaded file deleted best-effort

Feed filters (first match wins):
    search   title contains the term (case-insensitive) OR a tag equals it
    userId   pins created by that user
    boardId  pins on that board
"""

import logging
import os
import uuid
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pinboard.config import Settings
from pinboard.exceptions import DatabaseError, NotFoundError, ValidationError
from pinboard.models import Board, Like, Pin, PinTag, Save
from pinboard.schemas.pin import (
    CanvasOptions,
    InteractionCheckResponse,
    InteractionType,
    InteractResponse,
    PinDetailResponse,
    PinListResponse,
    PinResponse,
    TextOptions,
)
from pinboard.services.image_transform import plan_for_upload
from pinboard.services.imagekit_service import ImageKitService
from pinboard.services.relations import toggle_relation

logger = logging.getLogger(__name__)

PAGE_SIZE = 21

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}

INTERACTION_MODELS = {
    InteractionType.LIKE: Like,
    InteractionType.SAVE: Save,
}


def parse_cursor(raw: Optional[str]) -> int:
    """Page index from the query string; anything unusable means page 0."""
    try:
        page = int(raw) if raw is not None else 0
    except ValueError:
        return 0
    return max(page, 0)


def split_tags(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [tag.strip() for tag in raw.split(",") if tag.strip()]


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _parse_options(model, raw: Optional[str], field: str):
    try:
        return model.model_validate_json(raw)
    except PydanticValidationError as e:
        raise ValidationError(
            message=f"{field} is not valid JSON for this request",
            field=field,
            context={
                "errors": [
                    {"field": ".".join(str(loc) for loc in err["loc"]), "message": err["msg"]}
                    for err in e.errors()
                ]
            },
        )


class PinService:
    """
    Business logic for pins.

    Error Handling Strategy:
        Domain errors (ValidationError, NotFoundError, ImageServiceError)
        propagate unchanged. Unexpected SQLAlchemy errors are logged and
        wrapped in DatabaseError so raw driver messages never reach clients.
    """

    async def list_pins(
        self,
        db: AsyncSession,
        cursor: int = 0,
        search: Optional[str] = None,
        user_id: Optional[uuid.UUID] = None,
        board_id: Optional[uuid.UUID] = None,
    ) -> PinListResponse:
        """
        One feed page, newest first.

        Query plan (no filter):
            SELECT ... FROM pins ORDER BY created_at DESC, id
            LIMIT 21 OFFSET cursor * 21
            → idx_pins_created_at
        """
        query = select(Pin)

        if search:
            tagged = select(PinTag.pin_id).where(PinTag.name == search)
            query = query.where(
                or_(
                    Pin.title.ilike(f"%{_escape_like(search)}%", escape="\\"),
                    Pin.id.in_(tagged),
                )
            )
        elif user_id is not None:
            query = query.where(Pin.user_id == user_id)
        elif board_id is not None:
            query = query.where(Pin.board_id == board_id)

        query = (
            query.order_by(Pin.created_at.desc(), Pin.id)
            .offset(cursor * PAGE_SIZE)
            .limit(PAGE_SIZE)
        )

        try:
            result = await db.execute(query)
            pins = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing pins: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve pins. Please try again.",
                context={"error_type": type(e).__name__},
            )

        next_cursor = cursor + 1 if len(pins) == PAGE_SIZE else None
        logger.debug(
            "Listed %d pins (cursor=%d, search=%r, user=%s, board=%s)",
            len(pins), cursor, search, user_id, board_id,
        )
        return PinListResponse(
            pins=[PinResponse.model_validate(pin) for pin in pins],
            next_cursor=next_cursor,
        )

    async def get_pin(self, db: AsyncSession, pin_id: uuid.UUID) -> PinDetailResponse:
        result = await db.execute(
            select(Pin).options(selectinload(Pin.author)).where(Pin.id == pin_id)
        )
        pin = result.scalar_one_or_none()
        if pin is None:
            raise NotFoundError(resource="pin", resource_id=str(pin_id))
        return PinDetailResponse.model_validate(pin)

    async def create_pin(
        self,
        db: AsyncSession,
        image_service: ImageKitService,
        settings: Settings,
        user_id: uuid.UUID,
        filename: str,
        content: bytes,
        canvas_options: str,
        text_options: Optional[str],
        title: str,
        description: str,
        link: Optional[str] = None,
        board_id: Optional[uuid.UUID] = None,
        tags: Optional[str] = None,
        new_board: Optional[str] = None,
    ) -> PinResponse:
        """
        Validate, transform, upload and persist a new pin.

        Args:
            canvas_options:  JSON string (CanvasOptions)
            text_options:    JSON string (TextOptions); absent means no text
            board_id:        existing board; ignored when new_board is given
            tags:            comma-separated tag list
            new_board:       title of a board to create for this pin

        Raises:
            ValidationError:          bad file, bad option JSON
            NotFoundError:            board_id does not exist
            ImageServiceError:        ImageKit failed after retries
            CircuitBreakerOpenError:  ImageKit known to be down
            DatabaseError:            persisting failed
        """
        # ── Step 1: Validate the upload and options ──────────────────────
        self._validate_file(settings, filename, content)
        canvas = _parse_options(CanvasOptions, canvas_options, "canvasOptions")
        text = (
            _parse_options(TextOptions, text_options, "textOptions")
            if text_options
            else TextOptions()
        )

        new_board = (new_board or "").strip() or None
        if new_board is None and board_id is not None:
            if await db.get(Board, board_id) is None:
                raise NotFoundError(resource="board", resource_id=str(board_id))

        # ── Step 2: Compute the ImageKit pre-transformation ──────────────
        dims, plan = plan_for_upload(content, canvas, text)
        logger.info(
            "Pin upload %s: %dx%d (%s) → %dx%d, crop=%s",
            filename,
            dims.width,
            dims.height,
            dims.orientation,
            plan.width,
            plan.height,
            plan.cropping_strategy or "resize",
        )

        # ── Step 3: Upload ────────────────────────────────────────────────
        upload = await image_service.upload(content, filename, plan.transformation)

        # ── Step 4: Persist board (optional) and pin ──────────────────────
        # Both writes share one transaction, committed here rather than by
        # get_db_session so that a commit failure still reaches the cleanup
        # of the uploaded file.
        try:
            if new_board is not None:
                board = Board(title=new_board, user_id=user_id)
                db.add(board)
                await db.flush()
                board_id = board.id
                logger.info("Board created with pin: %s (%s)", board.title, board.id)

            pin = Pin(
                media=upload.file_path,
                width=upload.width or plan.width,
                height=upload.height or plan.height,
                title=title,
                description=description,
                link=link or None,
                board_id=board_id,
                user_id=user_id,
                tag_rows=[
                    PinTag(position=position, name=name)
                    for position, name in enumerate(split_tags(tags))
                ],
            )
            db.add(pin)
            await db.flush()
            await db.commit()
        except SQLAlchemyError as e:
            logger.error("Database error saving pin: %s", str(e), exc_info=True)
            await image_service.delete_file(upload.file_id)
            raise DatabaseError(
                message="Could not save the pin. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("Pin created: %s by %s", pin.id, user_id)
        return PinResponse.model_validate(pin)

    async def interaction_check(
        self,
        db: AsyncSession,
        pin_id: uuid.UUID,
        viewer_id: Optional[uuid.UUID] = None,
    ) -> InteractionCheckResponse:
        await self._require_pin(db, pin_id)

        like_count = await db.scalar(
            select(func.count()).select_from(Like).where(Like.pin_id == pin_id)
        )
        is_liked = is_saved = False
        if viewer_id is not None:
            is_liked = await self._has_row(db, Like, pin_id, viewer_id)
            is_saved = await self._has_row(db, Save, pin_id, viewer_id)

        return InteractionCheckResponse(
            like_count=like_count or 0,
            is_liked=is_liked,
            is_saved=is_saved,
        )

    async def toggle_interaction(
        self,
        db: AsyncSession,
        pin_id: uuid.UUID,
        user_id: uuid.UUID,
        interaction: InteractionType,
    ) -> InteractResponse:
        await self._require_pin(db, pin_id)
        active = await toggle_relation(
            db,
            INTERACTION_MODELS[interaction],
            pin_id=pin_id,
            user_id=user_id,
        )
        logger.info("Pin %s %s=%s by %s", pin_id, interaction.value, active, user_id)
        return InteractResponse(type=interaction, active=active)

    @staticmethod
    def _validate_file(settings: Settings, filename: str, content: bytes) -> None:
        ext = os.path.splitext(filename)[1].lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext or 'unknown'}' is not allowed. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="media",
                context={"extension": ext, "allowed": sorted(ALLOWED_EXTENSIONS)},
            )
        if not content:
            raise ValidationError(message="The uploaded file is empty.", field="media")
        if len(content) > settings.max_file_size:
            max_mb = settings.max_file_size / (1024 * 1024)
            raise ValidationError(
                message=f"File too large. Maximum size is {max_mb:.0f}MB.",
                field="media",
                context={"max_size_mb": max_mb, "actual_size": len(content)},
            )

    @staticmethod
    async def _require_pin(db: AsyncSession, pin_id: uuid.UUID) -> None:
        exists = await db.scalar(select(select(Pin.id).where(Pin.id == pin_id).exists()))
        if not exists:
            raise NotFoundError(resource="pin", resource_id=str(pin_id))

    @staticmethod
    async def _has_row(db: AsyncSession, model, pin_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        query = select(model.id).where(model.pin_id == pin_id, model.user_id == user_id)
        return bool(await db.scalar(select(query.exists())))


pin_service = PinService()
