"""
Pinboard Backend — Pin Route Handlers
=======================================

What:  Feed, pin detail, pin creation (multipart upload) and like/save.

Path order matters: /pins/interaction-check/{id} is declared before
/pins/{id} so the literal segment is not captured as a pin id.

POST /pins form fields:
    media          image file (png, jpg, jpeg, gif, webp)
    title          required
    description    required
    link           optional URL
    board          optional existing board id
    newBoard       optional title of a board to create for this pin
    tags           optional comma-separated list
    canvasOptions  JSON, see CanvasOptions
    textOptions    optional JSON, see TextOptions
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from pinboard.config import Settings
from pinboard.database import get_db_session
from pinboard.dependencies import (
    get_current_user_id,
    get_image_service,
    get_optional_user_id,
    get_settings,
)
from pinboard.exceptions import ValidationError
from pinboard.schemas.common import ErrorResponse
from pinboard.schemas.pin import (
    InteractionCheckResponse,
    InteractRequest,
    InteractResponse,
    PinDetailResponse,
    PinListResponse,
    PinResponse,
)
from pinboard.services.imagekit_service import ImageKitService
from pinboard.services.pin_service import parse_cursor, pin_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pins", tags=["Pins"])


def _optional_uuid(raw: Optional[str], field: str) -> Optional[uuid.UUID]:
    # Multipart forms send "" for untouched inputs
    if raw is None or not raw.strip():
        return None
    try:
        return uuid.UUID(raw.strip())
    except ValueError:
        raise ValidationError(message=f"{field} must be a valid id", field=field)


@router.get(
    "",
    response_model=PinListResponse,
    summary="Paginated pin feed",
    description=(
        "21 pins per page, newest first. `cursor` is the page index returned as "
        "`nextCursor` by the previous page. Filters apply in order of precedence: "
        "search, then userId, then boardId."
    ),
)
async def list_pins(
    cursor: Optional[str] = Query(default=None, description="Page index (default 0)"),
    search: Optional[str] = Query(default=None, description="Title substring or exact tag"),
    user_id: Optional[uuid.UUID] = Query(default=None, alias="userId"),
    board_id: Optional[uuid.UUID] = Query(default=None, alias="boardId"),
    db: AsyncSession = Depends(get_db_session),
) -> PinListResponse:
    return await pin_service.list_pins(
        db,
        cursor=parse_cursor(cursor),
        search=search or None,
        user_id=user_id,
        board_id=board_id,
    )


@router.get(
    "/interaction-check/{pin_id}",
    response_model=InteractionCheckResponse,
    responses={404: {"description": "Unknown pin", "model": ErrorResponse}},
    summary="Like count and the caller's like/save state",
)
async def interaction_check(
    pin_id: uuid.UUID,
    db: AsyncSession = Depends(get_db_session),
    viewer_id: Optional[uuid.UUID] = Depends(get_optional_user_id),
) -> InteractionCheckResponse:
    return await pin_service.interaction_check(db, pin_id, viewer_id)


@router.get(
    "/{pin_id}",
    response_model=PinDetailResponse,
    responses={404: {"description": "Unknown pin", "model": ErrorResponse}},
    summary="Single pin with its author",
)
async def get_pin(
    pin_id: uuid.UUID,
    db: AsyncSession = Depends(get_db_session),
) -> PinDetailResponse:
    return await pin_service.get_pin(db, pin_id)


@router.post(
    "",
    status_code=201,
    response_model=PinResponse,
    responses={
        400: {"description": "Invalid image, options or form fields", "model": ErrorResponse},
        401: {"description": "Not logged in", "model": ErrorResponse},
        404: {"description": "Unknown board", "model": ErrorResponse},
        500: {"description": "Image service failed", "model": ErrorResponse},
        503: {"description": "Image service circuit open", "model": ErrorResponse},
    },
    summary="Create a pin from an uploaded image",
)
async def create_pin(
    media: UploadFile = File(..., description="Image file"),
    title: str = Form(..., min_length=1, max_length=200),
    description: str = Form(..., min_length=1),
    link: Optional[str] = Form(default=None, max_length=500),
    board: Optional[str] = Form(default=None),
    new_board: Optional[str] = Form(default=None, alias="newBoard", max_length=200),
    tags: Optional[str] = Form(default=None),
    canvas_options: str = Form(..., alias="canvasOptions"),
    text_options: Optional[str] = Form(default=None, alias="textOptions"),
    db: AsyncSession = Depends(get_db_session),
    user_id: uuid.UUID = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
    image_service: ImageKitService = Depends(get_image_service),
) -> PinResponse:
    try:
        content = await media.read()
    finally:
        await media.close()

    logger.info(
        "Received pin upload: filename=%s, size=%d bytes",
        media.filename or "unknown",
        len(content),
    )

    return await pin_service.create_pin(
        db,
        image_service,
        settings,
        user_id=user_id,
        filename=media.filename or "upload.jpg",
        content=content,
        canvas_options=canvas_options,
        text_options=text_options,
        title=title,
        description=description,
        link=link,
        board_id=_optional_uuid(board, "board"),
        tags=tags,
        new_board=new_board,
    )


@router.post(
    "/interact/{pin_id}",
    response_model=InteractResponse,
    responses={
        400: {"description": "Unknown interaction type", "model": ErrorResponse},
        401: {"description": "Not logged in", "model": ErrorResponse},
        404: {"description": "Unknown pin", "model": ErrorResponse},
    },
    summary="Toggle a like or save",
)
async def interact(
    pin_id: uuid.UUID,
    payload: InteractRequest,
    db: AsyncSession = Depends(get_db_session),
    user_id: uuid.UUID = Depends(get_current_user_id),
) -> InteractResponse:
    return await pin_service.toggle_interaction(db, pin_id, user_id, payload.type)
