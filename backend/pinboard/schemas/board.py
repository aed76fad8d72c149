"""Board schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pinboard.schemas.common import APIModel
from pinboard.schemas.pin import PinResponse


class BoardResponse(APIModel):
    id: uuid.UUID
    title: str
    user_id: uuid.UUID
    created_at: datetime


class BoardWithPinsResponse(BoardResponse):
    pin_count: int
    first_pin: Optional[PinResponse] = None
