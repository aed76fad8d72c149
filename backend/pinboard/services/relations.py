"""
Atomic on/off toggle for presence-based relations (follow, like, save).

The row's existence is the state. A toggle first deletes the row; if nothing
was deleted the relation was off, so it inserts one inside a savepoint. A
concurrent request that inserted the same pair first makes our insert fail on
the unique constraint, which means the relation is now on either way.
"""

import logging
from typing import Any, Type

from sqlalchemy import and_, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pinboard.database import Base

logger = logging.getLogger(__name__)


async def toggle_relation(db: AsyncSession, model: Type[Base], **keys: Any) -> bool:
    """
    Flip the relation identified by ``keys`` and return its new state.

    Example:
        active = await toggle_relation(db, Like, pin_id=pin.id, user_id=me)
    """
    conditions = [getattr(model, column) == value for column, value in keys.items()]
    result = await db.execute(
        delete(model)
        .where(and_(*conditions))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        logger.debug("%s removed: %s", model.__tablename__, keys)
        return False

    try:
        async with db.begin_nested():
            db.add(model(**keys))
    except IntegrityError:
        logger.info("%s already created by a concurrent request: %s", model.__tablename__, keys)
        return True

    logger.debug("%s created: %s", model.__tablename__, keys)
    return True
