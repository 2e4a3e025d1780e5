"""
Want-list CRUD. Each write runs in the caller's session and commits on
success; storage errors roll back and surface as ``StorageFailure``.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tabiplan.api.schemas import CountRead, WishlistCreate, WishlistUpdate
from tabiplan.core.errors import ConflictError, NotFoundError, StorageFailure, TabiplanError, ValidationFailure
from tabiplan.core.settings import Settings
from tabiplan.db import crud
from tabiplan.db.models import Spot, Wishlist, utc_now
from tabiplan.services.spot_registry import register_spot

logger = logging.getLogger(__name__)


async def list_wishlist(session: AsyncSession, user_id: str) -> List[Wishlist]:
    return await crud.list_user_wishlist(session, user_id)


async def count_wishlist(
    session: AsyncSession,
    user_id: str,
    settings: Optional[Settings] = None,
) -> CountRead:
    settings = settings or Settings()
    count = await crud.count_user_wishlist(session, user_id)
    return CountRead(count=count, limit=settings.MAX_WISHLIST_SPOTS)


async def create_wishlist_entry(
    session: AsyncSession,
    user_id: str,
    payload: WishlistCreate,
    settings: Optional[Settings] = None,
) -> Wishlist:
    settings = settings or Settings()
    if await crud.count_user_wishlist(session, user_id) >= settings.MAX_WISHLIST_SPOTS:
        raise ValidationFailure(
            f"Wishlist limit reached ({settings.MAX_WISHLIST_SPOTS} spots)"
        )

    try:
        await crud.ensure_user(session, user_id)
        if await crud.find_wishlist_entry(session, user_id, payload.spot_id) is not None:
            raise ConflictError(f"Spot {payload.spot_id} is already in the wishlist")

        if await session.get(Spot, payload.spot_id) is None:
            register_spot(session, payload.spot_id, payload.spot.meta)

        visited_at = payload.visited_at
        if payload.visited and visited_at is None:
            visited_at = utc_now()

        entry = Wishlist(
            user_id=user_id,
            spot_id=payload.spot_id,
            memo=payload.memo,
            priority=payload.priority,
            visited=payload.visited,
            visited_at=visited_at,
        )
        session.add(entry)
        await session.flush()

        created = await crud.get_wishlist_entry(session, entry.id, user_id, refresh=True)
        await session.commit()
    except TabiplanError:
        await session.rollback()
        raise
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to add {payload.spot_id} to wishlist of {user_id}: {e}")
        raise StorageFailure("Failed to save wishlist entry") from e

    logger.info(f"Added spot {payload.spot_id} to wishlist of {user_id}")
    return created


async def update_wishlist_entry(
    session: AsyncSession,
    user_id: str,
    payload: WishlistUpdate,
) -> Wishlist:
    """Replace memo, priority and visited state; visited_at follows the visited flag"""
    entry = await crud.get_wishlist_entry(session, payload.id, user_id)
    if entry is None:
        raise NotFoundError("Wishlist entry", payload.id)

    entry.memo = payload.memo
    entry.priority = payload.priority
    entry.visited = payload.visited
    if payload.visited:
        entry.visited_at = payload.visited_at or entry.visited_at or utc_now()
    else:
        entry.visited_at = None

    try:
        await session.flush()
        updated = await crud.get_wishlist_entry(session, entry.id, user_id, refresh=True)
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to update wishlist entry {payload.id}: {e}")
        raise StorageFailure("Failed to update wishlist entry") from e

    logger.info(f"Updated wishlist entry {payload.id} for user {user_id}")
    return updated


async def delete_wishlist_entry(session: AsyncSession, user_id: str, entry_id: int) -> None:
    entry = await crud.get_wishlist_entry(session, entry_id, user_id)
    if entry is None:
        raise NotFoundError("Wishlist entry", entry_id)

    try:
        await session.delete(entry)
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to delete wishlist entry {entry_id}: {e}")
        raise StorageFailure("Failed to delete wishlist entry") from e

    logger.info(f"Deleted wishlist entry {entry_id} for user {user_id}")
