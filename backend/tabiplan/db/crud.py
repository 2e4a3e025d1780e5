"""
Query helpers shared by the service layer.

Errors are not caught here: a failing query propagates to the service,
which decides whether to roll back.
"""

import logging
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tabiplan.db.models import (
    User, Spot, Trip, Plan, PlanSpot, Wishlist,
    DEPARTURE_PREFIX, DESTINATION_PREFIX,
)

logger = logging.getLogger(__name__)

# ===== USER OPERATIONS =====

async def ensure_user(session: AsyncSession, user_id: str) -> User:
    """Mirror an authenticated identity into the users table if it is missing"""
    user = await session.get(User, user_id)
    if user is None:
        user = User(id=user_id)
        session.add(user)
        logger.info(f"Registered user mirror: {user_id}")
    return user

# ===== TRIP OPERATIONS =====

def trip_detail_options():
    """Eager loads for a fully nested trip"""
    spot_path = selectinload(Trip.plans).selectinload(Plan.plan_spots).selectinload(PlanSpot.spot)
    return (
        selectinload(Trip.trip_infos),
        spot_path.selectinload(Spot.meta),
        spot_path.selectinload(Spot.nearest_stations),
        selectinload(Trip.plans).selectinload(Plan.transports),
    )

async def get_trip_detail(
    session: AsyncSession,
    trip_id: int,
    user_id: Optional[str] = None,
    refresh: bool = False,
) -> Optional[Trip]:
    """Trip with infos, plans, plan spots (spot, meta, stations) and transports"""
    stmt = select(Trip).where(Trip.id == trip_id).options(*trip_detail_options())
    if user_id is not None:
        stmt = stmt.where(Trip.user_id == user_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()

async def list_user_trips(session: AsyncSession, user_id: str) -> List[Trip]:
    result = await session.execute(
        select(Trip)
        .where(Trip.user_id == user_id)
        .options(selectinload(Trip.trip_infos), selectinload(Trip.plans))
        .order_by(Trip.id)
    )
    return list(result.scalars().all())

async def count_user_trips(session: AsyncSession, user_id: str) -> int:
    count = await session.scalar(
        select(func.count(Trip.id)).where(Trip.user_id == user_id)
    )
    return count or 0

async def list_user_endpoint_spots(session: AsyncSession, user_id: str) -> List[PlanSpot]:
    """Plan spots of the user's trips whose spot is a virtual endpoint"""
    result = await session.execute(
        select(PlanSpot)
        .join(Plan, PlanSpot.plan_id == Plan.id)
        .join(Trip, Plan.trip_id == Trip.id)
        .where(Trip.user_id == user_id)
        .where(PlanSpot.spot_id.startswith(DEPARTURE_PREFIX) | PlanSpot.spot_id.startswith(DESTINATION_PREFIX))
        .options(selectinload(PlanSpot.spot).selectinload(Spot.meta))
        .order_by(PlanSpot.id)
    )
    return list(result.scalars().all())

# ===== WISHLIST OPERATIONS =====

async def count_user_wishlist(session: AsyncSession, user_id: str) -> int:
    count = await session.scalar(
        select(func.count(Wishlist.id)).where(Wishlist.user_id == user_id)
    )
    return count or 0

async def get_wishlist_entry(
    session: AsyncSession,
    entry_id: int,
    user_id: str,
    refresh: bool = False,
) -> Optional[Wishlist]:
    stmt = (
        select(Wishlist)
        .where(Wishlist.id == entry_id, Wishlist.user_id == user_id)
        .options(selectinload(Wishlist.spot).selectinload(Spot.meta))
    )
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()

async def find_wishlist_entry(
    session: AsyncSession,
    user_id: str,
    spot_id: str,
) -> Optional[Wishlist]:
    result = await session.execute(
        select(Wishlist).where(Wishlist.user_id == user_id, Wishlist.spot_id == spot_id)
    )
    return result.scalar_one_or_none()

async def list_user_wishlist(session: AsyncSession, user_id: str) -> List[Wishlist]:
    result = await session.execute(
        select(Wishlist)
        .where(Wishlist.user_id == user_id)
        .options(selectinload(Wishlist.spot).selectinload(Spot.meta))
        .order_by(Wishlist.priority.desc(), Wishlist.id.asc())
    )
    return list(result.scalars().all())
