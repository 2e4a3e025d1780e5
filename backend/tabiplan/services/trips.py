import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tabiplan.api.schemas import CountRead, EndpointHistoryRead, EndpointRead
from tabiplan.core.errors import NotFoundError, StorageFailure
from tabiplan.core.settings import Settings
from tabiplan.db import crud
from tabiplan.db.models import DEPARTURE_PREFIX, DESTINATION_PREFIX, Trip

logger = logging.getLogger(__name__)


async def list_trips(session: AsyncSession, user_id: str) -> List[Trip]:
    return await crud.list_user_trips(session, user_id)


async def get_trip_detail(session: AsyncSession, user_id: str, trip_id: int) -> Trip:
    """Fully nested trip; plan spots come back sorted by their order"""
    trip = await crud.get_trip_detail(session, trip_id, user_id=user_id)
    if trip is None:
        raise NotFoundError("Trip", trip_id)
    return trip


async def delete_trip(session: AsyncSession, user_id: str, trip_id: int) -> None:
    trip = await get_trip_detail(session, user_id, trip_id)
    try:
        await session.delete(trip)
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to delete trip {trip_id}: {e}")
        raise StorageFailure("Failed to delete trip") from e
    logger.info(f"Deleted trip {trip_id} for user {user_id}")


async def count_trips(
    session: AsyncSession,
    user_id: str,
    settings: Optional[Settings] = None,
) -> CountRead:
    settings = settings or Settings()
    count = await crud.count_user_trips(session, user_id)
    return CountRead(count=count, limit=settings.MAX_PLANS)


async def list_departures_and_destinations(
    session: AsyncSession,
    user_id: str,
) -> EndpointHistoryRead:
    """
    Endpoints used in the user's past plans, split by prefix and deduplicated
    by name. The first occurrence of a name wins.
    """
    buckets = {DEPARTURE_PREFIX: [], DESTINATION_PREFIX: []}
    seen = {DEPARTURE_PREFIX: set(), DESTINATION_PREFIX: set()}

    for plan_spot in await crud.list_user_endpoint_spots(session, user_id):
        meta = plan_spot.spot.meta if plan_spot.spot else None
        if meta is None:
            continue
        prefix = DEPARTURE_PREFIX if plan_spot.spot_id.startswith(DEPARTURE_PREFIX) else DESTINATION_PREFIX
        if meta.name in seen[prefix]:
            continue
        seen[prefix].add(meta.name)
        buckets[prefix].append(EndpointRead(
            id=plan_spot.spot_id,
            name=meta.name,
            lat=meta.latitude,
            lng=meta.longitude,
        ))

    return EndpointHistoryRead(
        departure=buckets[DEPARTURE_PREFIX],
        destination=buckets[DESTINATION_PREFIX],
    )
