from typing import List

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from tabiplan.api.rate_limit import READ_LIMIT, WRITE_LIMIT, limiter
from tabiplan.api.schemas import CountRead, EndpointHistoryRead, TripCreate, TripRead, TripSummaryRead
from tabiplan.core.security import get_current_user_id
from tabiplan.db.session import get_db_session
from tabiplan.services import trips as trip_service
from tabiplan.services.itinerary_writer import ItineraryWriter

router = APIRouter(prefix="/trips", tags=["trips"])


@router.get("/", response_model=List[TripSummaryRead])
@limiter.limit(READ_LIMIT)
async def list_trips(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    return await trip_service.list_trips(session, user_id)


@router.get("/count", response_model=CountRead)
@limiter.limit(READ_LIMIT)
async def count_trips(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    return await trip_service.count_trips(session, user_id)


@router.get("/departures-destinations", response_model=EndpointHistoryRead)
@limiter.limit(READ_LIMIT)
async def list_departures_and_destinations(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    """Departure and destination points used in past plans"""
    return await trip_service.list_departures_and_destinations(session, user_id)


@router.get("/{trip_id}", response_model=TripRead)
@limiter.limit(READ_LIMIT)
async def read_trip(
    request: Request,
    trip_id: int,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    return await trip_service.get_trip_detail(session, user_id, trip_id)


@router.post("/",
    response_model=TripRead,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid itinerary or application limit reached"},
        429: {"description": "Rate limit exceeded"},
        500: {"description": "Itinerary could not be saved"}
    },
    summary="Create a multi-day itinerary",
    description="Registers unknown spots, stores the trip with its plans and derives transport edges in one transaction"
)
@limiter.limit(WRITE_LIMIT)
async def create_trip(
    request: Request,
    payload: TripCreate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    return await ItineraryWriter(session).create_itinerary(user_id, payload)


@router.delete("/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(WRITE_LIMIT)
async def remove_trip(
    request: Request,
    trip_id: int,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    await trip_service.delete_trip(session, user_id, trip_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
