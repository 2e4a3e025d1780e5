from typing import Annotated, List

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tabiplan.api.rate_limit import READ_LIMIT, limiter
from tabiplan.api.schemas import SpotRecord, UnvisitedSpotsQuery, VisitedSpotsQuery, WishlistRead
from tabiplan.core.security import get_current_user_id
from tabiplan.db.session import get_db_session
from tabiplan.services.spot_history import get_unvisited_wishlist_spots, get_visited_spots

router = APIRouter(prefix="/spots", tags=["spots"])


@router.get("/visited",
    response_model=List[SpotRecord],
    summary="Visited spot history",
    description="Visited wishlist entries merged with the stops of past plans, with visit counts"
)
@limiter.limit(READ_LIMIT)
async def list_visited_spots(
    request: Request,
    query: Annotated[VisitedSpotsQuery, Query()],
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    return await get_visited_spots(session, user_id, query)


@router.get("/unvisited", response_model=List[WishlistRead])
@limiter.limit(READ_LIMIT)
async def list_unvisited_spots(
    request: Request,
    query: Annotated[UnvisitedSpotsQuery, Query()],
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    return await get_unvisited_wishlist_spots(session, user_id, query)
