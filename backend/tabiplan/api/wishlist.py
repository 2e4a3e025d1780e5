from typing import List

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from tabiplan.api.rate_limit import READ_LIMIT, WRITE_LIMIT, limiter
from tabiplan.api.schemas import CountRead, WishlistCreate, WishlistRead, WishlistUpdate
from tabiplan.core.security import get_current_user_id
from tabiplan.db.session import get_db_session
from tabiplan.services import wishlist as wishlist_service

router = APIRouter(prefix="/wishlist", tags=["wishlist"])


@router.get("/", response_model=List[WishlistRead])
@limiter.limit(READ_LIMIT)
async def list_wishlist(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    return await wishlist_service.list_wishlist(session, user_id)


@router.get("/count", response_model=CountRead)
@limiter.limit(READ_LIMIT)
async def count_wishlist(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    return await wishlist_service.count_wishlist(session, user_id)


@router.post("/", response_model=WishlistRead, status_code=status.HTTP_201_CREATED)
@limiter.limit(WRITE_LIMIT)
async def add_to_wishlist(
    request: Request,
    payload: WishlistCreate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    return await wishlist_service.create_wishlist_entry(session, user_id, payload)


@router.put("/", response_model=WishlistRead)
@limiter.limit(WRITE_LIMIT)
async def update_wishlist(
    request: Request,
    payload: WishlistUpdate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    return await wishlist_service.update_wishlist_entry(session, user_id, payload)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(WRITE_LIMIT)
async def remove_from_wishlist(
    request: Request,
    entry_id: int,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    await wishlist_service.delete_wishlist_entry(session, user_id, entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
