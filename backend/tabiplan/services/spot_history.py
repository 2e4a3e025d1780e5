"""
Read side of the want-list: unvisited entries, and the visited-spot history
merged from visited want-list entries and stops of the user's past plans.

The two history sources are fetched, filtered and sorted independently and
only merged once both are reshaped into ``SpotRecord``.
"""

import logging
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tabiplan.api.schemas import (
    SortOrder, SpotRead, SpotRecord, UnvisitedSortKey, UnvisitedSpotsQuery,
    VisitedSortKey, VisitedSpotsQuery, WishlistRead,
)
from tabiplan.db.models import (
    DEPARTURE_PREFIX, DESTINATION_PREFIX, Plan, PlanSpot, Spot, SpotMeta, Trip, Wishlist,
)
from tabiplan.services.visit_count import count_visits, is_virtual_spot

logger = logging.getLogger(__name__)


def _start_of_day(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


def _direction(column, order: SortOrder):
    return column.desc() if order == SortOrder.DESC else column.asc()


# ===== FETCHES =====

async def fetch_unvisited_entries(
    session: AsyncSession,
    user_id: str,
    query: UnvisitedSpotsQuery,
) -> List[Wishlist]:
    stmt = (
        select(Wishlist)
        .where(Wishlist.user_id == user_id, Wishlist.visited.is_(False))
        .options(selectinload(Wishlist.spot).selectinload(Spot.meta))
    )
    if query.priority is not None:
        stmt = stmt.where(Wishlist.priority == query.priority)
    if query.prefecture:
        stmt = stmt.join(SpotMeta, SpotMeta.spot_id == Wishlist.spot_id).where(
            SpotMeta.prefecture == query.prefecture
        )

    if query.sort_by == UnvisitedSortKey.PRIORITY:
        stmt = stmt.order_by(_direction(Wishlist.priority, query.sort_order))
    elif query.sort_by == UnvisitedSortKey.CREATED_AT:
        stmt = stmt.order_by(_direction(Wishlist.created_at, query.sort_order))
    stmt = stmt.order_by(Wishlist.id.asc())

    result = await session.execute(stmt)
    return list(result.scalars().all())


async def fetch_visited_entries(
    session: AsyncSession,
    user_id: str,
    query: VisitedSpotsQuery,
) -> List[Wishlist]:
    """Visited want-list entries, date range applied to ``visited_at``"""
    stmt = (
        select(Wishlist)
        .where(Wishlist.user_id == user_id, Wishlist.visited.is_(True))
        .options(selectinload(Wishlist.spot).selectinload(Spot.meta))
    )
    if query.prefecture:
        stmt = stmt.join(SpotMeta, SpotMeta.spot_id == Wishlist.spot_id).where(
            SpotMeta.prefecture == query.prefecture
        )
    if query.date_from:
        stmt = stmt.where(Wishlist.visited_at >= _start_of_day(query.date_from))
    if query.date_to:
        stmt = stmt.where(Wishlist.visited_at <= _start_of_day(query.date_to))

    if query.sort_by == VisitedSortKey.VISITED_AT:
        stmt = stmt.order_by(_direction(Wishlist.visited_at, query.sort_order))
    elif query.sort_by == VisitedSortKey.CREATED_AT:
        stmt = stmt.order_by(_direction(Wishlist.created_at, query.sort_order))
    stmt = stmt.order_by(Wishlist.id.asc())

    result = await session.execute(stmt)
    return list(result.scalars().all())


async def fetch_past_plan_spots(
    session: AsyncSession,
    user_id: str,
    query: VisitedSpotsQuery,
) -> List[PlanSpot]:
    """
    Stops of the user's plans, virtual endpoints excluded, date range applied
    to the plan date. Dates are zero-padded ISO strings, so string comparison
    orders them correctly.
    """
    stmt = (
        select(PlanSpot)
        .join(Plan, PlanSpot.plan_id == Plan.id)
        .join(Trip, Plan.trip_id == Trip.id)
        .where(Trip.user_id == user_id)
        .where(
            ~PlanSpot.spot_id.startswith(DEPARTURE_PREFIX),
            ~PlanSpot.spot_id.startswith(DESTINATION_PREFIX),
        )
        .options(
            selectinload(PlanSpot.spot).selectinload(Spot.meta),
            selectinload(PlanSpot.plan).selectinload(Plan.trip),
        )
    )
    if query.date_from:
        stmt = stmt.where(Plan.date >= query.date_from.isoformat())
    if query.date_to:
        stmt = stmt.where(Plan.date <= query.date_to.isoformat())
    if query.prefecture:
        stmt = stmt.join(SpotMeta, SpotMeta.spot_id == PlanSpot.spot_id).where(
            SpotMeta.prefecture == query.prefecture
        )

    if query.sort_by in (VisitedSortKey.VISITED_AT, VisitedSortKey.CREATED_AT, VisitedSortKey.PLAN_DATE):
        stmt = stmt.order_by(_direction(Plan.date, query.sort_order))
    stmt = stmt.order_by(PlanSpot.id.asc())

    result = await session.execute(stmt)
    return list(result.scalars().all())


# ===== MERGE =====

def dedupe_plan_spots(plan_spots: List[PlanSpot], visited_spot_ids: set) -> List[PlanSpot]:
    """
    Keep the first occurrence of each spot, dropping virtual endpoints and
    spots already present in the visited bucket.
    """
    seen = set()
    unique = []
    for plan_spot in plan_spots:
        if is_virtual_spot(plan_spot.spot_id):
            continue
        if plan_spot.spot_id in visited_spot_ids or plan_spot.spot_id in seen:
            continue
        seen.add(plan_spot.spot_id)
        unique.append(plan_spot)
    return unique


def wishlist_record(entry: Wishlist, visit_count: int) -> SpotRecord:
    base = WishlistRead.model_validate(entry)
    return SpotRecord(**base.model_dump(), origin="wishlist", visit_count=visit_count)


def plan_spot_record(plan_spot: PlanSpot, user_id: str, visit_count: int) -> SpotRecord:
    """A past stop reshaped like a want-list entry; the plan date stands in for visited_at"""
    plan = plan_spot.plan
    trip = plan.trip
    return SpotRecord(
        id=plan_spot.id,
        origin="plan",
        spot_id=plan_spot.spot_id,
        user_id=user_id,
        memo=plan_spot.memo,
        priority=1,
        visited=False,
        visited_at=datetime.fromisoformat(plan.date).replace(tzinfo=timezone.utc),
        created_at=trip.created_at if trip else None,
        updated_at=trip.updated_at if trip else None,
        spot=SpotRead.model_validate(plan_spot.spot),
        plan_date=plan.date,
        visit_count=visit_count,
    )


def record_date(record: SpotRecord) -> str:
    """Plan date, or the UTC calendar date of the visit"""
    if record.plan_date:
        return record.plan_date
    if record.visited_at is None:
        return ""
    visited_at = record.visited_at
    if visited_at.tzinfo is not None:
        visited_at = visited_at.astimezone(timezone.utc)
    return visited_at.date().isoformat()


def merge_records(
    visited: List[SpotRecord],
    planned: List[SpotRecord],
    sort_by: VisitedSortKey,
    sort_order: SortOrder,
) -> List[SpotRecord]:
    descending = sort_order == SortOrder.DESC

    if sort_by == VisitedSortKey.VISIT_COUNT:
        combined = visited + planned
        combined.sort(key=lambda r: (-r.visit_count if descending else r.visit_count, r.id))
        return combined

    if sort_by == VisitedSortKey.PLAN_DATE:
        combined = visited + planned
        combined.sort(key=record_date, reverse=descending)
        return combined

    # visited bucket always precedes the plan bucket
    return visited + planned


# ===== PUBLIC OPERATIONS =====

async def get_unvisited_wishlist_spots(
    session: AsyncSession,
    user_id: str,
    query: Optional[UnvisitedSpotsQuery] = None,
) -> List[WishlistRead]:
    query = query or UnvisitedSpotsQuery()
    entries = await fetch_unvisited_entries(session, user_id, query)
    return [WishlistRead.model_validate(entry) for entry in entries]


async def get_visited_spots(
    session: AsyncSession,
    user_id: str,
    query: Optional[VisitedSpotsQuery] = None,
) -> List[SpotRecord]:
    query = query or VisitedSpotsQuery()

    visited_entries = await fetch_visited_entries(session, user_id, query)
    plan_spots = await fetch_past_plan_spots(session, user_id, query)

    visited_spot_ids = {entry.spot_id for entry in visited_entries}
    unique_plan_spots = dedupe_plan_spots(plan_spots, visited_spot_ids)

    # counted over the date-filtered stops before deduplication
    visit_counts: Dict[str, int] = count_visits(visited_entries, plan_spots)

    visited = [
        wishlist_record(entry, visit_counts.get(entry.spot_id, 1))
        for entry in visited_entries
    ]
    planned = [
        plan_spot_record(plan_spot, user_id, visit_counts.get(plan_spot.spot_id, 1))
        for plan_spot in unique_plan_spots
    ]

    if query.min_visit_count is not None:
        visited = [r for r in visited if r.visit_count >= query.min_visit_count]
        planned = [r for r in planned if r.visit_count >= query.min_visit_count]

    records = merge_records(visited, planned, query.sort_by, query.sort_order)
    logger.debug(
        f"Visited spots for {user_id}: {len(visited)} visited, {len(planned)} planned"
    )
    return records
