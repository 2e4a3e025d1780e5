"""
Itinerary construction.

A submitted multi-day plan is written in one transaction: missing spots are
registered, the trip with its day infos, plans and ordered plan spots is
inserted, each plan gets its transport chain, and the nested trip is read
back. Any failure rolls the whole unit of work back.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tabiplan.api.schemas import TripCreate
from tabiplan.core.errors import StorageFailure, ValidationFailure
from tabiplan.core.settings import Settings
from tabiplan.db.crud import count_user_trips, ensure_user, get_trip_detail
from tabiplan.db.models import Trip, TripInfo, Plan, PlanSpot
from tabiplan.services.spot_registry import ensure_spots
from tabiplan.services.transport_chain import build_transport_chain

logger = logging.getLogger(__name__)


@asynccontextmanager
async def performance_timer(operation: str):
    """Context manager for timing operations"""
    start = time.time()
    try:
        yield
    finally:
        duration = time.time() - start
        logger.info(f"{operation} completed in {duration:.2f}s")


class ItineraryWriter:
    """Writes user-submitted itineraries"""

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or Settings()

    async def check_limits(self, user_id: str, payload: TripCreate) -> None:
        """Per-user application limits, checked before anything is written"""
        if len(payload.plans) > self.settings.MAX_PLAN_DAYS:
            raise ValidationFailure(
                f"A trip can span at most {self.settings.MAX_PLAN_DAYS} days"
            )
        for plan in payload.plans:
            if len(plan.spots) > self.settings.MAX_SPOTS_PER_DAY:
                raise ValidationFailure(
                    f"A day can hold at most {self.settings.MAX_SPOTS_PER_DAY} spots"
                )
        if await count_user_trips(self.session, user_id) >= self.settings.MAX_PLANS:
            raise ValidationFailure(
                f"Trip limit reached ({self.settings.MAX_PLANS} trips)"
            )

    def stage_trip(self, user_id: str, payload: TripCreate) -> Trip:
        """Build the Trip graph (infos, plans, ordered plan spots) and add it to the session"""
        trip = Trip(
            title=payload.title,
            image_url=payload.image_url,
            start_date=payload.start_date.isoformat(),
            end_date=payload.end_date.isoformat(),
            user_id=user_id,
        )
        for info in payload.trip_info:
            trip.trip_infos.append(TripInfo(
                date=info.date.isoformat(),
                genre_id=info.genre_id,
                transportation_methods=list(info.transportation_method),
                memo=info.memo or "",
            ))
        for plan_payload in payload.plans:
            plan = Plan(date=plan_payload.date.isoformat())
            for spot in plan_payload.spots:
                plan.plan_spots.append(PlanSpot(
                    spot_id=spot.id,
                    stay_start=spot.stay_start,
                    stay_end=spot.stay_end,
                    memo=spot.memo,
                    order=spot.order,
                ))
            trip.plans.append(plan)
        self.session.add(trip)
        return trip

    async def link_transports(self, trip: Trip, payload: TripCreate) -> int:
        """Add the transport chain of every plan; stops must already be flushed"""
        created = 0
        for plan, plan_payload in zip(trip.plans, payload.plans):
            ordered = sorted(
                zip(plan.plan_spots, plan_payload.spots),
                key=lambda pair: pair[0].order,
            )
            edges = build_transport_chain(
                plan.id,
                [plan_spot for plan_spot, _ in ordered],
                [spot.transports for _, spot in ordered],
            )
            self.session.add_all(edges)
            created += len(edges)
        return created

    async def create_itinerary(self, user_id: str, payload: TripCreate) -> Trip:
        await self.check_limits(user_id, payload)

        async with performance_timer("itinerary_creation"):
            try:
                await ensure_user(self.session, user_id)
                await ensure_spots(
                    self.session,
                    [spot for plan in payload.plans for spot in plan.spots],
                )

                trip = self.stage_trip(user_id, payload)
                await self.session.flush()

                edge_count = await self.link_transports(trip, payload)
                await self.session.flush()

                full_trip = await get_trip_detail(self.session, trip.id, refresh=True)
                await self.session.commit()
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.error(f"Failed to persist itinerary for user {user_id}: {e}")
                raise StorageFailure("Failed to save itinerary") from e
            except Exception:
                await self.session.rollback()
                logger.exception(f"Itinerary creation aborted for user {user_id}")
                raise

        logger.info(
            f"Created trip {full_trip.id} for user {user_id}: "
            f"{len(full_trip.plans)} plans, {edge_count} transport edges"
        )
        return full_trip


async def create_itinerary(session: AsyncSession, user_id: str, payload: TripCreate) -> Trip:
    return await ItineraryWriter(session).create_itinerary(user_id, payload)
