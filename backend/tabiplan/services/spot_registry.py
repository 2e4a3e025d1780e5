"""
Create-if-absent registration of spots referenced by incoming itineraries
and want-list entries.

Nothing here flushes or commits: rows are added to the caller's session so
they share its transaction.
"""

import logging
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tabiplan.api.schemas import SpotMetaBase, SpotPayload, NearestStationPayload
from tabiplan.db.models import Spot, SpotMeta, NearestStation

logger = logging.getLogger(__name__)

# Bare endpoint ids that are never looked up or registered.
# TODO: confirm with product whether these unsuffixed ids are still sent by any client;
# all current clients suffix endpoint ids, which makes this branch unreachable.
RESERVED_SPOT_IDS = frozenset({"departure", "destination"})


def register_spot(
    session: AsyncSession,
    spot_id: str,
    meta: SpotMetaBase,
    nearest_station: Optional[NearestStationPayload] = None,
) -> Spot:
    """Stage a new Spot with its metadata (and nearest station, when known)"""
    spot = Spot(id=spot_id)
    spot.meta = SpotMeta(
        id=spot_id,
        spot_id=spot_id,
        name=meta.name,
        latitude=meta.latitude,
        longitude=meta.longitude,
        image=meta.image or "",
        url=meta.url or "",
        prefecture=meta.prefecture or "",
        address=meta.address or "",
        rating=meta.rating if meta.rating is not None else 0,
        categories=meta.categories,
        catchphrase=meta.catchphrase or "",
        description=meta.description or "",
        opening_hours=[oh.model_dump() for oh in meta.opening_hours] if meta.opening_hours else None,
    )
    if nearest_station is not None:
        spot.nearest_stations.append(NearestStation(
            name=nearest_station.name,
            walking_time=nearest_station.walking_time,
            latitude=nearest_station.lat,
            longitude=nearest_station.lng,
        ))
    session.add(spot)
    return spot


def meta_from_payload(payload: SpotPayload) -> SpotMetaBase:
    """Descriptive metadata carried on an itinerary stop"""
    return SpotMetaBase(
        name=payload.location.name,
        latitude=payload.location.lat,
        longitude=payload.location.lng,
        image=payload.image,
        url=payload.url,
        prefecture=payload.prefecture,
        address=payload.address,
        rating=payload.rating,
        categories=payload.category,
        catchphrase=payload.catchphrase,
        description=payload.description,
        opening_hours=payload.regular_opening_hours,
    )


async def find_existing_spot_ids(session: AsyncSession, spot_ids: Iterable[str]) -> set:
    ids = list(spot_ids)
    if not ids:
        return set()
    result = await session.execute(select(Spot.id).where(Spot.id.in_(ids)))
    return set(result.scalars().all())


async def ensure_spots(session: AsyncSession, spots: Iterable[SpotPayload]) -> List[str]:
    """
    Register every referenced spot that does not exist yet.

    The first payload seen for an id supplies its metadata. Existing spots are
    left untouched. Returns the ids that were newly registered.
    """
    candidates = {}
    for payload in spots:
        if payload.id in RESERVED_SPOT_IDS:
            continue
        candidates.setdefault(payload.id, payload)

    existing = await find_existing_spot_ids(session, candidates.keys())

    created = []
    for spot_id, payload in candidates.items():
        if spot_id in existing:
            continue
        register_spot(session, spot_id, meta_from_payload(payload), payload.nearest_station)
        created.append(spot_id)

    if created:
        logger.info(f"Registering {len(created)} new spots")
    return created
