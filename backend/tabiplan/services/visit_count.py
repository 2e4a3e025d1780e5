from collections import Counter
from typing import Dict, Iterable

from tabiplan.db.models import DEPARTURE_PREFIX, DESTINATION_PREFIX, PlanSpot, Wishlist


def is_virtual_spot(spot_id: str) -> bool:
    """Departure/destination endpoints are not real places"""
    return spot_id.startswith(DEPARTURE_PREFIX) or spot_id.startswith(DESTINATION_PREFIX)


def count_visits(
    visited_entries: Iterable[Wishlist],
    plan_spots: Iterable[PlanSpot],
) -> Dict[str, int]:
    """
    Times each spot was encountered: one per visited want-list entry plus one
    per past plan spot referencing it.

    ``plan_spots`` is the date-filtered set *before* deduplication, so a spot
    planned in three trips counts three.
    """
    counts = Counter()
    for entry in visited_entries:
        if not is_virtual_spot(entry.spot_id):
            counts[entry.spot_id] += 1
    for plan_spot in plan_spots:
        if not is_virtual_spot(plan_spot.spot_id):
            counts[plan_spot.spot_id] += 1
    return dict(counts)
