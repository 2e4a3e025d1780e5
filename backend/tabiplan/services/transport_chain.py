"""
Derives the directed transport edges of one plan:

    DEPARTURE -> stop[0] -> stop[1] -> ... -> stop[N-1] -> DESTINATION

Each stop-to-stop edge uses the transport payload attached to the stop being
left. The two endpoint edges are fixed and ignore any payload.
"""

from typing import List, Sequence

from tabiplan.api.schemas import TransportPayload
from tabiplan.db.models import PlanSpot, Transport, TransportNodeType

UNKNOWN_TRAVEL_TIME = "unknown"
DEPARTURE_LABEL = "departure"
ARRIVAL_LABEL = "arrival"
ENDPOINT_TRANSPORT_METHODS = [1]


def build_transport_chain(
    plan_id: int,
    plan_spots: Sequence[PlanSpot],
    payloads: Sequence[TransportPayload],
) -> List[Transport]:
    """
    Build the N+1 edges for N persisted stops.

    ``plan_spots`` must already carry database ids and be sorted by order;
    ``payloads[i]`` is the transport chosen when leaving ``plan_spots[i]``.
    """
    if len(plan_spots) != len(payloads):
        raise ValueError("Every stop needs a transport payload")
    if not plan_spots:
        return []

    edges = []
    for i in range(len(plan_spots) - 1):
        leaving = payloads[i]
        edges.append(Transport(
            plan_id=plan_id,
            from_type=TransportNodeType.SPOT,
            to_type=TransportNodeType.SPOT,
            from_spot_id=plan_spots[i].id,
            to_spot_id=plan_spots[i + 1].id,
            cost=leaving.cost if leaving.cost is not None else 0,
            travel_time=leaving.travel_time or UNKNOWN_TRAVEL_TIME,
            transport_methods=list(leaving.transport_method_ids),
        ))

    edges.append(Transport(
        plan_id=plan_id,
        from_type=TransportNodeType.DEPARTURE,
        to_type=TransportNodeType.SPOT,
        to_spot_id=plan_spots[0].id,
        cost=0,
        travel_time=DEPARTURE_LABEL,
        transport_methods=list(ENDPOINT_TRANSPORT_METHODS),
    ))
    edges.append(Transport(
        plan_id=plan_id,
        from_type=TransportNodeType.SPOT,
        to_type=TransportNodeType.DESTINATION,
        from_spot_id=plan_spots[-1].id,
        cost=0,
        travel_time=ARRIVAL_LABEL,
        transport_methods=list(ENDPOINT_TRANSPORT_METHODS),
    ))
    return edges
