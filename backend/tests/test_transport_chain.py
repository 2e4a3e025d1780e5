import pytest

from tabiplan.api.schemas import TransportPayload
from tabiplan.db.models import PlanSpot, TransportNodeType
from tabiplan.services.transport_chain import (
    ARRIVAL_LABEL, DEPARTURE_LABEL, UNKNOWN_TRAVEL_TIME, build_transport_chain,
)


def make_stops(count):
    return [
        PlanSpot(id=100 + i, plan_id=1, spot_id=f"spot{i}", stay_start="10:00", stay_end="11:00", order=i)
        for i in range(count)
    ]


def make_payloads(count, **kwargs):
    return [TransportPayload(transport_method_ids=[i + 2], **kwargs) for i in range(count)]


def test_three_stops_produce_four_edges():
    edges = build_transport_chain(1, make_stops(3), make_payloads(3, cost=120, travel_time="15 min"))

    assert len(edges) == 4
    pairs = [(e.from_type, e.from_spot_id, e.to_type, e.to_spot_id) for e in edges]
    assert pairs == [
        (TransportNodeType.SPOT, 100, TransportNodeType.SPOT, 101),
        (TransportNodeType.SPOT, 101, TransportNodeType.SPOT, 102),
        (TransportNodeType.DEPARTURE, None, TransportNodeType.SPOT, 100),
        (TransportNodeType.SPOT, 102, TransportNodeType.DESTINATION, None),
    ]
    assert all(e.plan_id == 1 for e in edges)


def test_stop_edges_use_payload_of_the_stop_being_left():
    edges = build_transport_chain(1, make_stops(3), make_payloads(3, cost=300, travel_time="20 min"))

    assert edges[0].transport_methods == [2]
    assert edges[1].transport_methods == [3]
    assert edges[0].cost == 300
    assert edges[0].travel_time == "20 min"


def test_endpoint_edges_are_fixed():
    edges = build_transport_chain(1, make_stops(2), make_payloads(2, cost=500, travel_time="1 h"))
    departure, arrival = edges[-2], edges[-1]

    assert departure.cost == 0 and departure.travel_time == DEPARTURE_LABEL
    assert arrival.cost == 0 and arrival.travel_time == ARRIVAL_LABEL
    assert departure.transport_methods == [1]


def test_missing_cost_and_travel_time_get_defaults():
    edges = build_transport_chain(1, make_stops(2), make_payloads(2))

    assert edges[0].cost == 0
    assert edges[0].travel_time == UNKNOWN_TRAVEL_TIME


def test_single_stop_has_only_endpoint_edges():
    edges = build_transport_chain(1, make_stops(1), make_payloads(1))

    assert [(e.from_type, e.to_type) for e in edges] == [
        (TransportNodeType.DEPARTURE, TransportNodeType.SPOT),
        (TransportNodeType.SPOT, TransportNodeType.DESTINATION),
    ]
    assert edges[0].to_spot_id == edges[1].from_spot_id == 100


def test_no_stops_no_edges():
    assert build_transport_chain(1, [], []) == []


def test_payload_count_must_match_stops():
    with pytest.raises(ValueError):
        build_transport_chain(1, make_stops(2), make_payloads(1))
