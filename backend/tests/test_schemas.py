"""
Validation rules for itinerary and wishlist payloads
"""

import pytest
from pydantic import ValidationError

from tabiplan.api.schemas import (
    PlanPayload, SpotRead, TripCreate, WishlistCreate, WishlistUpdate, collapse_meta,
)


def test_spot_order_defaults_to_position(spot_payload):
    plan = PlanPayload.model_validate({"date": "2024-03-01", "spots": [spot_payload("a"), spot_payload("b")]})
    assert [s.order for s in plan.spots] == [0, 1]


def test_spot_order_must_match_position(spot_payload):
    with pytest.raises(ValidationError):
        PlanPayload.model_validate({"date": "2024-03-01", "spots": [
            spot_payload("a", order=1),
            spot_payload("b", order=0),
        ]})

    with pytest.raises(ValidationError):
        PlanPayload.model_validate({"date": "2024-03-01", "spots": [
            spot_payload("a", order=0),
            spot_payload("b", order=2),
        ]})


@pytest.mark.parametrize("value", ["9:00", "24:00", "12:60", "noon"])
def test_stay_time_must_be_hh_mm(spot_payload, value):
    with pytest.raises(ValidationError):
        PlanPayload.model_validate({"date": "2024-03-01", "spots": [spot_payload("a", stay_start=value)]})


def test_transport_needs_a_method(spot_payload):
    stop = spot_payload("a")
    stop["transports"]["transport_method_ids"] = []
    with pytest.raises(ValidationError):
        PlanPayload.model_validate({"date": "2024-03-01", "spots": [stop]})


def test_coordinates_range(spot_payload):
    stop = spot_payload("a")
    stop["location"]["lat"] = 91
    with pytest.raises(ValidationError):
        PlanPayload.model_validate({"date": "2024-03-01", "spots": [stop]})


def test_trip_title_rules(trip_payload, spot_payload):
    plans = [("2024-03-01", [spot_payload("a")])]
    with pytest.raises(ValidationError):
        trip_payload(plans, title="   ")
    with pytest.raises(ValidationError):
        trip_payload(plans, title="x" * 51)
    assert trip_payload(plans, title="x" * 50).title == "x" * 50


def test_trip_requires_info_and_plans(trip_payload, spot_payload):
    base = trip_payload([("2024-03-01", [spot_payload("a")])]).model_dump(mode="json")

    for key in ("trip_info", "plans"):
        broken = dict(base, **{key: []})
        with pytest.raises(ValidationError):
            TripCreate.model_validate(broken)


def test_trip_end_not_before_start(trip_payload, spot_payload):
    body = trip_payload([("2024-03-01", [spot_payload("a")])]).model_dump(mode="json")
    body["end_date"] = "2024-02-28"
    with pytest.raises(ValidationError):
        TripCreate.model_validate(body)


def test_trip_dates_must_be_iso(trip_payload, spot_payload):
    body = trip_payload([("2024-03-01", [spot_payload("a")])]).model_dump(mode="json")
    body["start_date"] = "03/01/2024"
    with pytest.raises(ValidationError):
        TripCreate.model_validate(body)


def test_wishlist_priority_range(wishlist_payload):
    with pytest.raises(ValidationError):
        wishlist_payload("s1", priority=6)
    with pytest.raises(ValidationError):
        WishlistUpdate(id=1, priority=0)


def test_visited_at_requires_visited():
    with pytest.raises(ValidationError):
        WishlistCreate.model_validate({
            "spot_id": "s1",
            "spot": {"meta": {"name": "x", "latitude": 0, "longitude": 0}},
            "visited": False,
            "visited_at": "2024-01-01T00:00:00Z",
        })


def test_collapse_meta():
    assert collapse_meta([]) is None
    assert collapse_meta([{"a": 1}]) == {"a": 1}
    assert collapse_meta({"a": 1}) == {"a": 1}
    assert collapse_meta(None) is None


def test_spot_read_accepts_meta_collection():
    meta = {"id": "s1", "spot_id": "s1", "name": "Todai-ji", "latitude": 34.6, "longitude": 135.8}

    assert SpotRead.model_validate({"id": "s1", "meta": [meta]}).meta.name == "Todai-ji"
    assert SpotRead.model_validate({"id": "s1", "meta": []}).meta is None
    assert SpotRead.model_validate({"id": "s1", "meta": meta}).meta.name == "Todai-ji"
