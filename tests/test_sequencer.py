import pytest

from milkrun.models.domain import GeoPoint
from milkrun.services.geospatial import haversine_km
from milkrun.services.routing.sequencer import route_distance_km, sequence_or_fallback, sequence_route

DEPOT = (9.033, 38.750)


def _point(order_id: str, lat: float, lng: float) -> GeoPoint:
    return GeoPoint(lat=lat, lng=lng, order_id=order_id)


def test_nearest_neighbour_from_depot():
    far = _point("far", 9.10, 38.75)
    mid = _point("mid", 9.06, 38.75)
    near = _point("near", 9.04, 38.75)

    route = sequence_route([far, mid, near], DEPOT)
    assert [p.order_id for p in route] == ["near", "mid", "far"]


def test_equidistant_stops_keep_input_order():
    a = _point("a", 9.04, 38.75)
    b = _point("b", 9.04, 38.75)

    assert [p.order_id for p in sequence_route([a, b], DEPOT)] == ["a", "b"]
    assert [p.order_id for p in sequence_route([b, a], DEPOT)] == ["b", "a"]


def test_short_inputs_pass_through():
    assert sequence_route([], DEPOT) == []
    single = [_point("a", 9.04, 38.75)]
    assert sequence_route(single, DEPOT) == single


def test_route_is_a_permutation_and_repeatable():
    points = [_point(str(i), 9.03 + 0.003 * ((i * 7) % 5), 38.74 + 0.002 * i) for i in range(8)]
    first = sequence_route(points, DEPOT)
    second = sequence_route(points, DEPOT)

    assert sorted(p.order_id for p in first) == sorted(p.order_id for p in points)
    assert first == second


def test_route_distance_with_and_without_start():
    a = _point("a", 9.04, 38.75)
    b = _point("b", 9.05, 38.75)
    leg = haversine_km(a.lat, a.lng, b.lat, b.lng)

    assert route_distance_km([a, b]) == pytest.approx(leg)
    assert route_distance_km([a, b], DEPOT) == pytest.approx(leg + haversine_km(*DEPOT, a.lat, a.lng))
    assert route_distance_km([]) == 0.0


def test_non_finite_coordinates_fall_back():
    points = [_point("a", float("nan"), 38.75), _point("b", 9.05, 38.75)]
    stage = sequence_or_fallback(points, DEPOT)

    assert stage.degraded
    assert stage.value == points
    assert "ValueError" in stage.error
