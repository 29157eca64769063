import math

import numpy as np
import pytest

from milkrun.models.domain import GeoPoint
from milkrun.services.geospatial import (
    centroid,
    haversine_km,
    haversine_vector_km,
    hull_overlay,
    is_valid_coordinate,
)

PAIRS = [
    ((9.033, 38.750), (9.040, 38.760)),
    ((21.5, 39.2), (24.7, 46.7)),
    ((-33.86, 151.21), (51.5, -0.12)),
    ((0.0001, 179.9), (-0.0001, -179.9)),
]


@pytest.mark.parametrize("a,b", PAIRS)
def test_haversine_is_symmetric(a, b):
    assert haversine_km(*a, *b) == pytest.approx(haversine_km(*b, *a), abs=1e-9)


def test_haversine_zero_for_identical_points():
    assert haversine_km(9.033, 38.750, 9.033, 38.750) == 0.0


def test_one_degree_of_latitude_is_about_111_km():
    assert haversine_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(111.19, abs=0.05)


def test_vector_distances_match_scalar_formula():
    lats = np.array([9.04, 9.05, 8.99])
    lons = np.array([38.76, 38.70, 38.80])
    vector = haversine_vector_km(9.033, 38.750, lats, lons)
    for value, lat, lon in zip(vector, lats, lons):
        assert value == pytest.approx(haversine_km(9.033, 38.750, lat, lon))


def test_centroid_is_arithmetic_mean():
    points = [GeoPoint(lat=1.0, lng=2.0, order_id="a"), GeoPoint(lat=3.0, lng=6.0, order_id="b")]
    assert centroid(points) == (2.0, 4.0)
    assert centroid([]) == (0.0, 0.0)


@pytest.mark.parametrize(
    "lat,lng,expected",
    [
        (9.03, 38.75, True),
        (None, 38.75, False),
        (9.03, None, False),
        (0, 0, False),
        (0.0, 38.75, False),
        (math.nan, 38.75, False),
        ("9.03", "38.75", True),
        ("north", "38.75", False),
    ],
)
def test_is_valid_coordinate(lat, lng, expected):
    assert is_valid_coordinate(lat, lng) is expected


def test_hull_overlay_wraps_points():
    points = [
        GeoPoint(lat=9.030, lng=38.750, order_id="a"),
        GeoPoint(lat=9.035, lng=38.755, order_id="b"),
        GeoPoint(lat=9.031, lng=38.758, order_id="c"),
    ]
    overlay = hull_overlay(points)

    assert overlay is not None
    ring = overlay["coordinates"]
    assert ring[0] == ring[-1]
    lats = [lat for lat, _ in ring]
    lons = [lon for _, lon in ring]
    assert min(lats) < 9.030 and max(lats) > 9.035
    assert min(lons) < 38.750 and max(lons) > 38.758
    assert overlay["centroid"][0] == pytest.approx(9.032, abs=0.003)


def test_hull_overlay_empty_input():
    assert hull_overlay([]) is None
