"""Nearest-neighbour delivery sequencing within a cluster.

The route starts at the depot and repeatedly visits the closest unvisited stop.
It is a heuristic (O(n^2)), not an exact TSP solve, and it is deterministic:
``numpy.argmin`` returns the first minimum, so equidistant stops are taken in
input order.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from ...models.domain import GeoPoint
from ..geospatial import haversine_km, haversine_vector_km
from ..stages import StageResult

STAGE_NAME = "sequencing"


def sequence_route(points: Sequence[GeoPoint], start: tuple[float, float]) -> list[GeoPoint]:
    """Order points by greedy nearest neighbour starting from ``start``."""

    if len(points) <= 1:
        return list(points)

    lats = np.array([p.lat for p in points], dtype=float)
    lons = np.array([p.lng for p in points], dtype=float)
    remaining = list(range(len(points)))
    current_lat, current_lon = start
    sequence: list[GeoPoint] = []

    while remaining:
        idx = np.array(remaining)
        distances = haversine_vector_km(current_lat, current_lon, lats[idx], lons[idx])
        if not np.all(np.isfinite(distances)):
            raise ValueError("Non-finite distance encountered while sequencing route")
        nearest = remaining.pop(int(np.argmin(distances)))
        point = points[nearest]
        sequence.append(point)
        current_lat, current_lon = point.lat, point.lng

    return sequence


def route_distance_km(points: Sequence[GeoPoint], start: tuple[float, float] | None = None) -> float:
    """Sum of consecutive leg distances, optionally including the leg from ``start``."""

    total = 0.0
    if start is not None and points:
        total += haversine_km(start[0], start[1], points[0].lat, points[0].lng)
    for prev, nxt in zip(points, points[1:]):
        total += haversine_km(prev.lat, prev.lng, nxt.lat, nxt.lng)
    return total


def sequence_or_fallback(points: Sequence[GeoPoint], start: tuple[float, float]) -> StageResult[list[GeoPoint]]:
    """Sequence the points; on any failure keep the original order."""

    try:
        return StageResult.ok(STAGE_NAME, sequence_route(points, start))
    except Exception as exc:
        logging.warning(f"Route sequencing failed for {len(points)} stops, keeping original order: {exc}")
        return StageResult.fallback(STAGE_NAME, list(points), exc)
