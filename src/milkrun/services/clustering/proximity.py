"""Greedy radius-bounded proximity clustering of geo-tagged orders."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from ...models.domain import GeoPoint
from ..geospatial import haversine_vector_km


@dataclass(slots=True)
class ProximityResult:
    groups: list[list[GeoPoint]] = field(default_factory=list)
    unclustered: list[GeoPoint] = field(default_factory=list)


def cluster_by_proximity(
    points: Sequence[GeoPoint],
    *,
    radius_km: float,
    capacity: int,
) -> ProximityResult:
    """Group points whose distance to the running centroid stays within ``radius_km``.

    Seeds are taken in input order. Each seed absorbs the nearest unvisited point
    while that point lies within the radius of the current centroid and the group
    is below ``capacity``; the centroid is recomputed after each absorption. Ties
    on distance go to the earliest point in the input. Groups that end with a
    single member carry no consolidation benefit and are returned as unclustered.
    """
    if radius_km <= 0:
        raise ValueError("radius_km must be > 0")
    if capacity < 1:
        raise ValueError("capacity must be >= 1")

    result = ProximityResult()
    if not points:
        return result

    lats = np.array([p.lat for p in points], dtype=float)
    lons = np.array([p.lng for p in points], dtype=float)
    visited = np.zeros(len(points), dtype=bool)

    for seed in range(len(points)):
        if visited[seed]:
            continue
        visited[seed] = True
        members = [seed]
        center_lat, center_lon = lats[seed], lons[seed]

        while len(members) < capacity:
            candidates = np.flatnonzero(~visited)
            if candidates.size == 0:
                break
            distances = haversine_vector_km(center_lat, center_lon, lats[candidates], lons[candidates])
            best = int(np.argmin(distances))
            if distances[best] > radius_km:
                break
            chosen = int(candidates[best])
            visited[chosen] = True
            members.append(chosen)
            center_lat = float(lats[members].mean())
            center_lon = float(lons[members].mean())

        if len(members) < 2:
            result.unclustered.append(points[seed])
        else:
            result.groups.append([points[i] for i in members])

    return result
