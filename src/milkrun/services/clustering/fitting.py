"""Capacity fitting: split, merge and finalise proximity groups into clusters."""

from __future__ import annotations

import hashlib
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Sequence

from ...models.domain import GeoPoint, OrderCluster
from ..geospatial import centroid, haversine_km, point_distance_km
from ..routing.sequencer import route_distance_km, sequence_or_fallback


@dataclass(slots=True)
class FittedClusters:
    clusters: list[OrderCluster] = field(default_factory=list)
    unclustered: list[GeoPoint] = field(default_factory=list)
    degraded_stages: list[str] = field(default_factory=list)


def cluster_id_for(order_ids: Sequence[str]) -> str:
    """Content-derived cluster id; identical membership and order yield the same id."""

    digest = hashlib.sha1("|".join(order_ids).encode("utf-8")).hexdigest()
    return f"CL-{digest[:10]}"


def _split_oversized(
    groups: Sequence[Sequence[GeoPoint]],
    capacity: int,
    position: dict[str, int],
) -> tuple[list[list[GeoPoint]], list[GeoPoint]]:
    queue: deque[list[GeoPoint]] = deque(list(group) for group in groups)
    compliant: list[list[GeoPoint]] = []
    singles: list[GeoPoint] = []
    splits = 0

    while queue:
        group = queue.popleft()
        overflow: list[GeoPoint] = []
        while len(group) > capacity:
            center = centroid(group)
            distances = [point_distance_km(center, point) for point in group]
            farthest = max(
                range(len(group)),
                key=lambda i: (distances[i], -position.get(group[i].order_id, 0)),
            )
            overflow.append(group.pop(farthest))
        if len(group) >= 2:
            compliant.append(group)
        else:
            singles.extend(group)
        if overflow:
            splits += 1
            overflow.sort(key=lambda point: position.get(point.order_id, 0))
            queue.append(overflow)

    if splits:
        logging.info(f"Split {splits} oversized cluster(s) to respect capacity {capacity}")
    return compliant, singles


def _merge_neighbours(groups: list[list[GeoPoint]], capacity: int, radius_km: float) -> list[list[GeoPoint]]:
    merged = True
    while merged:
        merged = False
        for i in range(len(groups)):
            for j in range(i + 1, len(groups)):
                if len(groups[i]) + len(groups[j]) > capacity:
                    continue
                if point_distance_km(centroid(groups[i]), centroid(groups[j])) <= radius_km:
                    groups[i] = groups[i] + groups[j]
                    del groups[j]
                    merged = True
                    break
            if merged:
                break
    return groups


def _absorb_singles(
    groups: list[list[GeoPoint]],
    singles: list[GeoPoint],
    capacity: int,
    radius_km: float,
) -> list[GeoPoint]:
    leftover: list[GeoPoint] = []
    for point in singles:
        best_index, best_distance = None, None
        for index, group in enumerate(groups):
            if len(group) >= capacity:
                continue
            distance = point_distance_km(centroid(group), point)
            if distance <= radius_km and (best_distance is None or distance < best_distance):
                best_index, best_distance = index, distance
        if best_index is None:
            leftover.append(point)
        else:
            groups[best_index].append(point)
    return leftover


def fit_clusters(
    groups: Sequence[Sequence[GeoPoint]],
    unclustered: Sequence[GeoPoint] = (),
    *,
    capacity: int,
    radius_km: float,
    depot: tuple[float, float],
    average_speed_kmh: float,
    service_time_per_stop_min: float,
    input_order: Sequence[GeoPoint] = (),
) -> FittedClusters:
    """Turn raw proximity groups into capacity-compliant, routed clusters.

    Oversized groups are split by peeling the member farthest from the centroid;
    small neighbouring groups are merged when they fit; singletons join a nearby
    group with room or stay unclustered. Each surviving group is sequenced from the
    depot to estimate its distance and duration. Ties between equally distant
    members are settled by ``input_order`` (earliest first), falling back to the
    order the groups list them in.
    """
    if capacity < 1:
        raise ValueError("capacity must be >= 1")
    if average_speed_kmh <= 0:
        raise ValueError("average_speed_kmh must be > 0")

    position: dict[str, int] = {}
    for point in input_order:
        position.setdefault(point.order_id, len(position))
    for group in groups:
        for point in group:
            position.setdefault(point.order_id, len(position))
    for point in unclustered:
        position.setdefault(point.order_id, len(position))

    compliant, singles = _split_oversized(groups, capacity, position)
    compliant = _merge_neighbours(compliant, capacity, radius_km)
    leftover = _absorb_singles(compliant, [*unclustered, *singles], capacity, radius_km)
    leftover.sort(key=lambda point: position.get(point.order_id, 0))

    fitted = FittedClusters(unclustered=leftover)
    for group in compliant:
        stage = sequence_or_fallback(group, depot)
        if stage.degraded and stage.stage not in fitted.degraded_stages:
            fitted.degraded_stages.append(stage.stage)
        ordered = stage.value
        total_distance = route_distance_km(ordered)
        cluster_id = cluster_id_for([point.order_id for point in ordered])
        center_lat, center_lng = centroid(ordered)
        fitted.clusters.append(
            OrderCluster(
                cluster_id=cluster_id,
                orders=tuple(ordered),
                centroid=GeoPoint(lat=center_lat, lng=center_lng, order_id=cluster_id),
                total_distance_km=total_distance,
                estimated_duration_min=total_distance / average_speed_kmh * 60
                + service_time_per_stop_min * len(ordered),
                driver_capacity=capacity,
                max_distance_from_depot_km=max(
                    haversine_km(depot[0], depot[1], point.lat, point.lng) for point in ordered
                ),
            )
        )
    return fitted
