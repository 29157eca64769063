"""Efficiency scoring of a clustering run against one-trip-per-order dispatch."""

from __future__ import annotations

import logging
from typing import Sequence

from ...models.domain import EfficiencyScore, GeoPoint, OrderCluster
from ..geospatial import haversine_km
from ..stages import StageResult

STAGE_NAME = "scoring"


def _ratio_saved(consolidated: float, baseline: float) -> float:
    if baseline <= 0:
        return 0.0
    return max(0.0, 1.0 - consolidated / baseline) * 100.0


def score_efficiency(
    points: Sequence[GeoPoint],
    clusters: Sequence[OrderCluster],
    *,
    depot: tuple[float, float],
    average_speed_kmh: float,
    service_time_per_stop_min: float,
) -> EfficiencyScore:
    """Compare clustered milk runs with dispatching every order on its own.

    The baseline sends one round trip per order. The consolidated plan drives
    depot -> first stop -> ... -> last stop -> depot for each cluster and keeps
    individual round trips for orders that ended up in no cluster.
    """
    total = len(points)
    if total == 0:
        return EfficiencyScore()

    depot_lat, depot_lon = depot

    def leg_minutes(distance_km: float) -> float:
        return distance_km / average_speed_kmh * 60.0

    round_trips = {
        point.order_id: 2 * haversine_km(depot_lat, depot_lon, point.lat, point.lng) for point in points
    }
    baseline_distance = sum(round_trips.values())
    baseline_time = sum(leg_minutes(d) + service_time_per_stop_min for d in round_trips.values())

    consolidated_distance = 0.0
    consolidated_time = 0.0
    clustered_ids: set[str] = set()
    routed_ids: set[str] = set()
    for cluster in clusters:
        if not cluster.orders:
            continue
        routed_ids.update(cluster.order_ids)
        if len(cluster.orders) >= 2:
            clustered_ids.update(point.order_id for point in cluster.orders)
        first, last = cluster.orders[0], cluster.orders[-1]
        depot_legs = haversine_km(depot_lat, depot_lon, first.lat, first.lng) + haversine_km(
            last.lat, last.lng, depot_lat, depot_lon
        )
        consolidated_distance += depot_legs + cluster.total_distance_km
        consolidated_time += leg_minutes(depot_legs) + cluster.estimated_duration_min

    for order_id, distance in round_trips.items():
        if order_id not in routed_ids:
            consolidated_distance += distance
            consolidated_time += leg_minutes(distance) + service_time_per_stop_min

    clustered_count = sum(1 for point in points if point.order_id in clustered_ids)
    clustering_efficiency = clustered_count / total * 100.0
    distance_efficiency = _ratio_saved(consolidated_distance, baseline_distance)
    time_efficiency = _ratio_saved(consolidated_time, baseline_time)

    return EfficiencyScore(
        clustering_efficiency=clustering_efficiency,
        distance_efficiency=distance_efficiency,
        time_efficiency=time_efficiency,
        overall_score=(clustering_efficiency + distance_efficiency + time_efficiency) / 3.0,
        distance_saved_km=max(0.0, baseline_distance - consolidated_distance),
        time_saved_min=max(0.0, baseline_time - consolidated_time),
    )


def score_or_default(
    points: Sequence[GeoPoint],
    clusters: Sequence[OrderCluster],
    **kwargs,
) -> StageResult[EfficiencyScore]:
    try:
        return StageResult.ok(STAGE_NAME, score_efficiency(points, clusters, **kwargs))
    except Exception as exc:
        logging.warning(f"Efficiency scoring failed, reporting zero metrics: {exc}")
        return StageResult.fallback(STAGE_NAME, EfficiencyScore(), exc)
