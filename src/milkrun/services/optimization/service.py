"""High-level orchestration for route optimisation requests."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from ...config import Settings, settings as default_settings
from ...models.domain import GeoPoint, OptimizationResult, OrderRecord
from ...persistence.base import OrderStore
from ...persistence.filesystem import FileStorage
from ...schemas.optimization import (
    ClusterModel,
    EfficiencyMetricsModel,
    GeoPointModel,
    OptimizationParameters,
    OptimizationRequest,
    OptimizationResponse,
    OptimizationSummaryModel,
    OrderDetailModel,
)
from ..clustering.fitting import fit_clusters
from ..clustering.proximity import cluster_by_proximity
from ..geospatial import hull_overlay, is_valid_coordinate
from ..outputs.formatter import optimization_response_to_csv, optimization_response_to_json
from ..scoring.efficiency import score_or_default


def to_geo_points(orders: Sequence[OrderRecord]) -> tuple[list[GeoPoint], list[OrderRecord]]:
    """Split orders into routable points and orders without usable coordinates."""

    points: list[GeoPoint] = []
    missing: list[OrderRecord] = []
    for order in orders:
        if not is_valid_coordinate(order.latitude, order.longitude):
            missing.append(order)
            continue
        points.append(
            GeoPoint(
                lat=float(order.latitude),
                lng=float(order.longitude),
                order_id=str(order.id),
                customer_name=order.customer_name or "",
                address=order.delivery_address or "",
            )
        )
    return points, missing


def optimize_orders(
    points: Sequence[GeoPoint],
    *,
    vehicle_type: str,
    radius_km: float,
    settings: Settings = default_settings,
) -> OptimizationResult:
    """Cluster, fit, sequence and score a set of geo-tagged orders."""

    capacity = settings.capacity_for(vehicle_type)
    depot = (settings.depot_latitude, settings.depot_longitude)

    proximity = cluster_by_proximity(points, radius_km=radius_km, capacity=capacity)
    fitted = fit_clusters(
        proximity.groups,
        proximity.unclustered,
        capacity=capacity,
        radius_km=radius_km,
        depot=depot,
        average_speed_kmh=settings.average_speed_kmh,
        service_time_per_stop_min=settings.service_time_per_stop_min,
        input_order=points,
    )
    scored = score_or_default(
        points,
        fitted.clusters,
        depot=depot,
        average_speed_kmh=settings.average_speed_kmh,
        service_time_per_stop_min=settings.service_time_per_stop_min,
    )

    degraded = list(fitted.degraded_stages)
    if scored.degraded:
        degraded.append(scored.stage)

    metrics = scored.value
    logging.info(
        f"Optimised {len(points)} orders into {len(fitted.clusters)} clusters "
        f"({len(fitted.unclustered)} unclustered, capacity={capacity}, radius={radius_km}km)"
    )
    return OptimizationResult(
        clusters=fitted.clusters,
        unclustered_orders=fitted.unclustered,
        total_distance_saved_km=metrics.distance_saved_km,
        estimated_time_saved_min=metrics.time_saved_min,
        efficiency_score=metrics.overall_score,
        metrics=metrics,
        degraded_stages=degraded,
    )


def _order_detail(order: OrderRecord) -> OrderDetailModel:
    return OrderDetailModel(
        id=str(order.id),
        customer_name=order.customer_name or "",
        delivery_address=order.delivery_address or "",
        city=order.city,
        total_amount=order.total_amount or 0.0,
        status=order.status,
        created_at=order.created_at.isoformat() if order.created_at else None,
        latitude=order.latitude,
        longitude=order.longitude,
    )


def _resolve_statuses(requested: Optional[Sequence[str]], settings: Settings) -> list[str]:
    allowed = list(settings.dispatchable_statuses)
    if not requested:
        return allowed
    cleaned = [status.strip().lower() for status in requested if status and status.strip()]
    return [status for status in dict.fromkeys(cleaned) if status in allowed]


def process_optimization_request(
    payload: OptimizationRequest,
    order_store: OrderStore,
    *,
    persist: Optional[bool] = None,
    settings: Settings = default_settings,
    storage: Optional[FileStorage] = None,
    now: Optional[datetime] = None,
) -> OptimizationResponse:
    radius_km = settings.clamp_radius(payload.clustering_radius_km)
    capacity = settings.capacity_for(payload.vehicle_type)
    parameters = OptimizationParameters(
        vehicle_type=payload.vehicle_type,
        clustering_radius_km=radius_km,
        max_orders_per_vehicle=capacity,
    )

    statuses = _resolve_statuses(payload.status_filter, settings)
    if not statuses:
        logging.warning(f"Rejected status filter {list(payload.status_filter or [])}")
        return OptimizationResponse(parameters=parameters, message="Invalid status filter")

    orders = order_store.list_orders(statuses)
    points, missing = to_geo_points(orders)
    status_counts = dict(Counter(order.status for order in orders))
    if missing:
        logging.info(f"{len(missing)} of {len(orders)} orders have no usable GPS coordinates")

    if not points:
        return OptimizationResponse(
            parameters=parameters,
            status_counts=status_counts,
            no_gps_count=len(missing),
            efficiency_metrics=EfficiencyMetricsModel(total_orders=len(orders)),
            message="No orders with valid location data available for route optimization",
        )

    result = optimize_orders(points, vehicle_type=payload.vehicle_type, radius_km=radius_km, settings=settings)

    now = now or datetime.now(timezone.utc)
    by_id = {str(order.id): order for order in orders}
    clusters: list[ClusterModel] = []
    overlays: dict[str, dict] = {}
    for cluster in result.clusters:
        clusters.append(
            ClusterModel(
                cluster_id=cluster.cluster_id,
                orders=[
                    GeoPointModel(
                        order_id=point.order_id,
                        customer_name=point.customer_name,
                        address=point.address,
                        lat=point.lat,
                        lng=point.lng,
                    )
                    for point in cluster.orders
                ],
                order_details=[_order_detail(by_id[order_id]) for order_id in cluster.order_ids if order_id in by_id],
                centroid=GeoPointModel(
                    order_id=cluster.centroid.order_id,
                    lat=cluster.centroid.lat,
                    lng=cluster.centroid.lng,
                ),
                total_distance_km=round(cluster.total_distance_km, 3),
                estimated_duration_min=round(cluster.estimated_duration_min, 1),
                driver_capacity=cluster.driver_capacity,
                max_distance_from_depot_km=round(cluster.max_distance_from_depot_km, 3),
                estimated_completion_time=(now + timedelta(minutes=cluster.estimated_duration_min)).isoformat(),
            )
        )
        overlay = hull_overlay(cluster.orders)
        if overlay:
            overlays[cluster.cluster_id] = overlay

    clustered_count = sum(len(cluster.orders) for cluster in result.clusters)
    metrics = result.metrics
    response = OptimizationResponse(
        clusters=clusters,
        unclustered_orders=[
            _order_detail(by_id[point.order_id]) for point in result.unclustered_orders if point.order_id in by_id
        ],
        efficiency_metrics=EfficiencyMetricsModel(
            clustering_efficiency=metrics.clustering_efficiency,
            distance_efficiency=metrics.distance_efficiency,
            time_efficiency=metrics.time_efficiency,
            overall_score=metrics.overall_score,
            total_orders=len(orders),
            clustered_orders=clustered_count,
            unclustered_orders=len(result.unclustered_orders),
        ),
        optimization_summary=OptimizationSummaryModel(
            total_distance_saved_km=round(result.total_distance_saved_km, 3),
            estimated_time_saved_min=round(result.estimated_time_saved_min, 1),
            efficiency_score=result.efficiency_score,
            number_of_clusters=len(clusters),
            average_orders_per_cluster=round(clustered_count / len(clusters)) if clusters else 0,
        ),
        status_counts=status_counts,
        no_gps_count=len(missing),
        parameters=parameters,
        metadata={
            "map_overlays": overlays,
            "degraded_stages": result.degraded_stages,
            "depot": {
                "lat": settings.depot_latitude,
                "lng": settings.depot_longitude,
                "name": settings.depot_name,
            },
            "generated_at": now.isoformat(),
        },
    )

    should_persist = payload.persist if persist is None else persist
    if should_persist:
        storage = storage or FileStorage()
        run_dir = storage.make_run_directory(prefix="optimization", label=payload.run_label)
        summary = optimization_response_to_json(response)
        summary["requested_by"] = payload.requested_by
        storage.write_json(run_dir / "summary.json", summary)
        storage.write_csv(run_dir / "clusters.csv", optimization_response_to_csv(response))
        response.metadata["run_directory"] = str(run_dir)
        logging.info(f"Persisted optimisation run to {run_dir}")

    return response
