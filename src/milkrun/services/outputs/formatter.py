"""Serializers for optimisation outputs."""

from __future__ import annotations

import csv
import io

from ...schemas.optimization import OptimizationResponse


def optimization_response_to_json(response: OptimizationResponse) -> dict:
    return response.model_dump(mode="json")


def optimization_response_to_csv(response: OptimizationResponse) -> str:
    """One row per order: clustered stops in visiting order, then unclustered orders."""

    buffer = io.StringIO()
    fieldnames = [
        "cluster_id",
        "sequence",
        "order_id",
        "customer_name",
        "address",
        "lat",
        "lng",
        "cluster_distance_km",
        "cluster_duration_min",
        "cluster_size",
    ]
    writer = csv.DictWriter(buffer, fieldnames=fieldnames)
    writer.writeheader()
    for cluster in response.clusters:
        for sequence, stop in enumerate(cluster.orders, start=1):
            writer.writerow(
                {
                    "cluster_id": cluster.cluster_id,
                    "sequence": sequence,
                    "order_id": stop.order_id,
                    "customer_name": stop.customer_name,
                    "address": stop.address,
                    "lat": stop.lat,
                    "lng": stop.lng,
                    "cluster_distance_km": cluster.total_distance_km,
                    "cluster_duration_min": cluster.estimated_duration_min,
                    "cluster_size": len(cluster.orders),
                }
            )
    for order in response.unclustered_orders:
        writer.writerow(
            {
                "cluster_id": "",
                "sequence": "",
                "order_id": order.id,
                "customer_name": order.customer_name,
                "address": order.delivery_address,
                "lat": order.latitude,
                "lng": order.longitude,
                "cluster_distance_km": "",
                "cluster_duration_min": "",
                "cluster_size": "",
            }
        )
    return buffer.getvalue()
