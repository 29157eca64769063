"""Pydantic request/response models for route optimisation endpoints."""

from __future__ import annotations

from typing import Optional, Sequence

from pydantic import BaseModel, Field, field_validator

from ..config import settings


class OptimizationRequest(BaseModel):
    vehicle_type: str = Field(default="car", description="Vehicle class that bounds cluster size.")
    clustering_radius_km: Optional[float] = Field(
        default=None,
        description="Clustering radius; clamped to the configured range.",
    )
    status_filter: Optional[Sequence[str]] = Field(
        default=None,
        description="Order statuses to optimise; defaults to every dispatchable status.",
    )
    persist: bool = Field(default=False, description="Whether to persist outputs to files.")
    requested_by: Optional[str] = Field(default=None, description="Person or system requesting the run.")
    run_label: Optional[str] = Field(default=None, description="Friendly name for persisted outputs.")

    @field_validator("vehicle_type")
    @classmethod
    def validate_vehicle_type(cls, value: str) -> str:
        cleaned = (value or "").strip().lower()
        if cleaned not in settings.vehicle_capacities:
            allowed = ", ".join(sorted(settings.vehicle_capacities))
            raise ValueError(f"vehicle_type must be one of: {allowed}")
        return cleaned

    @field_validator("clustering_radius_km")
    @classmethod
    def validate_radius(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0:
            raise ValueError("clustering_radius_km must be > 0")
        return value


class GeoPointModel(BaseModel):
    order_id: str
    customer_name: str = ""
    address: str = ""
    lat: float
    lng: float


class OrderDetailModel(BaseModel):
    id: str
    customer_name: str
    delivery_address: str
    city: Optional[str] = None
    total_amount: float = 0.0
    status: str
    created_at: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class ClusterModel(BaseModel):
    cluster_id: str
    orders: list[GeoPointModel]
    order_details: list[OrderDetailModel]
    centroid: GeoPointModel
    total_distance_km: float
    estimated_duration_min: float
    driver_capacity: int
    max_distance_from_depot_km: float
    estimated_completion_time: str


class EfficiencyMetricsModel(BaseModel):
    clustering_efficiency: float = 0.0
    distance_efficiency: float = 0.0
    time_efficiency: float = 0.0
    overall_score: float = 0.0
    total_orders: int = 0
    clustered_orders: int = 0
    unclustered_orders: int = 0


class OptimizationSummaryModel(BaseModel):
    total_distance_saved_km: float = 0.0
    estimated_time_saved_min: float = 0.0
    efficiency_score: float = 0.0
    number_of_clusters: int = 0
    average_orders_per_cluster: int = 0


class OptimizationParameters(BaseModel):
    vehicle_type: str
    clustering_radius_km: float
    max_orders_per_vehicle: int


class OptimizationResponse(BaseModel):
    clusters: list[ClusterModel] = Field(default_factory=list)
    unclustered_orders: list[OrderDetailModel] = Field(default_factory=list)
    efficiency_metrics: EfficiencyMetricsModel = Field(default_factory=EfficiencyMetricsModel)
    optimization_summary: OptimizationSummaryModel = Field(default_factory=OptimizationSummaryModel)
    status_counts: dict[str, int] = Field(default_factory=dict)
    no_gps_count: int = 0
    parameters: OptimizationParameters
    message: Optional[str] = None
    metadata: dict = Field(default_factory=dict)
