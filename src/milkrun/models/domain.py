"""Domain models for orders, clusters, drivers and dispatch assignments."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class DriverStatus(str, Enum):
    AVAILABLE = "available"
    BUSY = "busy"
    OFFLINE = "offline"


class AssignmentStatus(str, Enum):
    """Lifecycle states of one order-to-driver assignment."""

    ASSIGNED = "assigned"
    ACCEPTED = "accepted"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (AssignmentStatus.DELIVERED, AssignmentStatus.CANCELLED)


ACTIVE_ASSIGNMENT_STATUSES = frozenset(
    status for status in AssignmentStatus if not status.is_terminal
)


@dataclass(frozen=True, slots=True)
class GeoPoint:
    """A geo-tagged order produced from an order record."""

    lat: float
    lng: float
    order_id: str
    customer_name: str = ""
    address: str = ""


@dataclass(frozen=True, slots=True)
class Location:
    lat: float
    lng: float
    name: str = ""


@dataclass(frozen=True, slots=True)
class OrderCluster:
    """A capacity-compliant group of nearby orders in visiting order."""

    cluster_id: str
    orders: tuple[GeoPoint, ...]
    centroid: GeoPoint
    total_distance_km: float
    estimated_duration_min: float
    driver_capacity: int
    max_distance_from_depot_km: float

    @property
    def order_ids(self) -> list[str]:
        return [point.order_id for point in self.orders]


@dataclass(slots=True)
class EfficiencyScore:
    clustering_efficiency: float = 0.0
    distance_efficiency: float = 0.0
    time_efficiency: float = 0.0
    overall_score: float = 0.0
    distance_saved_km: float = 0.0
    time_saved_min: float = 0.0


@dataclass(slots=True)
class OptimizationResult:
    clusters: list[OrderCluster]
    unclustered_orders: list[GeoPoint]
    total_distance_saved_km: float
    estimated_time_saved_min: float
    efficiency_score: float
    metrics: EfficiencyScore = field(default_factory=EfficiencyScore)
    degraded_stages: list[str] = field(default_factory=list)


@dataclass(slots=True)
class OrderRecord:
    """Order row as exposed by the order store."""

    id: str
    customer_name: str
    delivery_address: str
    latitude: Optional[float]
    longitude: Optional[float]
    city: Optional[str]
    status: str
    total_amount: float = 0.0
    created_at: Optional[datetime] = None
    tracking_number: Optional[str] = None
    shop_id: Optional[str] = None
    dispatch_timestamp: Optional[datetime] = None


@dataclass(slots=True)
class Driver:
    """Driver entry from the driver directory."""

    id: str
    name: str
    vehicle_type: str
    status: DriverStatus = DriverStatus.AVAILABLE
    active_order_count: int = 0
    version: int = 0


@dataclass(slots=True)
class DispatchAssignment:
    """Durable record linking one order to one driver."""

    id: str
    order_id: str
    driver_id: str
    shop_id: str
    tracking_number: str
    status: AssignmentStatus
    created_by: str
    pickup: Location
    delivery: Location
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    actual_pickup_time: Optional[datetime] = None
    actual_delivery_time: Optional[datetime] = None
