"""Supabase-backed order, driver and assignment stores.

Compare-and-set writes are expressed as filtered updates: the update only
matches when the row still carries the expected ``version`` (drivers) or
``status`` (orders, assignments). An empty result means another writer got there
first.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional, Sequence

from supabase import Client

from ..exceptions import (
    AssignmentNotFoundError,
    ConcurrentModificationError,
    DriverNotFoundError,
    OrderNotDispatchableError,
    OrderNotFoundError,
)
from ..models.domain import (
    ACTIVE_ASSIGNMENT_STATUSES,
    AssignmentStatus,
    DispatchAssignment,
    Driver,
    DriverStatus,
    Location,
    OrderRecord,
)
from .base import Repositories

ORDERS_TABLE = "ecommerce_orders"
DRIVERS_TABLE = "drivers"
ASSIGNMENTS_TABLE = "driver_assignments"


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logging.warning(f"Unparseable timestamp from database: {value!r}")
        return None


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _float_or_none(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _row_to_order(row: dict) -> OrderRecord:
    return OrderRecord(
        id=str(row["id"]),
        customer_name=row.get("customer_name") or "",
        delivery_address=row.get("delivery_address") or "",
        latitude=_float_or_none(row.get("latitude")),
        longitude=_float_or_none(row.get("longitude")),
        city=row.get("city"),
        status=row.get("status") or "",
        total_amount=float(row.get("total_amount") or 0.0),
        created_at=_parse_timestamp(row.get("created_at")),
        tracking_number=row.get("tracking_number"),
        shop_id=row.get("shop_id"),
        dispatch_timestamp=_parse_timestamp(row.get("dispatch_date")),
    )


def _row_to_driver(row: dict) -> Driver:
    return Driver(
        id=str(row["id"]),
        name=row.get("name") or "",
        vehicle_type=row.get("vehicle_type") or "car",
        status=DriverStatus(row.get("status") or "available"),
        active_order_count=int(row.get("active_order_count") or 0),
        version=int(row.get("version") or 0),
    )


def _row_to_assignment(row: dict) -> DispatchAssignment:
    return DispatchAssignment(
        id=str(row["id"]),
        order_id=str(row["order_id"]),
        driver_id=str(row["driver_id"]),
        shop_id=str(row.get("shop_id") or ""),
        tracking_number=row.get("tracking_number") or "",
        status=AssignmentStatus(row.get("status") or "assigned"),
        created_by=row.get("created_by") or "",
        pickup=Location(
            lat=float(row.get("pickup_lat") or 0.0),
            lng=float(row.get("pickup_lng") or 0.0),
            name=row.get("pickup_name") or "",
        ),
        delivery=Location(
            lat=float(row.get("delivery_lat") or 0.0),
            lng=float(row.get("delivery_lng") or 0.0),
            name=row.get("delivery_name") or "",
        ),
        notes=row.get("notes"),
        created_at=_parse_timestamp(row.get("created_at")),
        updated_at=_parse_timestamp(row.get("updated_at")),
        actual_pickup_time=_parse_timestamp(row.get("actual_pickup_time")),
        actual_delivery_time=_parse_timestamp(row.get("actual_delivery_time")),
    )


def _assignment_to_row(assignment: DispatchAssignment) -> dict:
    return {
        "id": assignment.id,
        "order_id": assignment.order_id,
        "driver_id": assignment.driver_id,
        "shop_id": assignment.shop_id,
        "tracking_number": assignment.tracking_number,
        "status": assignment.status.value,
        "created_by": assignment.created_by,
        "pickup_lat": assignment.pickup.lat,
        "pickup_lng": assignment.pickup.lng,
        "pickup_name": assignment.pickup.name,
        "delivery_lat": assignment.delivery.lat,
        "delivery_lng": assignment.delivery.lng,
        "delivery_name": assignment.delivery.name,
        "notes": assignment.notes,
        "created_at": _iso(assignment.created_at),
        "updated_at": _iso(assignment.updated_at),
        "actual_pickup_time": _iso(assignment.actual_pickup_time),
        "actual_delivery_time": _iso(assignment.actual_delivery_time),
    }


class SupabaseOrderStore:
    def __init__(self, client: Client) -> None:
        self.client = client

    def list_orders(self, statuses: Sequence[str]) -> list[OrderRecord]:
        response = (
            self.client.table(ORDERS_TABLE)
            .select("*")
            .in_("status", list(statuses))
            .order("created_at", desc=True)
            .execute()
        )
        orders = [_row_to_order(row) for row in (response.data or [])]
        return [order for order in orders if order.latitude is not None and order.longitude is not None]

    def get_order(self, order_id: str) -> Optional[OrderRecord]:
        response = self.client.table(ORDERS_TABLE).select("*").eq("id", order_id).limit(1).execute()
        rows = response.data or []
        return _row_to_order(rows[0]) if rows else None

    def mark_dispatched(
        self,
        order_id: str,
        *,
        tracking_number: str,
        shop_id: str,
        dispatched_at: datetime,
        allowed_statuses: Sequence[str],
    ) -> OrderRecord:
        previous = self.get_order(order_id)
        if previous is None:
            raise OrderNotFoundError(order_id)
        if previous.status not in allowed_statuses:
            raise OrderNotDispatchableError(order_id, previous.status)
        response = (
            self.client.table(ORDERS_TABLE)
            .update(
                {
                    "status": "in_transit",
                    "tracking_number": tracking_number,
                    "shop_id": shop_id,
                    "dispatch_date": _iso(dispatched_at),
                }
            )
            .eq("id", order_id)
            .eq("status", previous.status)
            .execute()
        )
        if not response.data:
            latest = self.get_order(order_id)
            raise OrderNotDispatchableError(order_id, latest.status if latest else "missing")
        return previous

    def revert_dispatch(self, order_id: str, previous: OrderRecord) -> None:
        self.client.table(ORDERS_TABLE).update(
            {
                "status": previous.status,
                "tracking_number": previous.tracking_number,
                "shop_id": previous.shop_id,
                "dispatch_date": _iso(previous.dispatch_timestamp),
            }
        ).eq("id", order_id).execute()

    def set_status(self, order_id: str, status: str) -> None:
        response = self.client.table(ORDERS_TABLE).update({"status": status}).eq("id", order_id).execute()
        if not response.data:
            raise OrderNotFoundError(order_id)


class SupabaseDriverDirectory:
    def __init__(self, client: Client) -> None:
        self.client = client

    def get_driver(self, driver_id: str) -> Optional[Driver]:
        response = self.client.table(DRIVERS_TABLE).select("*").eq("id", driver_id).limit(1).execute()
        rows = response.data or []
        return _row_to_driver(rows[0]) if rows else None

    def list_drivers(self) -> list[Driver]:
        response = self.client.table(DRIVERS_TABLE).select("*").execute()
        return [_row_to_driver(row) for row in (response.data or [])]

    def compare_and_set(
        self,
        driver_id: str,
        *,
        expected_version: int,
        active_order_count: int,
        status: DriverStatus,
    ) -> Driver:
        response = (
            self.client.table(DRIVERS_TABLE)
            .update(
                {
                    "active_order_count": active_order_count,
                    "status": status.value,
                    "version": expected_version + 1,
                }
            )
            .eq("id", driver_id)
            .eq("version", expected_version)
            .execute()
        )
        rows = response.data or []
        if rows:
            return _row_to_driver(rows[0])
        if self.get_driver(driver_id) is None:
            raise DriverNotFoundError(driver_id)
        raise ConcurrentModificationError(f"Driver '{driver_id}' changed since version {expected_version}")


class SupabaseAssignmentStore:
    def __init__(self, client: Client) -> None:
        self.client = client

    def insert(self, assignment: DispatchAssignment) -> DispatchAssignment:
        response = self.client.table(ASSIGNMENTS_TABLE).insert(_assignment_to_row(assignment)).execute()
        rows = response.data or []
        if not rows:
            raise RuntimeError(f"Insert of assignment for order '{assignment.order_id}' returned no row")
        return _row_to_assignment(rows[0])

    def get(self, assignment_id: str) -> Optional[DispatchAssignment]:
        response = self.client.table(ASSIGNMENTS_TABLE).select("*").eq("id", assignment_id).limit(1).execute()
        rows = response.data or []
        return _row_to_assignment(rows[0]) if rows else None

    def list_for_driver(self, driver_id: str) -> list[DispatchAssignment]:
        response = (
            self.client.table(ASSIGNMENTS_TABLE)
            .select("*")
            .eq("driver_id", driver_id)
            .order("created_at", desc=True)
            .execute()
        )
        return [_row_to_assignment(row) for row in (response.data or [])]

    def count_active(self, driver_id: str) -> int:
        response = (
            self.client.table(ASSIGNMENTS_TABLE)
            .select("id", count="exact")
            .eq("driver_id", driver_id)
            .in_("status", sorted(status.value for status in ACTIVE_ASSIGNMENT_STATUSES))
            .execute()
        )
        if response.count is not None:
            return int(response.count)
        return len(response.data or [])

    def compare_and_set_status(
        self,
        assignment_id: str,
        *,
        expected: AssignmentStatus,
        new: AssignmentStatus,
        **fields: Any,
    ) -> DispatchAssignment:
        values: dict[str, Any] = {"status": new.value}
        for key, value in fields.items():
            values[key] = _iso(value) if isinstance(value, datetime) else value
        response = (
            self.client.table(ASSIGNMENTS_TABLE)
            .update(values)
            .eq("id", assignment_id)
            .eq("status", expected.value)
            .execute()
        )
        rows = response.data or []
        if rows:
            return _row_to_assignment(rows[0])
        if self.get(assignment_id) is None:
            raise AssignmentNotFoundError(assignment_id)
        raise ConcurrentModificationError(f"Assignment '{assignment_id}' is no longer '{expected.value}'")


def build_supabase_repositories(client: Client) -> Repositories:
    return Repositories(
        orders=SupabaseOrderStore(client),
        drivers=SupabaseDriverDirectory(client),
        assignments=SupabaseAssignmentStore(client),
    )
