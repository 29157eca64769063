"""Thread-safe in-memory stores used when no database is configured."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence

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
    OrderRecord,
)
from .base import Repositories


def _sort_key(value: Optional[datetime]) -> float:
    return value.timestamp() if value else float("-inf")


class InMemoryOrderStore:
    def __init__(self, orders: Iterable[OrderRecord] = ()) -> None:
        self._lock = threading.RLock()
        self._orders: dict[str, OrderRecord] = {order.id: replace(order) for order in orders}

    def add(self, order: OrderRecord) -> None:
        with self._lock:
            self._orders[order.id] = replace(order)

    def list_orders(self, statuses: Sequence[str]) -> list[OrderRecord]:
        wanted = set(statuses)
        with self._lock:
            rows = [
                replace(order)
                for order in self._orders.values()
                if order.status in wanted and order.latitude is not None and order.longitude is not None
            ]
        rows.sort(key=lambda order: _sort_key(order.created_at), reverse=True)
        return rows

    def get_order(self, order_id: str) -> Optional[OrderRecord]:
        with self._lock:
            order = self._orders.get(order_id)
            return replace(order) if order else None

    def mark_dispatched(
        self,
        order_id: str,
        *,
        tracking_number: str,
        shop_id: str,
        dispatched_at: datetime,
        allowed_statuses: Sequence[str],
    ) -> OrderRecord:
        with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
            if order.status not in allowed_statuses:
                raise OrderNotDispatchableError(order_id, order.status)
            previous = replace(order)
            order.status = "in_transit"
            order.tracking_number = tracking_number
            order.shop_id = shop_id
            order.dispatch_timestamp = dispatched_at
            return previous

    def revert_dispatch(self, order_id: str, previous: OrderRecord) -> None:
        with self._lock:
            self._orders[order_id] = replace(previous)

    def set_status(self, order_id: str, status: str) -> None:
        with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
            order.status = status


class InMemoryDriverDirectory:
    def __init__(self, drivers: Iterable[Driver] = ()) -> None:
        self._lock = threading.RLock()
        self._drivers: dict[str, Driver] = {driver.id: replace(driver) for driver in drivers}

    def add(self, driver: Driver) -> None:
        with self._lock:
            self._drivers[driver.id] = replace(driver)

    def get_driver(self, driver_id: str) -> Optional[Driver]:
        with self._lock:
            driver = self._drivers.get(driver_id)
            return replace(driver) if driver else None

    def list_drivers(self) -> list[Driver]:
        with self._lock:
            return [replace(driver) for driver in self._drivers.values()]

    def compare_and_set(
        self,
        driver_id: str,
        *,
        expected_version: int,
        active_order_count: int,
        status: DriverStatus,
    ) -> Driver:
        with self._lock:
            driver = self._drivers.get(driver_id)
            if driver is None:
                raise DriverNotFoundError(driver_id)
            if driver.version != expected_version:
                raise ConcurrentModificationError(
                    f"Driver '{driver_id}' changed (version {driver.version}, expected {expected_version})"
                )
            driver.active_order_count = active_order_count
            driver.status = status
            driver.version += 1
            return replace(driver)


class InMemoryAssignmentStore:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._assignments: dict[str, DispatchAssignment] = {}

    def insert(self, assignment: DispatchAssignment) -> DispatchAssignment:
        with self._lock:
            if assignment.id in self._assignments:
                raise ValueError(f"Assignment '{assignment.id}' already exists")
            active = [
                existing
                for existing in self._assignments.values()
                if existing.order_id == assignment.order_id and existing.status in ACTIVE_ASSIGNMENT_STATUSES
            ]
            if active:
                raise ValueError(f"Order '{assignment.order_id}' already has an active assignment")
            self._assignments[assignment.id] = replace(assignment)
            return replace(assignment)

    def get(self, assignment_id: str) -> Optional[DispatchAssignment]:
        with self._lock:
            assignment = self._assignments.get(assignment_id)
            return replace(assignment) if assignment else None

    def list_for_driver(self, driver_id: str) -> list[DispatchAssignment]:
        with self._lock:
            rows = [replace(a) for a in self._assignments.values() if a.driver_id == driver_id]
        rows.sort(key=lambda a: _sort_key(a.created_at), reverse=True)
        return rows

    def count_active(self, driver_id: str) -> int:
        with self._lock:
            return sum(
                1
                for a in self._assignments.values()
                if a.driver_id == driver_id and a.status in ACTIVE_ASSIGNMENT_STATUSES
            )

    def compare_and_set_status(
        self,
        assignment_id: str,
        *,
        expected: AssignmentStatus,
        new: AssignmentStatus,
        **fields: Any,
    ) -> DispatchAssignment:
        with self._lock:
            assignment = self._assignments.get(assignment_id)
            if assignment is None:
                raise AssignmentNotFoundError(assignment_id)
            if assignment.status != expected:
                raise ConcurrentModificationError(
                    f"Assignment '{assignment_id}' is '{assignment.status.value}', expected '{expected.value}'"
                )
            updated = replace(assignment, status=new, **fields)
            self._assignments[assignment_id] = updated
            return replace(updated)


def build_memory_repositories(
    *,
    orders: Iterable[OrderRecord] = (),
    drivers: Iterable[Driver] = (),
) -> Repositories:
    return Repositories(
        orders=InMemoryOrderStore(orders),
        drivers=InMemoryDriverDirectory(drivers),
        assignments=InMemoryAssignmentStore(),
    )
