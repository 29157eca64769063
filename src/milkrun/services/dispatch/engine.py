"""Transactional commit of an order batch to a driver.

The capacity gate is all-or-nothing: a batch that would overflow the driver is
rejected before any write. Once the gate passes, the batch's load is reserved on
the driver row with a compare-and-set and each order is committed on its own, so
one stale or already-dispatched order never rolls back its siblings. Reservations
held for orders that failed are released at the end. A release that cannot be
written leaves those slots reserved and is logged; the commit result still
reports the orders that went through.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from ...config import Settings, settings as default_settings
from ...exceptions import (
    CapacityExceededError,
    ConcurrentModificationError,
    DriverNotFoundError,
    DriverUnavailableError,
    ValidationError,
)
from ...models.domain import AssignmentStatus, DispatchAssignment, Driver, DriverStatus, Location
from ...persistence.base import Repositories
from ..drivers import status_for_load
from .locks import DriverLockRegistry, driver_locks
from .tracking import TrackingNumberGenerator, tracking_numbers


@dataclass(slots=True)
class OrderFailure:
    order_id: str
    error: str


@dataclass(slots=True)
class CommitResult:
    success: bool
    message: str
    driver_id: str
    shop_id: str
    orders_assigned: int
    tracking_numbers: list[str] = field(default_factory=list)
    errors: list[OrderFailure] = field(default_factory=list)
    assignments: list[DispatchAssignment] = field(default_factory=list)
    cluster_id: Optional[str] = None
    driver_status: Optional[DriverStatus] = None
    active_order_count: int = 0
    max_capacity: int = 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DispatchEngine:
    """Commits clusters (or single orders) to drivers under per-driver serialisation."""

    def __init__(
        self,
        repositories: Repositories,
        *,
        settings: Settings = default_settings,
        locks: DriverLockRegistry = driver_locks,
        tracking: TrackingNumberGenerator = tracking_numbers,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.repositories = repositories
        self.settings = settings
        self.locks = locks
        self.tracking = tracking
        self.clock = clock

    def commit_dispatch(
        self,
        order_ids: Sequence[str],
        driver_id: str,
        shop_id: str,
        tracking_prefix: Optional[str] = None,
        *,
        created_by: str = "system",
        cluster_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> CommitResult:
        batch, prefix = self._validate(order_ids, driver_id, shop_id, tracking_prefix)

        with self.locks.hold(driver_id):
            driver, max_capacity = self._reserve(driver_id, len(batch))
            logging.info(
                f"Reserved {len(batch)} slot(s) on driver {driver_id} "
                f"({driver.active_order_count}/{max_capacity}, cluster={cluster_id})"
            )

            now = self.clock()
            assignments: list[DispatchAssignment] = []
            errors: list[OrderFailure] = []
            for order_id in batch:
                try:
                    assignments.append(
                        self._assign_order(
                            order_id,
                            driver_id=driver_id,
                            shop_id=shop_id,
                            prefix=prefix,
                            created_by=created_by,
                            notes=notes or ("Milk-run cluster assignment" if cluster_id else None),
                            now=now,
                        )
                    )
                except Exception as exc:
                    logging.error(f"Failed to assign order {order_id} to driver {driver_id}: {exc}")
                    errors.append(OrderFailure(order_id=order_id, error=str(exc)))

            if errors:
                try:
                    driver = self._release(driver_id, len(errors), max_capacity)
                except (ConcurrentModificationError, DriverNotFoundError) as exc:
                    # committed orders stand; the unreleased slots stay reserved
                    logging.error(f"Could not release {len(errors)} slot(s) on driver {driver_id}: {exc}")
                    driver = self.repositories.drivers.get_driver(driver_id) or driver

        assigned = len(assignments)
        if assigned == len(batch):
            message = "All orders assigned successfully"
        elif assigned:
            message = "Partial assignment completed"
        else:
            message = "No orders could be assigned"
        logging.info(f"Dispatch to driver {driver_id}: {assigned}/{len(batch)} assigned, {len(errors)} failed")

        return CommitResult(
            success=assigned > 0,
            message=message,
            driver_id=driver_id,
            shop_id=shop_id,
            orders_assigned=assigned,
            tracking_numbers=[assignment.tracking_number for assignment in assignments],
            errors=errors,
            assignments=assignments,
            cluster_id=cluster_id,
            driver_status=driver.status,
            active_order_count=driver.active_order_count,
            max_capacity=max_capacity,
        )

    def dispatch_single(
        self,
        order_id: str,
        driver_id: str,
        shop_id: str,
        tracking_prefix: Optional[str] = None,
        *,
        created_by: str = "system",
        notes: Optional[str] = None,
    ) -> CommitResult:
        return self.commit_dispatch(
            [order_id],
            driver_id,
            shop_id,
            tracking_prefix,
            created_by=created_by,
            notes=notes,
        )

    def _validate(
        self,
        order_ids: Sequence[str],
        driver_id: str,
        shop_id: str,
        tracking_prefix: Optional[str],
    ) -> tuple[list[str], str]:
        if not driver_id or not str(driver_id).strip():
            raise ValidationError("driver_id is required")
        if not shop_id or not str(shop_id).strip():
            raise ValidationError("shop_id is required")
        prefix = (tracking_prefix or self.settings.default_tracking_prefix).strip()
        if not prefix:
            raise ValidationError("tracking_prefix must not be blank")
        batch: list[str] = []
        for order_id in order_ids or ():
            cleaned = str(order_id).strip() if order_id is not None else ""
            if not cleaned:
                raise ValidationError("order_ids must not contain empty values")
            if cleaned not in batch:
                batch.append(cleaned)
        if not batch:
            raise ValidationError("order_ids must contain at least one order")
        return batch, prefix

    def _reserve(self, driver_id: str, requested: int) -> tuple[Driver, int]:
        attempts = self.settings.dispatch_max_cas_retries + 1
        for attempt in range(1, attempts + 1):
            driver = self.repositories.drivers.get_driver(driver_id)
            if driver is None:
                raise DriverNotFoundError(driver_id)
            if driver.status == DriverStatus.OFFLINE:
                raise DriverUnavailableError(driver_id, driver.status.value)

            max_capacity = self.settings.capacity_for(driver.vehicle_type)
            current = driver.active_order_count
            if current + requested > max_capacity:
                raise CapacityExceededError(driver_id, driver.vehicle_type, current, requested, max_capacity)

            load = current + requested
            try:
                updated = self.repositories.drivers.compare_and_set(
                    driver_id,
                    expected_version=driver.version,
                    active_order_count=load,
                    status=status_for_load(load, max_capacity, driver.status),
                )
                return updated, max_capacity
            except ConcurrentModificationError as exc:
                logging.warning(f"Capacity reservation on driver {driver_id} raced (attempt {attempt}/{attempts}): {exc}")
        raise ConcurrentModificationError(f"Could not reserve capacity on driver '{driver_id}' after {attempts} attempts")

    def _release(self, driver_id: str, count: int, max_capacity: int) -> Driver:
        attempts = self.settings.dispatch_max_cas_retries + 1
        for attempt in range(1, attempts + 1):
            driver = self.repositories.drivers.get_driver(driver_id)
            if driver is None:
                raise DriverNotFoundError(driver_id)
            load = max(0, driver.active_order_count - count)
            try:
                return self.repositories.drivers.compare_and_set(
                    driver_id,
                    expected_version=driver.version,
                    active_order_count=load,
                    status=status_for_load(load, max_capacity, driver.status),
                )
            except ConcurrentModificationError as exc:
                logging.warning(f"Releasing {count} slot(s) on driver {driver_id} raced (attempt {attempt}/{attempts}): {exc}")
        raise ConcurrentModificationError(f"Could not release capacity on driver '{driver_id}' after {attempts} attempts")

    def _assign_order(
        self,
        order_id: str,
        *,
        driver_id: str,
        shop_id: str,
        prefix: str,
        created_by: str,
        notes: Optional[str],
        now: datetime,
    ) -> DispatchAssignment:
        tracking_number = self.tracking.next(prefix)
        previous = self.repositories.orders.mark_dispatched(
            order_id,
            tracking_number=tracking_number,
            shop_id=shop_id,
            dispatched_at=now,
            allowed_statuses=self.settings.dispatchable_statuses,
        )
        assignment = DispatchAssignment(
            id=uuid.uuid4().hex,
            order_id=order_id,
            driver_id=driver_id,
            shop_id=shop_id,
            tracking_number=tracking_number,
            status=AssignmentStatus.ASSIGNED,
            created_by=created_by,
            pickup=Location(
                lat=self.settings.depot_latitude,
                lng=self.settings.depot_longitude,
                name=self.settings.depot_name,
            ),
            delivery=Location(
                lat=previous.latitude or 0.0,
                lng=previous.longitude or 0.0,
                name=previous.delivery_address or "Customer Address",
            ),
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        try:
            return self.repositories.assignments.insert(assignment)
        except Exception:
            self.repositories.orders.revert_dispatch(order_id, previous)
            raise
