"""Store contracts the dispatch core talks to.

Orders, drivers and assignments live outside the core. Every capacity-affecting
write is a compare-and-set so concurrent dispatchers cannot overwrite each
other's view of a driver or an assignment.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Protocol, Sequence

from ..models.domain import AssignmentStatus, DispatchAssignment, Driver, DriverStatus, OrderRecord


class OrderStore(Protocol):
    def list_orders(self, statuses: Sequence[str]) -> list[OrderRecord]:
        """Orders in any of ``statuses`` that carry non-null coordinates."""
        ...

    def get_order(self, order_id: str) -> Optional[OrderRecord]: ...

    def mark_dispatched(
        self,
        order_id: str,
        *,
        tracking_number: str,
        shop_id: str,
        dispatched_at: datetime,
        allowed_statuses: Sequence[str],
    ) -> OrderRecord:
        """Set the order ``in_transit`` if its status is allowed; return the prior record."""
        ...

    def revert_dispatch(self, order_id: str, previous: OrderRecord) -> None: ...

    def set_status(self, order_id: str, status: str) -> None: ...


class DriverDirectory(Protocol):
    def get_driver(self, driver_id: str) -> Optional[Driver]: ...

    def list_drivers(self) -> list[Driver]: ...

    def compare_and_set(
        self,
        driver_id: str,
        *,
        expected_version: int,
        active_order_count: int,
        status: DriverStatus,
    ) -> Driver:
        """Write load and status only if the row is still at ``expected_version``."""
        ...


class AssignmentStore(Protocol):
    def insert(self, assignment: DispatchAssignment) -> DispatchAssignment: ...

    def get(self, assignment_id: str) -> Optional[DispatchAssignment]: ...

    def list_for_driver(self, driver_id: str) -> list[DispatchAssignment]: ...

    def count_active(self, driver_id: str) -> int: ...

    def compare_and_set_status(
        self,
        assignment_id: str,
        *,
        expected: AssignmentStatus,
        new: AssignmentStatus,
        **fields: Any,
    ) -> DispatchAssignment: ...


@dataclass(slots=True)
class Repositories:
    orders: OrderStore
    drivers: DriverDirectory
    assignments: AssignmentStore
