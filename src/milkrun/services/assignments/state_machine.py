"""Lifecycle of one order-to-driver assignment.

    assigned -> accepted -> picked_up -> in_transit -> delivered
        |           |           |            |
        +-----------+-----------+------------+-------> cancelled

Only the transitions in ``TRANSITIONS`` are legal. Reaching a terminal state
recounts the driver's live assignments instead of decrementing a cached value,
but never below the stored load minus the slot being freed, so capacity another
process has reserved and not yet backed with assignment rows is kept.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from ...config import Settings, settings as default_settings
from ...exceptions import AssignmentNotFoundError, ConcurrentModificationError, DriverNotFoundError, InvalidTransitionError
from ...models.domain import AssignmentStatus, DispatchAssignment, Driver
from ...persistence.base import Repositories
from ..dispatch.locks import DriverLockRegistry, driver_locks
from ..drivers import status_for_load


class AssignmentEvent(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    CONFIRM_PICKUP = "confirm_pickup"
    START_TRANSIT = "start_transit"
    CONFIRM_DELIVERY = "confirm_delivery"
    CANCEL = "cancel"


TRANSITIONS: dict[tuple[AssignmentStatus, AssignmentEvent], AssignmentStatus] = {
    (AssignmentStatus.ASSIGNED, AssignmentEvent.ACCEPT): AssignmentStatus.ACCEPTED,
    (AssignmentStatus.ASSIGNED, AssignmentEvent.REJECT): AssignmentStatus.CANCELLED,
    (AssignmentStatus.ACCEPTED, AssignmentEvent.CONFIRM_PICKUP): AssignmentStatus.PICKED_UP,
    (AssignmentStatus.PICKED_UP, AssignmentEvent.START_TRANSIT): AssignmentStatus.IN_TRANSIT,
    (AssignmentStatus.IN_TRANSIT, AssignmentEvent.CONFIRM_DELIVERY): AssignmentStatus.DELIVERED,
    # dispatcher-initiated cancellation once the driver has accepted
    (AssignmentStatus.ACCEPTED, AssignmentEvent.CANCEL): AssignmentStatus.CANCELLED,
    (AssignmentStatus.PICKED_UP, AssignmentEvent.CANCEL): AssignmentStatus.CANCELLED,
    (AssignmentStatus.IN_TRANSIT, AssignmentEvent.CANCEL): AssignmentStatus.CANCELLED,
}


def next_status(current: AssignmentStatus, event: AssignmentEvent) -> AssignmentStatus:
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidTransitionError(current.value, event.value) from None


def event_for(current: AssignmentStatus, target: AssignmentStatus) -> AssignmentEvent:
    """Event that moves ``current`` to ``target``; the first table entry wins."""

    for (source, event), destination in TRANSITIONS.items():
        if source == current and destination == target:
            return event
    raise InvalidTransitionError(current.value, f"-> {target.value}")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AssignmentService:
    def __init__(
        self,
        repositories: Repositories,
        *,
        settings: Settings = default_settings,
        locks: DriverLockRegistry = driver_locks,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.repositories = repositories
        self.settings = settings
        self.locks = locks
        self.clock = clock

    def get(self, assignment_id: str) -> DispatchAssignment:
        assignment = self.repositories.assignments.get(assignment_id)
        if assignment is None:
            raise AssignmentNotFoundError(assignment_id)
        return assignment

    def transition(self, assignment_id: str, event: AssignmentEvent, *, actor: Optional[str] = None) -> DispatchAssignment:
        assignment = self.get(assignment_id)
        target = next_status(assignment.status, event)

        now = self.clock()
        fields: dict = {"updated_at": now}
        if target == AssignmentStatus.PICKED_UP:
            fields["actual_pickup_time"] = now
        elif target == AssignmentStatus.DELIVERED:
            fields["actual_delivery_time"] = now

        updated = self.repositories.assignments.compare_and_set_status(
            assignment_id,
            expected=assignment.status,
            new=target,
            **fields,
        )
        logging.info(
            f"Assignment {assignment_id} {assignment.status.value} -> {target.value} "
            f"via {event.value} (actor={actor or 'unknown'})"
        )

        if target == AssignmentStatus.DELIVERED:
            try:
                self.repositories.orders.set_status(updated.order_id, "delivered")
            except Exception as exc:
                logging.error(f"Failed to mark order {updated.order_id} delivered: {exc}")

        if target.is_terminal:
            self.recount_driver(updated.driver_id, released=1)
        return updated

    def transition_to(self, assignment_id: str, target: AssignmentStatus, *, actor: Optional[str] = None) -> DispatchAssignment:
        assignment = self.get(assignment_id)
        return self.transition(assignment_id, event_for(assignment.status, target), actor=actor)

    def recount_driver(self, driver_id: str, *, released: Optional[int] = None) -> Driver:
        """Rewrite the driver's load from its live active assignments and reassess status.

        With ``released`` the load is floored at the stored load minus ``released``.
        Without it the load becomes the live count outright, which is only safe while
        no commit for the driver is in flight.
        """

        attempts = self.settings.dispatch_max_cas_retries + 1
        with self.locks.hold(driver_id):
            for attempt in range(1, attempts + 1):
                driver = self.repositories.drivers.get_driver(driver_id)
                if driver is None:
                    raise DriverNotFoundError(driver_id)
                live = self.repositories.assignments.count_active(driver_id)
                active = live if released is None else max(live, driver.active_order_count - released)
                max_capacity = self.settings.capacity_for(driver.vehicle_type)
                try:
                    updated = self.repositories.drivers.compare_and_set(
                        driver_id,
                        expected_version=driver.version,
                        active_order_count=active,
                        status=status_for_load(active, max_capacity, driver.status),
                    )
                except ConcurrentModificationError as exc:
                    logging.warning(f"Recount of driver {driver_id} raced (attempt {attempt}/{attempts}): {exc}")
                    continue
                if driver.active_order_count != active:
                    logging.info(f"Driver {driver_id} load {driver.active_order_count} -> {active}/{max_capacity}")
                return updated
        raise ConcurrentModificationError(f"Could not recount driver '{driver_id}' after {attempts} attempts")
