from datetime import datetime, timezone

import pytest

from milkrun.exceptions import (
    AssignmentNotFoundError,
    CapacityExceededError,
    ConcurrentModificationError,
    InvalidTransitionError,
)
from milkrun.models.domain import AssignmentStatus, Driver, DriverStatus, OrderRecord
from milkrun.persistence.memory import InMemoryAssignmentStore, build_memory_repositories
from milkrun.services.assignments.state_machine import (
    TRANSITIONS,
    AssignmentEvent,
    AssignmentService,
    event_for,
    next_status,
)
from milkrun.services.dispatch.engine import DispatchEngine
from milkrun.services.dispatch.locks import DriverLockRegistry

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _order(order_id: str) -> OrderRecord:
    return OrderRecord(
        id=order_id,
        customer_name="Customer",
        delivery_address="Piassa",
        latitude=9.03,
        longitude=38.74,
        city="Addis Ababa",
        status="ready",
    )


@pytest.fixture
def repositories():
    return build_memory_repositories(
        orders=[_order(f"O{i}") for i in range(1, 6)],
        drivers=[Driver(id="car-1", name="Abebe", vehicle_type="car")],
    )


@pytest.fixture
def locks():
    return DriverLockRegistry()


@pytest.fixture
def service(repositories, locks):
    return AssignmentService(repositories, locks=locks, clock=lambda: NOW)


def _dispatch(repositories, locks, *order_ids):
    result = DispatchEngine(repositories, locks=locks).commit_dispatch(list(order_ids), "car-1", "shop-1")
    return [assignment.id for assignment in result.assignments]


def test_full_lifecycle_to_delivery(repositories, locks, service):
    (assignment_id,) = _dispatch(repositories, locks, "O1")

    service.transition(assignment_id, AssignmentEvent.ACCEPT, actor="driver")
    picked = service.transition(assignment_id, AssignmentEvent.CONFIRM_PICKUP)
    assert picked.actual_pickup_time == NOW
    service.transition(assignment_id, AssignmentEvent.START_TRANSIT)
    delivered = service.transition(assignment_id, AssignmentEvent.CONFIRM_DELIVERY)

    assert delivered.status == AssignmentStatus.DELIVERED
    assert delivered.actual_delivery_time == NOW
    assert repositories.orders.get_order("O1").status == "delivered"
    assert repositories.drivers.get_driver("car-1").active_order_count == 0


def test_delivered_is_terminal(repositories, locks, service):
    (assignment_id,) = _dispatch(repositories, locks, "O1")
    for event in (
        AssignmentEvent.ACCEPT,
        AssignmentEvent.CONFIRM_PICKUP,
        AssignmentEvent.START_TRANSIT,
        AssignmentEvent.CONFIRM_DELIVERY,
    ):
        service.transition(assignment_id, event)

    with pytest.raises(InvalidTransitionError) as excinfo:
        service.transition(assignment_id, AssignmentEvent.ACCEPT)
    assert "not allowed from current state 'delivered'" in str(excinfo.value)
    assert service.get(assignment_id).status == AssignmentStatus.DELIVERED


@pytest.mark.parametrize("event", list(AssignmentEvent))
def test_cancelled_is_terminal(repositories, locks, service, event):
    (assignment_id,) = _dispatch(repositories, locks, "O1")
    service.transition(assignment_id, AssignmentEvent.REJECT)

    with pytest.raises(InvalidTransitionError):
        service.transition(assignment_id, event)
    assert service.get(assignment_id).status == AssignmentStatus.CANCELLED


def test_reject_releases_capacity_and_reassesses_status(repositories, locks, service):
    ids = _dispatch(repositories, locks, "O1", "O2", "O3", "O4", "O5")
    assert repositories.drivers.get_driver("car-1").status == DriverStatus.BUSY

    service.transition(ids[0], AssignmentEvent.REJECT)

    driver = repositories.drivers.get_driver("car-1")
    assert driver.active_order_count == 4
    assert driver.status == DriverStatus.AVAILABLE


def test_dispatcher_cancel_after_pickup(repositories, locks, service):
    (assignment_id,) = _dispatch(repositories, locks, "O1")
    service.transition(assignment_id, AssignmentEvent.ACCEPT)
    service.transition(assignment_id, AssignmentEvent.CONFIRM_PICKUP)

    cancelled = service.transition(assignment_id, AssignmentEvent.CANCEL, actor="dispatcher")

    assert cancelled.status == AssignmentStatus.CANCELLED
    assert repositories.drivers.get_driver("car-1").active_order_count == 0


def test_non_terminal_steps_keep_driver_load(repositories, locks, service):
    (assignment_id,) = _dispatch(repositories, locks, "O1")
    service.transition(assignment_id, AssignmentEvent.ACCEPT)
    assert repositories.drivers.get_driver("car-1").active_order_count == 1


def test_skipping_a_step_is_rejected(repositories, locks, service):
    (assignment_id,) = _dispatch(repositories, locks, "O1")

    with pytest.raises(InvalidTransitionError):
        service.transition(assignment_id, AssignmentEvent.CONFIRM_DELIVERY)
    assert service.get(assignment_id).status == AssignmentStatus.ASSIGNED


def test_transition_to_target_status(repositories, locks, service):
    (assignment_id,) = _dispatch(repositories, locks, "O1")

    accepted = service.transition_to(assignment_id, AssignmentStatus.ACCEPTED)
    assert accepted.status == AssignmentStatus.ACCEPTED
    with pytest.raises(InvalidTransitionError):
        service.transition_to(assignment_id, AssignmentStatus.IN_TRANSIT)


def test_unknown_assignment(service):
    with pytest.raises(AssignmentNotFoundError):
        service.transition("nope", AssignmentEvent.ACCEPT)


def test_stale_status_write_is_refused(repositories, locks):
    (assignment_id,) = _dispatch(repositories, locks, "O1")

    with pytest.raises(ConcurrentModificationError):
        repositories.assignments.compare_and_set_status(
            assignment_id,
            expected=AssignmentStatus.ACCEPTED,
            new=AssignmentStatus.PICKED_UP,
        )


def test_transition_table_lookups():
    assert next_status(AssignmentStatus.ASSIGNED, AssignmentEvent.ACCEPT) == AssignmentStatus.ACCEPTED
    assert event_for(AssignmentStatus.ASSIGNED, AssignmentStatus.CANCELLED) == AssignmentEvent.REJECT
    assert event_for(AssignmentStatus.IN_TRANSIT, AssignmentStatus.CANCELLED) == AssignmentEvent.CANCEL
    assert not any(source.is_terminal for source, _ in TRANSITIONS)
    with pytest.raises(InvalidTransitionError):
        next_status(AssignmentStatus.DELIVERED, AssignmentEvent.CANCEL)


class HookedAssignmentStore(InMemoryAssignmentStore):
    """Runs ``before_insert`` once, just ahead of the next insert."""

    def __init__(self) -> None:
        super().__init__()
        self.before_insert = None

    def insert(self, assignment):
        hook, self.before_insert = self.before_insert, None
        if hook is not None:
            hook()
        return super().insert(assignment)


def test_recount_keeps_capacity_reserved_by_another_process(repositories):
    repositories.assignments = HookedAssignmentStore()
    for order_id in ("O6", "O7"):
        repositories.orders.add(_order(order_id))
    (first,) = _dispatch(repositories, DriverLockRegistry(), "O1")

    # a second process rejects O1 while this one has reserved O2-O5 but not inserted them
    other = AssignmentService(repositories, locks=DriverLockRegistry(), clock=lambda: NOW)
    repositories.assignments.before_insert = lambda: other.transition(first, AssignmentEvent.REJECT)
    assert len(_dispatch(repositories, DriverLockRegistry(), "O2", "O3", "O4", "O5")) == 4

    assert repositories.drivers.get_driver("car-1").active_order_count == 4
    with pytest.raises(CapacityExceededError):
        DispatchEngine(repositories, locks=DriverLockRegistry()).commit_dispatch(["O6", "O7"], "car-1", "shop-1")
    assert repositories.assignments.count_active("car-1") == 4


def test_full_recount_repairs_drift(repositories, locks, service):
    _dispatch(repositories, locks, "O1", "O2")
    driver = repositories.drivers.get_driver("car-1")
    repositories.drivers.compare_and_set(
        "car-1",
        expected_version=driver.version,
        active_order_count=5,
        status=DriverStatus.BUSY,
    )

    repaired = service.recount_driver("car-1")

    assert repaired.active_order_count == 2
    assert repaired.status == DriverStatus.AVAILABLE
