"""Domain errors raised by the dispatch core.

Input-style failures subclass ``ValueError`` so API routes can keep translating
them into 400 responses.
"""

from __future__ import annotations


class ValidationError(ValueError):
    """Request is missing required data or carries invalid values."""


class NotFoundError(LookupError):
    pass


class DriverNotFoundError(NotFoundError):
    def __init__(self, driver_id: str) -> None:
        super().__init__(f"Driver '{driver_id}' not found")
        self.driver_id = driver_id


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order '{order_id}' not found")
        self.order_id = order_id


class AssignmentNotFoundError(NotFoundError):
    def __init__(self, assignment_id: str) -> None:
        super().__init__(f"Assignment '{assignment_id}' not found")
        self.assignment_id = assignment_id


class DriverUnavailableError(ValidationError):
    def __init__(self, driver_id: str, status: str) -> None:
        super().__init__(f"Driver '{driver_id}' is {status} and cannot take new orders")
        self.driver_id = driver_id
        self.status = status


class CapacityExceededError(ValidationError):
    """Committing the batch would push the driver past its vehicle capacity."""

    def __init__(self, driver_id: str, vehicle_type: str, current: int, requested: int, max_capacity: int) -> None:
        super().__init__(
            f"Capacity exceeded. Driver has {current} active orders. Batch has {requested}. "
            f"Max for {vehicle_type} is {max_capacity}."
        )
        self.driver_id = driver_id
        self.vehicle_type = vehicle_type
        self.current = current
        self.requested = requested
        self.max_capacity = max_capacity

    def as_detail(self) -> dict:
        return {
            "error": str(self),
            "driver_id": self.driver_id,
            "current": self.current,
            "requested": self.requested,
            "attempted": self.current + self.requested,
            "max_capacity": self.max_capacity,
        }


class OrderNotDispatchableError(ValueError):
    def __init__(self, order_id: str, status: str) -> None:
        super().__init__(f"Order '{order_id}' is '{status}' and cannot be dispatched")
        self.order_id = order_id
        self.status = status


class InvalidTransitionError(ValueError):
    """Assignment event is not allowed from the assignment's current state."""

    def __init__(self, current: str, event: str) -> None:
        super().__init__(f"Transition '{event}' is not allowed from current state '{current}'")
        self.current = current
        self.event = event


class ConcurrentModificationError(RuntimeError):
    """A compare-and-set write lost against a concurrent writer."""
