"""Driver capacity views and status reassessment."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..config import Settings, settings as default_settings
from ..exceptions import DriverNotFoundError
from ..models.domain import DispatchAssignment, Driver, DriverStatus
from ..persistence.base import Repositories


@dataclass(slots=True)
class DriverCapacity:
    driver: Driver
    max_capacity: int
    available_capacity: int


def status_for_load(load: int, max_capacity: int, current: DriverStatus) -> DriverStatus:
    """Busy at or above capacity, available below it; offline drivers stay offline."""

    if current == DriverStatus.OFFLINE:
        return DriverStatus.OFFLINE
    return DriverStatus.BUSY if load >= max_capacity else DriverStatus.AVAILABLE


def describe_driver(driver: Driver, settings: Settings = default_settings) -> DriverCapacity:
    max_capacity = settings.capacity_for(driver.vehicle_type)
    return DriverCapacity(
        driver=driver,
        max_capacity=max_capacity,
        available_capacity=max(0, max_capacity - driver.active_order_count),
    )


def list_drivers(
    repositories: Repositories,
    *,
    status: Optional[DriverStatus] = None,
    settings: Settings = default_settings,
) -> list[DriverCapacity]:
    drivers = repositories.drivers.list_drivers()
    if status is not None:
        drivers = [driver for driver in drivers if driver.status == status]
    drivers.sort(key=lambda driver: driver.id)
    return [describe_driver(driver, settings) for driver in drivers]


def get_driver(repositories: Repositories, driver_id: str, *, settings: Settings = default_settings) -> DriverCapacity:
    driver = repositories.drivers.get_driver(driver_id)
    if driver is None:
        raise DriverNotFoundError(driver_id)
    return describe_driver(driver, settings)


def list_driver_assignments(repositories: Repositories, driver_id: str) -> list[DispatchAssignment]:
    if repositories.drivers.get_driver(driver_id) is None:
        raise DriverNotFoundError(driver_id)
    return repositories.assignments.list_for_driver(driver_id)
