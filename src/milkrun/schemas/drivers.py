"""Pydantic models for driver capacity views."""

from __future__ import annotations

from pydantic import BaseModel

from ..models.domain import DriverStatus
from ..services.drivers import DriverCapacity


class DriverModel(BaseModel):
    id: str
    name: str
    vehicle_type: str
    status: DriverStatus
    active_order_count: int
    max_capacity: int
    available_capacity: int

    @classmethod
    def from_capacity(cls, view: DriverCapacity) -> "DriverModel":
        driver = view.driver
        return cls(
            id=driver.id,
            name=driver.name,
            vehicle_type=driver.vehicle_type,
            status=driver.status,
            active_order_count=driver.active_order_count,
            max_capacity=view.max_capacity,
            available_capacity=view.available_capacity,
        )
