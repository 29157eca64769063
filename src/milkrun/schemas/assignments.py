"""Pydantic models for driver assignments and their lifecycle updates."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, model_validator

from ..models.domain import AssignmentStatus, DispatchAssignment


class LocationModel(BaseModel):
    lat: float
    lng: float
    name: str = ""


class AssignmentModel(BaseModel):
    id: str
    order_id: str
    driver_id: str
    shop_id: str
    tracking_number: str
    status: AssignmentStatus
    created_by: str
    pickup: LocationModel
    delivery: LocationModel
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    actual_pickup_time: Optional[datetime] = None
    actual_delivery_time: Optional[datetime] = None

    @classmethod
    def from_domain(cls, assignment: DispatchAssignment) -> "AssignmentModel":
        return cls(
            id=assignment.id,
            order_id=assignment.order_id,
            driver_id=assignment.driver_id,
            shop_id=assignment.shop_id,
            tracking_number=assignment.tracking_number,
            status=assignment.status,
            created_by=assignment.created_by,
            pickup=LocationModel(lat=assignment.pickup.lat, lng=assignment.pickup.lng, name=assignment.pickup.name),
            delivery=LocationModel(
                lat=assignment.delivery.lat, lng=assignment.delivery.lng, name=assignment.delivery.name
            ),
            notes=assignment.notes,
            created_at=assignment.created_at,
            updated_at=assignment.updated_at,
            actual_pickup_time=assignment.actual_pickup_time,
            actual_delivery_time=assignment.actual_delivery_time,
        )


class AssignmentUpdateRequest(BaseModel):
    """Lifecycle update by event name, or by target status as driver apps send it."""

    event: Optional[str] = None
    status: Optional[AssignmentStatus] = None
    actor: Optional[str] = None

    @model_validator(mode="after")
    def validate_one_of(self) -> "AssignmentUpdateRequest":
        if (self.event is None) == (self.status is None):
            raise ValueError("Provide exactly one of 'event' or 'status'")
        return self
