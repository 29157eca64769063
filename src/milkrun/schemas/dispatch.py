"""Pydantic models for committing clusters and single orders to drivers."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class CommitRequest(BaseModel):
    cluster_id: Optional[str] = Field(default=None, description="Cluster the batch came from, for traceability.")
    driver_id: str = Field(..., min_length=1)
    shop_id: str = Field(..., min_length=1)
    order_ids: list[str] = Field(..., min_length=1, description="Orders to commit as one batch.")
    tracking_prefix: Optional[str] = Field(default=None, description="Prefix for generated tracking numbers.")
    created_by: Optional[str] = Field(default=None, description="Dispatcher committing the batch.")
    notes: Optional[str] = None


class SingleDispatchRequest(BaseModel):
    order_id: str = Field(..., min_length=1)
    driver_id: str = Field(..., min_length=1)
    shop_id: str = Field(..., min_length=1)
    tracking_prefix: Optional[str] = None
    created_by: Optional[str] = None
    notes: Optional[str] = None


class OrderErrorModel(BaseModel):
    order_id: str
    error: str


class CommitResponse(BaseModel):
    success: bool
    message: str
    cluster_id: Optional[str] = None
    driver_id: str
    shop_id: str
    orders_assigned: int
    tracking_numbers: list[str]
    assignment_ids: list[str]
    errors: list[OrderErrorModel] = Field(default_factory=list)
    driver_status: Optional[str] = None
    active_order_count: int = 0
    max_capacity: int = 0
