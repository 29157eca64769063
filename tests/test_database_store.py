"""Supabase-backed stores exercised against an in-process query builder fake."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import pytest

from milkrun.exceptions import (
    AssignmentNotFoundError,
    ConcurrentModificationError,
    DriverNotFoundError,
    OrderNotDispatchableError,
)
from milkrun.models.domain import AssignmentStatus, DriverStatus
from milkrun.persistence.database import build_supabase_repositories
from milkrun.services.assignments.state_machine import AssignmentEvent, AssignmentService
from milkrun.services.dispatch.engine import DispatchEngine
from milkrun.services.dispatch.locks import DriverLockRegistry


@dataclass
class FakeResponse:
    data: list
    count: Optional[int] = None


class FakeQuery:
    def __init__(self, tables: dict[str, list[dict]], name: str) -> None:
        self.tables = tables
        self.name = name
        self.action = "select"
        self.payload: Any = None
        self.filters: list = []
        self.count_mode: Optional[str] = None
        self.order_by: Optional[tuple[str, bool]] = None
        self.row_limit: Optional[int] = None

    def select(self, columns: str = "*", count: Optional[str] = None) -> "FakeQuery":
        self.count_mode = count
        return self

    def insert(self, payload: dict) -> "FakeQuery":
        self.action, self.payload = "insert", payload
        return self

    def update(self, payload: dict) -> "FakeQuery":
        self.action, self.payload = "update", payload
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column: str, values: list) -> "FakeQuery":
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self.order_by = (column, desc)
        return self

    def limit(self, count: int) -> "FakeQuery":
        self.row_limit = count
        return self

    def execute(self) -> FakeResponse:
        rows = self.tables.setdefault(self.name, [])
        if self.action == "insert":
            if any(row["id"] == self.payload["id"] for row in rows):
                raise RuntimeError("duplicate key value violates unique constraint")
            rows.append(copy.deepcopy(self.payload))
            return FakeResponse(data=[copy.deepcopy(self.payload)])

        matched = [row for row in rows if all(check(row) for check in self.filters)]
        if self.action == "update":
            for row in matched:
                row.update(copy.deepcopy(self.payload))
            return FakeResponse(data=copy.deepcopy(matched))

        if self.order_by:
            column, desc = self.order_by
            matched.sort(key=lambda row: row.get(column) or "", reverse=desc)
        total = len(matched)
        if self.row_limit is not None:
            matched = matched[: self.row_limit]
        return FakeResponse(data=copy.deepcopy(matched), count=total if self.count_mode else None)


class FakeSupabase:
    def __init__(self, tables: dict[str, list[dict]]) -> None:
        self.tables = tables

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self.tables, name)


def _order_row(order_id: str, status: str = "paid", created_at: str = "2026-03-01T08:00:00+00:00") -> dict:
    return {
        "id": order_id,
        "customer_name": f"Customer {order_id}",
        "delivery_address": "Kazanchis",
        "latitude": "9.02",
        "longitude": 38.76,
        "city": "Addis Ababa",
        "status": status,
        "total_amount": "120.50",
        "created_at": created_at,
        "tracking_number": None,
        "shop_id": None,
        "dispatch_date": None,
    }


@pytest.fixture
def client() -> FakeSupabase:
    return FakeSupabase(
        {
            "ecommerce_orders": [
                _order_row("O1", created_at="2026-03-01T08:00:00+00:00"),
                _order_row("O2", created_at="2026-03-01T09:00:00Z"),
                _order_row("O3", status="delivered"),
                {**_order_row("O4"), "latitude": None},
            ],
            "drivers": [
                {
                    "id": "car-1",
                    "name": "Abebe",
                    "vehicle_type": "car",
                    "status": "available",
                    "active_order_count": 0,
                    "version": 3,
                }
            ],
            "driver_assignments": [],
        }
    )


def test_list_orders_filters_status_and_missing_coordinates(client):
    repos = build_supabase_repositories(client)
    orders = repos.orders.list_orders(["paid"])

    assert [order.id for order in orders] == ["O2", "O1"]
    assert orders[0].latitude == 9.02
    assert orders[0].total_amount == 120.5
    assert orders[0].created_at == datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def test_mark_dispatched_refuses_non_dispatchable_order(client):
    repos = build_supabase_repositories(client)

    with pytest.raises(OrderNotDispatchableError):
        repos.orders.mark_dispatched(
            "O3",
            tracking_number="MLK-1",
            shop_id="shop-1",
            dispatched_at=datetime.now(timezone.utc),
            allowed_statuses=("paid",),
        )


def test_driver_compare_and_set_detects_stale_version(client):
    repos = build_supabase_repositories(client)

    updated = repos.drivers.compare_and_set(
        "car-1", expected_version=3, active_order_count=2, status=DriverStatus.AVAILABLE
    )
    assert updated.version == 4
    with pytest.raises(ConcurrentModificationError):
        repos.drivers.compare_and_set("car-1", expected_version=3, active_order_count=5, status=DriverStatus.BUSY)
    with pytest.raises(DriverNotFoundError):
        repos.drivers.compare_and_set("ghost", expected_version=0, active_order_count=1, status=DriverStatus.BUSY)
    assert client.tables["drivers"][0]["active_order_count"] == 2


def test_commit_and_deliver_through_supabase_stores(client):
    repos = build_supabase_repositories(client)
    locks = DriverLockRegistry()

    result = DispatchEngine(repos, locks=locks).commit_dispatch(["O1", "O2"], "car-1", "shop-1", "MLK")

    assert result.orders_assigned == 2
    rows = client.tables["driver_assignments"]
    assert {row["order_id"] for row in rows} == {"O1", "O2"}
    assert all(row["status"] == "assigned" for row in rows)
    assert client.tables["ecommerce_orders"][0]["status"] == "in_transit"
    assert repos.assignments.count_active("car-1") == 2

    service = AssignmentService(repos, locks=locks)
    assignment_id = rows[0]["id"]
    for event in (
        AssignmentEvent.ACCEPT,
        AssignmentEvent.CONFIRM_PICKUP,
        AssignmentEvent.START_TRANSIT,
        AssignmentEvent.CONFIRM_DELIVERY,
    ):
        service.transition(assignment_id, event)

    stored = repos.assignments.get(assignment_id)
    assert stored.status == AssignmentStatus.DELIVERED
    assert stored.actual_delivery_time is not None
    assert repos.drivers.get_driver("car-1").active_order_count == 1
    delivered_order = repos.orders.get_order(stored.order_id)
    assert delivered_order.status == "delivered"


def test_assignment_status_compare_and_set(client):
    repos = build_supabase_repositories(client)
    result = DispatchEngine(repos, locks=DriverLockRegistry()).commit_dispatch(["O1"], "car-1", "shop-1")
    assignment_id = result.assignments[0].id

    with pytest.raises(ConcurrentModificationError):
        repos.assignments.compare_and_set_status(
            assignment_id, expected=AssignmentStatus.ACCEPTED, new=AssignmentStatus.PICKED_UP
        )
    with pytest.raises(AssignmentNotFoundError):
        repos.assignments.compare_and_set_status(
            "missing", expected=AssignmentStatus.ASSIGNED, new=AssignmentStatus.ACCEPTED
        )


def test_failed_insert_reverts_order(client, monkeypatch):
    repos = build_supabase_repositories(client)

    def refuse(assignment):
        raise RuntimeError("insert failed")

    monkeypatch.setattr(repos.assignments, "insert", refuse)
    result = DispatchEngine(repos, locks=DriverLockRegistry()).commit_dispatch(["O1"], "car-1", "shop-1")

    assert result.orders_assigned == 0
    order = repos.orders.get_order("O1")
    assert order.status == "paid"
    assert order.tracking_number is None
    assert repos.drivers.get_driver("car-1").active_order_count == 0
