"""API routes for driver capacity and workload."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from ...models.domain import DriverStatus
from ...persistence import Repositories, get_repositories
from ...schemas.assignments import AssignmentModel
from ...schemas.drivers import DriverModel
from ...services import drivers as driver_service
from ..errors import to_http_exception

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.get("", response_model=List[DriverModel], status_code=status.HTTP_200_OK)
def list_drivers(
    status_filter: Optional[DriverStatus] = Query(default=None, alias="status"),
    repositories: Repositories = Depends(get_repositories),
) -> List[DriverModel]:
    try:
        views = driver_service.list_drivers(repositories, status=status_filter)
    except Exception as exc:
        raise to_http_exception(exc, "list drivers") from exc
    return [DriverModel.from_capacity(view) for view in views]


@router.get("/{driver_id}", response_model=DriverModel, status_code=status.HTTP_200_OK)
def get_driver(driver_id: str, repositories: Repositories = Depends(get_repositories)) -> DriverModel:
    try:
        return DriverModel.from_capacity(driver_service.get_driver(repositories, driver_id))
    except Exception as exc:
        raise to_http_exception(exc, f"load driver {driver_id}") from exc


@router.get("/{driver_id}/assignments", response_model=List[AssignmentModel], status_code=status.HTTP_200_OK)
def list_driver_assignments(
    driver_id: str,
    repositories: Repositories = Depends(get_repositories),
) -> List[AssignmentModel]:
    try:
        assignments = driver_service.list_driver_assignments(repositories, driver_id)
    except Exception as exc:
        raise to_http_exception(exc, f"list assignments for driver {driver_id}") from exc
    return [AssignmentModel.from_domain(assignment) for assignment in assignments]
