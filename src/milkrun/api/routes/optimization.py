"""API routes for milk-run route optimisation and cluster commits."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import ValidationError as SchemaValidationError

from ...persistence import Repositories, get_repositories
from ...schemas.dispatch import CommitRequest, CommitResponse
from ...schemas.optimization import OptimizationRequest, OptimizationResponse
from ...services.dispatch.engine import DispatchEngine
from ...services.optimization.service import process_optimization_request
from ..errors import to_http_exception
from .dispatch import commit_result_to_response

router = APIRouter(prefix="/route-optimization", tags=["route-optimization"])


@router.get("", response_model=OptimizationResponse, status_code=status.HTTP_200_OK)
def optimize_routes(
    vehicle_type: str = Query(default="car", description="motorbike, car, van or truck"),
    radius: Optional[float] = Query(default=None, description="Clustering radius in km"),
    status_filter: Optional[str] = Query(
        default=None,
        alias="status",
        description="Comma-separated order statuses to include",
    ),
    persist: bool = Query(default=False, description="Write summary.json and clusters.csv for the run"),
    repositories: Repositories = Depends(get_repositories),
) -> OptimizationResponse:
    """Preview milk-run clusters for the currently dispatchable orders."""
    try:
        payload = OptimizationRequest(
            vehicle_type=vehicle_type,
            clustering_radius_km=radius,
            status_filter=status_filter.split(",") if status_filter else None,
            persist=persist,
        )
    except SchemaValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=[error["msg"] for error in exc.errors()],
        ) from exc

    try:
        return process_optimization_request(payload, repositories.orders)
    except Exception as exc:
        raise to_http_exception(exc, "optimize routes") from exc


@router.post("/commit", response_model=CommitResponse, status_code=status.HTTP_200_OK)
def commit_cluster(
    payload: CommitRequest,
    repositories: Repositories = Depends(get_repositories),
) -> CommitResponse:
    """Assign every order of a previewed cluster to one driver."""
    engine = DispatchEngine(repositories)
    try:
        result = engine.commit_dispatch(
            payload.order_ids,
            payload.driver_id,
            payload.shop_id,
            payload.tracking_prefix,
            created_by=payload.created_by or "dispatcher",
            cluster_id=payload.cluster_id,
            notes=payload.notes,
        )
    except Exception as exc:
        raise to_http_exception(exc, "commit cluster") from exc
    return commit_result_to_response(result)
