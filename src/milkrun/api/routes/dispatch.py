"""API routes for dispatching single orders."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...persistence import Repositories, get_repositories
from ...schemas.dispatch import CommitResponse, OrderErrorModel, SingleDispatchRequest
from ...services.dispatch.engine import CommitResult, DispatchEngine
from ..errors import to_http_exception

router = APIRouter(prefix="/dispatch", tags=["dispatch"])


def commit_result_to_response(result: CommitResult) -> CommitResponse:
    return CommitResponse(
        success=result.success,
        message=result.message,
        cluster_id=result.cluster_id,
        driver_id=result.driver_id,
        shop_id=result.shop_id,
        orders_assigned=result.orders_assigned,
        tracking_numbers=result.tracking_numbers,
        assignment_ids=[assignment.id for assignment in result.assignments],
        errors=[OrderErrorModel(order_id=failure.order_id, error=failure.error) for failure in result.errors],
        driver_status=result.driver_status.value if result.driver_status else None,
        active_order_count=result.active_order_count,
        max_capacity=result.max_capacity,
    )


@router.post("/assign", response_model=CommitResponse, status_code=status.HTTP_200_OK)
def assign_order(
    payload: SingleDispatchRequest,
    repositories: Repositories = Depends(get_repositories),
) -> CommitResponse:
    engine = DispatchEngine(repositories)
    try:
        result = engine.dispatch_single(
            payload.order_id,
            payload.driver_id,
            payload.shop_id,
            payload.tracking_prefix,
            created_by=payload.created_by or "dispatcher",
            notes=payload.notes,
        )
    except Exception as exc:
        raise to_http_exception(exc, f"assign order {payload.order_id}") from exc
    return commit_result_to_response(result)
