"""API routes for the driver assignment lifecycle."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ...persistence import Repositories, get_repositories
from ...schemas.assignments import AssignmentModel, AssignmentUpdateRequest
from ...services.assignments.state_machine import AssignmentEvent, AssignmentService
from ..errors import to_http_exception

router = APIRouter(prefix="/driver-assignments", tags=["driver-assignments"])


@router.get("/{assignment_id}", response_model=AssignmentModel, status_code=status.HTTP_200_OK)
def get_assignment(assignment_id: str, repositories: Repositories = Depends(get_repositories)) -> AssignmentModel:
    try:
        return AssignmentModel.from_domain(AssignmentService(repositories).get(assignment_id))
    except Exception as exc:
        raise to_http_exception(exc, f"load assignment {assignment_id}") from exc


@router.patch("/{assignment_id}", response_model=AssignmentModel, status_code=status.HTTP_200_OK)
def update_assignment(
    assignment_id: str,
    payload: AssignmentUpdateRequest,
    repositories: Repositories = Depends(get_repositories),
) -> AssignmentModel:
    """Apply a lifecycle event, or move to a target status when one is given instead."""
    event = None
    if payload.event is not None:
        try:
            event = AssignmentEvent(payload.event.strip().lower())
        except ValueError:
            allowed = ", ".join(item.value for item in AssignmentEvent)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown event '{payload.event}'. Expected one of: {allowed}",
            )

    service = AssignmentService(repositories)
    try:
        if event is not None:
            updated = service.transition(assignment_id, event, actor=payload.actor)
        else:
            updated = service.transition_to(assignment_id, payload.status, actor=payload.actor)
    except Exception as exc:
        raise to_http_exception(exc, f"update assignment {assignment_id}") from exc
    return AssignmentModel.from_domain(updated)
