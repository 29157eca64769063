"""Translate domain errors raised by services into HTTP errors."""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from ..exceptions import CapacityExceededError, ConcurrentModificationError, NotFoundError


def to_http_exception(exc: Exception, action: str) -> HTTPException:
    if isinstance(exc, CapacityExceededError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.as_detail())
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ValueError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, ConcurrentModificationError):
        logging.warning(f"Conflict while trying to {action}: {exc}")
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    logging.exception(f"Failed to {action}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}: {exc}",
    )
