"""Result wrapper for pipeline stages that degrade instead of raising."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(slots=True)
class StageResult(Generic[T]):
    """Value produced by a stage, or the safe default it fell back to."""

    value: T
    stage: str
    degraded: bool = False
    error: Optional[str] = None

    @classmethod
    def ok(cls, stage: str, value: T) -> "StageResult[T]":
        return cls(value=value, stage=stage)

    @classmethod
    def fallback(cls, stage: str, value: T, exc: BaseException) -> "StageResult[T]":
        return cls(value=value, stage=stage, degraded=True, error=f"{type(exc).__name__}: {exc}")
