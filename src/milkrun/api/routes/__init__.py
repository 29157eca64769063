"""Route group exports."""

from . import assignments, dispatch, drivers, health, optimization

__all__ = ["assignments", "dispatch", "drivers", "health", "optimization"]
