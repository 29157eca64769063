"""Store wiring: Supabase when configured, in-memory otherwise."""

from __future__ import annotations

import logging
from functools import lru_cache

from ..db.supabase import get_supabase_client
from .base import AssignmentStore, DriverDirectory, OrderStore, Repositories
from .memory import build_memory_repositories


@lru_cache()
def get_repositories() -> Repositories:
    client = get_supabase_client()
    if client is None:
        logging.info("Supabase not configured - using in-memory stores")
        return build_memory_repositories()

    from .database import build_supabase_repositories

    return build_supabase_repositories(client)


__all__ = [
    "AssignmentStore",
    "DriverDirectory",
    "OrderStore",
    "Repositories",
    "get_repositories",
]
