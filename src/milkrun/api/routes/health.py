"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/database", status_code=status.HTTP_200_OK)
def check_database() -> dict:
    """Check database connection and the dispatch tables."""
    from ...db.supabase import get_supabase_client

    supabase = get_supabase_client()
    if not supabase:
        return {
            "configured": False,
            "message": "Supabase not configured. Set MILKRUN_SUPABASE_URL and MILKRUN_SUPABASE_KEY environment variables.",
            "store": "memory",
        }

    try:
        counts: dict[str, int | None] = {}
        for table in ("ecommerce_orders", "drivers", "driver_assignments"):
            result = supabase.table(table).select("id", count="exact").limit(1).execute()
            counts[table] = result.count
        return {
            "configured": True,
            "connected": True,
            "store": "supabase",
            "table_counts": counts,
            "message": "Database connected.",
        }
    except Exception as exc:
        return {
            "configured": True,
            "connected": False,
            "error": str(exc),
            "message": f"Database connection error: {exc}",
        }
