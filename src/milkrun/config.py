"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="MILKRUN_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Milk-Run Dispatch API"
    api_prefix: str = "/api"
    data_root: Path = Field(default=Path("data"), description="Root directory for run artefacts.")

    depot_latitude: float = Field(default=9.033, ge=-90.0, le=90.0)
    depot_longitude: float = Field(default=38.750, ge=-180.0, le=180.0)
    depot_name: str = "Shop Location"

    average_speed_kmh: float = Field(default=30.0, gt=0.0, description="Average travel speed for duration estimates.")
    service_time_per_stop_min: float = Field(default=5.0, ge=0.0, description="Handover time spent at each stop.")

    default_clustering_radius_km: float = Field(default=3.0, gt=0.0)
    min_clustering_radius_km: float = Field(default=0.5, gt=0.0)
    max_clustering_radius_km: float = Field(default=50.0, gt=0.0)

    capacity_limit_motorbike: int = Field(default=3, ge=1)
    capacity_limit_car: int = Field(default=5, ge=1)
    capacity_limit_van: int = Field(default=10, ge=1)
    capacity_limit_truck: int = Field(default=20, ge=1)
    capacity_limit_default: int = Field(default=1, ge=1, description="Capacity for unrecognised vehicle types.")

    dispatchable_statuses: tuple[str, ...] = Field(
        default=("confirmed", "processing", "ready_for_dispatch", "paid", "pending", "payment_received", "ready"),
        description="Order statuses that may be clustered and dispatched.",
    )
    default_tracking_prefix: str = "MLK"
    dispatch_max_cas_retries: int = Field(default=5, ge=0)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    @field_validator("data_root", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", "dispatchable_statuses", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @property
    def vehicle_capacities(self) -> dict[str, int]:
        return {
            "motorbike": self.capacity_limit_motorbike,
            "car": self.capacity_limit_car,
            "van": self.capacity_limit_van,
            "truck": self.capacity_limit_truck,
        }

    def capacity_for(self, vehicle_type: str | None) -> int:
        """Maximum simultaneous active orders for a vehicle type."""
        key = (vehicle_type or "").strip().lower()
        return self.vehicle_capacities.get(key, self.capacity_limit_default)

    def clamp_radius(self, radius_km: float | None) -> float:
        if radius_km is None:
            return self.default_clustering_radius_km
        return min(self.max_clustering_radius_km, max(self.min_clustering_radius_km, radius_km))


settings = Settings()
