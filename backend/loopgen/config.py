from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="LOOPGEN_",
        extra="ignore",
    )

    app_name: str = "Loop Route Generator"
    app_version: str = "0.1.0"
    cors_allow_origins: str = "*"

    google_maps_api_key: str = ""
    directions_base_url: str = "https://maps.googleapis.com/maps/api/directions/json"
    directions_timeout_s: float = 20.0
    travel_mode: str = "bicycling"

    saved_routes_path: str = "saved_routes.json"
    log_level: str = "INFO"


@dataclass(frozen=True)
class GeneratorConfig:
    """
    Tuning knobs for waypoint sampling and candidate filtering.

    Passed explicitly into the generator so runs can be reproduced with
    different thresholds side by side.
    """

    # ~10 m in degrees, applied per axis when matching segment endpoints
    tolerance_deg: float = 1e-4
    # count-based pre-filter; None disables it
    count_overlap_threshold: Optional[float] = None
    length_overlap_threshold: float = 0.7
    min_separation_fraction: float = 0.1
    waypoint_attempt_multiplier: int = 5
    waypoints_per_attempt: int = 3
    sample_min_fraction: float = 0.3
    sample_max_fraction: float = 1.0
    key_precision: int = 6


settings = Settings()
