from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Location(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)


class Bounds(BaseModel):
    northeast: Location
    southwest: Location


class RouteStep(BaseModel):
    instruction: str
    distance_m: int = 0
    duration_s: int = 0
    maneuver: str = "straight"
    start_location: Optional[Location] = None
    end_location: Optional[Location] = None


class AcceptedRoute(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    distance_km: float
    duration_s: int = 0
    start_location: Location
    end_location: Location
    coordinates: List[List[float]]  # [lat, lon]
    steps: Optional[List[RouteStep]] = None
    bounds: Optional[Bounds] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SavedRoute(AcceptedRoute):
    rating: Optional[float] = Field(default=None, ge=1, le=5)
    tags: List[str] = Field(default_factory=list)


class LoopRequest(BaseModel):
    start: Location
    radius_km: float = Field(gt=0, le=100)
    target_count: int = Field(default=5, ge=1, le=20)
    min_distance_km: float = Field(default=0.0, ge=0)
    max_distance_km: Optional[float] = Field(default=None, gt=0)
    max_attempts: int = Field(default=50, ge=1, le=100)

    mode: str = "bicycling"
    avoid_highways: bool = True
    avoid_tolls: bool = True
    avoid_ferries: bool = True

    @model_validator(mode="after")
    def check_band(self):
        if self.max_distance_km is not None and self.max_distance_km < self.min_distance_km:
            raise ValueError("max_distance_km must be >= min_distance_km")
        return self


class LoopResponse(BaseModel):
    routes: List[AcceptedRoute]
    warnings: List[str] = Field(default_factory=list)
    generation_debug: Dict[str, Any] = Field(default_factory=dict)
