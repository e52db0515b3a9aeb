from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence, Set
import asyncio
import logging
import math
import uuid

import numpy as np

from loopgen.config import GeneratorConfig
from loopgen.models import AcceptedRoute, Bounds, Location, RouteStep
from loopgen.services.directions import (
    CandidatePath,
    DirectionsOptions,
    DirectionStep,
    LoopResult,
    is_failure,
)
from loopgen.services.geo import GeoPoint, LatLon, path_bounds
from loopgen.services.similarity import length_overlap_ratio, path_key, segment_overlap_ratio
from loopgen.services.waypoints import generate_waypoints

log = logging.getLogger(__name__)

NO_ROUTES_WARNING = "No valid routes found. Try adjusting the radius."


class RejectReason(str, Enum):
    NO_WAYPOINTS = "no_waypoints"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    PROVIDER_REJECTED = "provider_rejected"
    NO_VIABLE_PATH = "no_viable_path"
    DUPLICATE = "duplicate"
    OUT_OF_BAND = "out_of_band"
    PREFILTER_OVERLAP = "prefilter_overlap"
    OVERLAP = "overlap"


class LoopProvider(Protocol):
    def request_loop(
        self,
        start: GeoPoint,
        waypoints: Sequence[GeoPoint],
        options: Optional[DirectionsOptions] = None,
    ) -> LoopResult: ...


@dataclass
class GenerationResult:
    routes: List[AcceptedRoute]
    attempts: int
    rejections: Dict[str, int] = field(default_factory=dict)

    @property
    def warnings(self) -> List[str]:
        return [] if self.routes else [NO_ROUTES_WARNING]

    def debug(self) -> Dict[str, Any]:
        return {
            "attempts": self.attempts,
            "accepted": len(self.routes),
            "rejections": dict(self.rejections),
        }


def _location(p: Optional[LatLon]) -> Optional[Location]:
    if p is None:
        return None
    return Location(lat=p[0], lon=p[1])


def _step_model(s: DirectionStep) -> RouteStep:
    return RouteStep(
        instruction=s.instruction,
        distance_m=s.distance_m,
        duration_s=s.duration_s,
        maneuver=s.maneuver,
        start_location=_location(s.start_location),
        end_location=_location(s.end_location),
    )


def _bounds_model(box) -> Optional[Bounds]:
    if box is None:
        return None
    min_lat, min_lon, max_lat, max_lon = box
    return Bounds(
        northeast=Location(lat=max_lat, lon=max_lon),
        southwest=Location(lat=min_lat, lon=min_lon),
    )


def build_accepted_route(start: GeoPoint, candidate: CandidatePath, number: int) -> AcceptedRoute:
    start_loc = Location(lat=start.lat, lon=start.lon)
    return AcceptedRoute(
        id=f"route-{uuid.uuid4().hex}",
        name=f"Route {number}",
        distance_km=candidate.distance_km,
        duration_s=candidate.duration_s,
        start_location=start_loc,
        end_location=start_loc,
        coordinates=[[lat, lon] for lat, lon in candidate.coordinates],
        steps=[_step_model(s) for s in candidate.steps] or None,
        bounds=_bounds_model(candidate.bounds or path_bounds(candidate.coordinates)),
        created_at=datetime.now(timezone.utc),
    )


class LoopGenerator:
    """
    Drives the sample -> request -> validate loop for one start point.

    State (accepted routes, duplicate keys) lives inside a single run() call.
    If the awaiting task is cancelled mid-request, the cancellation propagates
    and the late provider answer is dropped together with that state.
    """

    def __init__(
        self,
        client: LoopProvider,
        config: Optional[GeneratorConfig] = None,
        options: Optional[DirectionsOptions] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.client = client
        self.config = config or GeneratorConfig()
        self.options = options or DirectionsOptions()
        self.rng = rng if rng is not None else np.random.default_rng()

    async def _request(self, start: GeoPoint, waypoints: List[GeoPoint]) -> Optional[LoopResult]:
        try:
            return await asyncio.to_thread(self.client.request_loop, start, waypoints, self.options)
        except Exception:
            # The adapter is supposed to contain its own failures; anything that
            # still escapes only costs this attempt.
            log.warning("directions client raised", exc_info=True)
            return None

    def _too_similar(self, coords: List[LatLon], accepted_paths: List[List[LatLon]]) -> Optional[RejectReason]:
        cfg = self.config
        if cfg.count_overlap_threshold is not None:
            for other in accepted_paths:
                if segment_overlap_ratio(coords, other, cfg.tolerance_deg) > cfg.count_overlap_threshold:
                    return RejectReason.PREFILTER_OVERLAP
        for other in accepted_paths:
            if length_overlap_ratio(coords, other, cfg.tolerance_deg) > cfg.length_overlap_threshold:
                return RejectReason.OVERLAP
        return None

    async def run(
        self,
        start: GeoPoint,
        radius_km: float,
        target_count: int,
        min_distance_km: float = 0.0,
        max_distance_km: Optional[float] = None,
        max_attempts: int = 50,
    ) -> GenerationResult:
        if radius_km <= 0 or not math.isfinite(radius_km):
            raise ValueError(f"radius_km must be a positive number, got {radius_km}")
        if max_attempts < 0:
            raise ValueError(f"max_attempts must be >= 0, got {max_attempts}")
        upper = math.inf if max_distance_km is None else float(max_distance_km)
        if min_distance_km < 0 or upper < min_distance_km:
            raise ValueError(f"Invalid distance band [{min_distance_km}, {max_distance_km}]")

        start = start.normalized()
        cfg = self.config

        routes: List[AcceptedRoute] = []
        accepted_paths: List[List[LatLon]] = []
        accepted_keys: Set[str] = set()
        rejections: Counter = Counter()
        attempts = 0

        def reject(reason: RejectReason, **extra) -> None:
            rejections[reason.value] += 1
            log.debug("attempt rejected", extra={"attempt": attempts, "reason": reason.value, **extra})

        while len(routes) < target_count and attempts < max_attempts:
            attempts += 1

            waypoints = generate_waypoints(start, radius_km, cfg.waypoints_per_attempt, cfg, self.rng)
            if not waypoints:
                reject(RejectReason.NO_WAYPOINTS)
                continue

            result = await self._request(start, waypoints)
            if result is None:
                reject(RejectReason.PROVIDER_UNAVAILABLE)
                continue
            if is_failure(result):
                reject(RejectReason(result.reason), status=getattr(result, "status", None))
                continue

            coords = result.coordinates
            if len(coords) < 2:
                reject(RejectReason.NO_VIABLE_PATH)
                continue

            key = path_key(coords, cfg.key_precision)
            if key in accepted_keys:
                reject(RejectReason.DUPLICATE)
                continue

            if not (min_distance_km <= result.distance_km <= upper):
                reject(RejectReason.OUT_OF_BAND, distance_km=round(result.distance_km, 3))
                continue

            similar = self._too_similar(coords, accepted_paths)
            if similar is not None:
                reject(similar)
                continue

            route = build_accepted_route(start, result, len(routes) + 1)
            routes.append(route)
            accepted_paths.append(coords)
            accepted_keys.add(key)
            log.debug(
                "route accepted",
                extra={"attempt": attempts, "route_id": route.id, "distance_km": round(route.distance_km, 3)},
            )

        log.info(
            "loop generation finished: %d/%d routes in %d attempts",
            len(routes),
            target_count,
            attempts,
            extra={"attempts": attempts, "accepted": len(routes)},
        )
        return GenerationResult(routes=routes, attempts=attempts, rejections=dict(rejections))


async def generate_loop_routes(
    start: GeoPoint,
    radius_km: float,
    target_count: int,
    min_distance_km: float,
    max_distance_km: Optional[float],
    max_attempts: int,
    *,
    client: LoopProvider,
    config: Optional[GeneratorConfig] = None,
    options: Optional[DirectionsOptions] = None,
    rng: Optional[np.random.Generator] = None,
) -> List[AcceptedRoute]:
    generator = LoopGenerator(client, config=config, options=options, rng=rng)
    result = await generator.run(
        start,
        radius_km,
        target_count,
        min_distance_km=min_distance_km,
        max_distance_km=max_distance_km,
        max_attempts=max_attempts,
    )
    return result.routes
