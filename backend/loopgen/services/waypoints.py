from __future__ import annotations

from typing import List, Optional, Set, Tuple
import logging

import numpy as np

from loopgen.config import GeneratorConfig
from loopgen.services.geo import GeoPoint, bearing, distance_km, sample_point_in_disk

log = logging.getLogger(__name__)


def _point_key(p: GeoPoint, precision: int) -> Tuple[float, float]:
    return (round(p.lat, precision), round(p.lon, precision))


def generate_waypoints(
    center: GeoPoint,
    radius_km: float,
    count: int,
    config: Optional[GeneratorConfig] = None,
    rng: Optional[np.random.Generator] = None,
) -> List[GeoPoint]:
    """
    Sample up to `count` waypoints around center, ordered by bearing.

    A sample is dropped when its rounded coordinates repeat an accepted one, or
    when it sits closer than radius_km * min_separation_fraction to the center or
    to an accepted waypoint. Sampling stops after count * waypoint_attempt_multiplier
    draws; whatever was accepted by then is returned.
    """
    config = config or GeneratorConfig()
    if count <= 0 or radius_km <= 0:
        return []
    rng = rng if rng is not None else np.random.default_rng()

    min_sep_km = radius_km * config.min_separation_fraction
    max_samples = count * config.waypoint_attempt_multiplier

    accepted: List[GeoPoint] = []
    seen: Set[Tuple[float, float]] = set()
    samples = 0

    while len(accepted) < count and samples < max_samples:
        samples += 1
        p = sample_point_in_disk(
            center,
            radius_km,
            rng=rng,
            min_fraction=config.sample_min_fraction,
            max_fraction=config.sample_max_fraction,
        )

        key = _point_key(p, config.key_precision)
        if key in seen:
            continue
        if distance_km(center, p) < min_sep_km:
            continue
        if any(distance_km(p, q) < min_sep_km for q in accepted):
            continue

        seen.add(key)
        accepted.append(p)

    if len(accepted) < count:
        log.debug("waypoint sampler stopped at %d/%d after %d samples", len(accepted), count, samples)

    # Circular visiting order keeps the provider from zig-zagging across the disk.
    accepted.sort(key=lambda p: bearing(center, p))
    return accepted
