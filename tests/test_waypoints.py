import numpy as np
import pytest

from loopgen.config import GeneratorConfig
from loopgen.services.geo import GeoPoint, bearing, distance_km
from loopgen.services.waypoints import generate_waypoints

CENTER = GeoPoint(40.4168, -3.7038)


@pytest.mark.parametrize("seed", range(20))
def test_waypoint_properties(seed):
    radius = 8.0
    pts = generate_waypoints(CENTER, radius, 6, rng=np.random.default_rng(seed))

    assert 0 < len(pts) <= 6
    min_sep = radius * 0.1
    for i, p in enumerate(pts):
        assert distance_km(CENTER, p) <= radius + 1e-6
        assert distance_km(CENTER, p) >= min_sep
        for q in pts[i + 1:]:
            assert distance_km(p, q) >= min_sep

    angles = [bearing(CENTER, p) for p in pts]
    assert angles == sorted(angles)


def test_small_request_is_filled():
    pts = generate_waypoints(CENTER, 10.0, 3, rng=np.random.default_rng(0))
    assert len(pts) == 3


def test_same_seed_same_waypoints():
    a = generate_waypoints(CENTER, 5.0, 4, rng=np.random.default_rng(42))
    b = generate_waypoints(CENTER, 5.0, 4, rng=np.random.default_rng(42))
    assert a == b


def test_ceiling_returns_partial_result_without_raising():
    # center separation larger than the disk: every sample is rejected
    cfg = GeneratorConfig(min_separation_fraction=2.0)
    assert generate_waypoints(CENTER, 5.0, 4, config=cfg, rng=np.random.default_rng(3)) == []


def test_ceiling_bounds_the_number_of_samples(monkeypatch):
    import loopgen.services.waypoints as waypoints

    drawn = []
    real = waypoints.sample_point_in_disk

    def counting(*args, **kwargs):
        drawn.append(1)
        return real(*args, **kwargs)

    monkeypatch.setattr(waypoints, "sample_point_in_disk", counting)
    cfg = GeneratorConfig(min_separation_fraction=2.0, waypoint_attempt_multiplier=5)
    waypoints.generate_waypoints(CENTER, 5.0, 3, config=cfg, rng=np.random.default_rng(3))
    assert len(drawn) == 15


def test_degenerate_inputs():
    assert generate_waypoints(CENTER, 5.0, 0) == []
    assert generate_waypoints(CENTER, 0.0, 3) == []
