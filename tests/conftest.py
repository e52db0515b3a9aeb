from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import polyline
import pytest

from loopgen.services.directions import decode_directions
from loopgen.services.geo import GeoPoint

START = GeoPoint(52.3702, 4.8952)


def square_loop(lat: float, lon: float, half_deg: float = 0.02, per_side: int = 4) -> List[Tuple[float, float]]:
    """Closed square around (lat, lon) with per_side points on each edge."""
    corners = [
        (lat - half_deg, lon - half_deg),
        (lat - half_deg, lon + half_deg),
        (lat + half_deg, lon + half_deg),
        (lat + half_deg, lon - half_deg),
        (lat - half_deg, lon - half_deg),
    ]
    pts: List[Tuple[float, float]] = []
    for (a_lat, a_lon), (b_lat, b_lon) in zip(corners, corners[1:]):
        for k in range(per_side):
            t = k / per_side
            pts.append((round(a_lat + t * (b_lat - a_lat), 5), round(a_lon + t * (b_lon - a_lon), 5)))
    pts.append(corners[-1])
    return pts


def loop_payload(
    coords: Sequence[Tuple[float, float]],
    distance_m: float = 12_000,
    duration_s: float = 2_400,
    status: str = "OK",
    steps: Optional[List[Dict[str, Any]]] = None,
    legs: int = 1,
) -> Dict[str, Any]:
    leg_list = []
    for i in range(legs):
        leg = {
            "distance": {"value": distance_m / legs, "text": ""},
            "duration": {"value": duration_s / legs, "text": ""},
        }
        if steps and i == 0:
            leg["steps"] = steps
        leg_list.append(leg)
    return {
        "status": status,
        "routes": [
            {
                "overview_polyline": {"points": polyline.encode(list(coords))},
                "legs": leg_list,
            }
        ],
    }


class FakeProvider:
    """Directions stand-in: payload_for(call_number) builds each response."""

    def __init__(self, payload_for: Callable[[int], Dict[str, Any]]):
        self.payload_for = payload_for
        self.calls: List[Sequence[GeoPoint]] = []

    def request_loop(self, start, waypoints, options=None):
        self.calls.append(list(waypoints))
        return decode_directions(self.payload_for(len(self.calls)))


@pytest.fixture
def start() -> GeoPoint:
    return START


@pytest.fixture
def varied_provider() -> FakeProvider:
    # 12 km loops that never share a segment
    return FakeProvider(lambda n: loop_payload(square_loop(START.lat + 0.05 * n, START.lon)))
