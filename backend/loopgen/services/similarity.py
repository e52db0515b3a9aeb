from __future__ import annotations

from typing import AbstractSet, Iterable, List, Sequence, Tuple

from loopgen.services.geo import LatLon, haversine_km, path_length_km

Segment = Tuple[LatLon, LatLon]

DEFAULT_TOLERANCE = 1e-4


def path_segments(path: Sequence[LatLon]) -> List[Segment]:
    return [(path[i], path[i + 1]) for i in range(len(path) - 1)]


def _close(a: LatLon, b: LatLon, tolerance: float) -> bool:
    return abs(a[0] - b[0]) < tolerance and abs(a[1] - b[1]) < tolerance


def segments_match(a: Segment, b: Segment, tolerance: float = DEFAULT_TOLERANCE) -> bool:
    # Direction matters: a reversed segment is a different traversal.
    return _close(a[0], b[0], tolerance) and _close(a[1], b[1], tolerance)


def _matching_segments(
    path_a: Sequence[LatLon],
    path_b: Sequence[LatLon],
    tolerance: float,
) -> Iterable[Segment]:
    segs_b = path_segments(path_b)
    for seg_a in path_segments(path_a):
        for seg_b in segs_b:
            if segments_match(seg_a, seg_b, tolerance):
                yield seg_a
                break


def segment_overlap_ratio(
    path_a: Sequence[LatLon],
    path_b: Sequence[LatLon],
    tolerance: float = DEFAULT_TOLERANCE,
) -> float:
    """Share of path_a's segments that also appear in path_b (count-based)."""
    total = len(path_a) - 1
    if total <= 0 or len(path_b) < 2:
        return 0.0
    matched = sum(1 for _ in _matching_segments(path_a, path_b, tolerance))
    return matched / total


def length_overlap_ratio(
    path_a: Sequence[LatLon],
    path_b: Sequence[LatLon],
    tolerance: float = DEFAULT_TOLERANCE,
) -> float:
    """
    Length of path_a that coincides with path_b, over the longer of the two paths.

    Dividing by the longer path keeps a short loop that retraces part of a long
    one from counting as a near-identical route.
    """
    if len(path_a) < 2 or len(path_b) < 2:
        return 0.0
    longest = max(path_length_km(path_a), path_length_km(path_b))
    if longest <= 0:
        return 0.0

    shared = 0.0
    for (a_lat, a_lon), (b_lat, b_lon) in _matching_segments(path_a, path_b, tolerance):
        shared += haversine_km(a_lat, a_lon, b_lat, b_lon)
    return min(1.0, shared / longest)


def path_key(path: Sequence[LatLon], precision: int = 6) -> str:
    return "|".join(f"{lat:.{precision}f},{lon:.{precision}f}" for lat, lon in path)


def is_duplicate(path: Sequence[LatLon], accepted_keys: AbstractSet[str], precision: int = 6) -> bool:
    return path_key(path, precision) in accepted_keys
