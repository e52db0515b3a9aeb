from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
import html
import logging
import re

import polyline
import requests

from loopgen.services.geo import GeoPoint, LatLon

log = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")

DEFAULT_MANEUVER = "straight"


@dataclass(frozen=True)
class DirectionsOptions:
    mode: str = "bicycling"
    avoid_highways: bool = True
    avoid_tolls: bool = True
    avoid_ferries: bool = True

    def avoid_param(self) -> Optional[str]:
        parts = []
        if self.avoid_tolls:
            parts.append("tolls")
        if self.avoid_ferries:
            parts.append("ferries")
        if self.avoid_highways:
            parts.append("highways")
        return "|".join(parts) if parts else None


@dataclass
class DirectionStep:
    instruction: str
    distance_m: int
    duration_s: int
    maneuver: str = DEFAULT_MANEUVER
    start_location: Optional[LatLon] = None
    end_location: Optional[LatLon] = None


@dataclass
class CandidatePath:
    coordinates: List[LatLon]
    distance_km: float
    duration_s: int
    steps: List[DirectionStep] = field(default_factory=list)
    # (min_lat, min_lon, max_lat, max_lon) as reported by the provider
    bounds: Optional[Tuple[float, float, float, float]] = None


@dataclass(frozen=True)
class ProviderUnavailable:
    detail: str = ""
    reason = "provider_unavailable"


@dataclass(frozen=True)
class ProviderRejected:
    status: str
    detail: str = ""
    reason = "provider_rejected"


@dataclass(frozen=True)
class NoViablePath:
    detail: str = ""
    reason = "no_viable_path"


ProviderFailure = Union[ProviderUnavailable, ProviderRejected, NoViablePath]
LoopResult = Union[CandidatePath, ProviderUnavailable, ProviderRejected, NoViablePath]


def is_failure(result: Any) -> bool:
    return isinstance(result, (ProviderUnavailable, ProviderRejected, NoViablePath))


def strip_markup(text: str) -> str:
    """Turn a provider html instruction into plain text."""
    if not text:
        return ""
    plain = _TAG_RE.sub(" ", text)
    plain = html.unescape(plain)
    return _WS_RE.sub(" ", plain).strip()


def _latlng(obj: Any) -> Optional[LatLon]:
    if not isinstance(obj, dict):
        return None
    try:
        return (float(obj["lat"]), float(obj["lng"]))
    except (KeyError, TypeError, ValueError):
        return None


def _value(obj: Any) -> float:
    if not isinstance(obj, dict):
        return 0.0
    try:
        return float(obj.get("value", 0) or 0)
    except (TypeError, ValueError):
        return 0.0


def extract_steps(legs: Sequence[Dict[str, Any]]) -> List[DirectionStep]:
    steps: List[DirectionStep] = []
    for leg in legs:
        for s in leg.get("steps") or []:
            steps.append(
                DirectionStep(
                    instruction=strip_markup(s.get("html_instructions", "")),
                    distance_m=int(round(_value(s.get("distance")))),
                    duration_s=int(round(_value(s.get("duration")))),
                    maneuver=s.get("maneuver") or DEFAULT_MANEUVER,
                    start_location=_latlng(s.get("start_location")),
                    end_location=_latlng(s.get("end_location")),
                )
            )
    return steps


def _bounds(route: Dict[str, Any]) -> Optional[Tuple[float, float, float, float]]:
    b = route.get("bounds")
    if not isinstance(b, dict):
        return None
    ne = _latlng(b.get("northeast"))
    sw = _latlng(b.get("southwest"))
    if ne is None or sw is None:
        return None
    return (sw[0], sw[1], ne[0], ne[1])


def decode_directions(payload: Any) -> LoopResult:
    """
    Decode a Directions JSON body into a CandidatePath.

    Only routes[0] is used. Distance is the sum of leg distances in km,
    duration the sum of leg durations in seconds.
    """
    if not isinstance(payload, dict):
        return ProviderUnavailable("Response body is not a JSON object")

    status = str(payload.get("status", ""))
    if status != "OK":
        return ProviderRejected(status=status or "UNKNOWN", detail=str(payload.get("error_message", "")))

    routes = payload.get("routes") or []
    if not routes or not isinstance(routes[0], dict):
        return NoViablePath("No routes in response")
    route = routes[0]

    encoded = (route.get("overview_polyline") or {}).get("points")
    if not encoded:
        return NoViablePath("Missing overview polyline")

    try:
        coords = [(float(lat), float(lon)) for lat, lon in polyline.decode(encoded)]
    except (ValueError, IndexError, TypeError) as e:
        return NoViablePath(f"Undecodable polyline: {e}")
    if not coords:
        return NoViablePath("Empty polyline")

    legs = [leg for leg in (route.get("legs") or []) if isinstance(leg, dict)]
    distance_m = sum(_value(leg.get("distance")) for leg in legs)
    duration_s = sum(_value(leg.get("duration")) for leg in legs)

    return CandidatePath(
        coordinates=coords,
        distance_km=distance_m / 1000.0,
        duration_s=int(round(duration_s)),
        steps=extract_steps(legs),
        bounds=_bounds(route),
    )


class DirectionsClient:
    """Round-trip requests against the Google Directions JSON API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://maps.googleapis.com/maps/api/directions/json",
        timeout_s: float = 20.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout_s = timeout_s
        self.session = session or requests.Session()

    def build_params(
        self,
        start: GeoPoint,
        waypoints: Sequence[GeoPoint],
        options: DirectionsOptions,
    ) -> Dict[str, str]:
        origin = f"{start.lat},{start.lon}"
        params = {
            "origin": origin,
            "destination": origin,
            "mode": options.mode,
            "key": self.api_key,
        }
        if waypoints:
            # via: stops shape the path without splitting it into extra legs
            params["waypoints"] = "|".join(f"via:{w.lat},{w.lon}" for w in waypoints)
        avoid = options.avoid_param()
        if avoid:
            params["avoid"] = avoid
        return params

    def request_loop(
        self,
        start: GeoPoint,
        waypoints: Sequence[GeoPoint],
        options: Optional[DirectionsOptions] = None,
    ) -> LoopResult:
        options = options or DirectionsOptions()
        params = self.build_params(start, waypoints, options)

        try:
            resp = self.session.get(self.base_url, params=params, timeout=self.timeout_s)
        except requests.RequestException as e:
            log.warning("directions request failed: %s", e)
            return ProviderUnavailable(str(e))

        if resp.status_code != 200:
            log.warning("directions provider returned HTTP %s", resp.status_code)
            return ProviderRejected(status=f"HTTP_{resp.status_code}", detail=resp.text[:200])

        try:
            payload = resp.json()
        except ValueError as e:
            return ProviderUnavailable(f"Invalid JSON from provider: {e}")

        return decode_directions(payload)
