from __future__ import annotations

from pathlib import Path
from threading import Lock
from typing import List, Union
import json
import logging
import os
import tempfile

from pydantic import TypeAdapter, ValidationError

from loopgen.models import SavedRoute

log = logging.getLogger(__name__)

SAVED_ROUTES_KEY = "@saved_routes"

_routes_adapter = TypeAdapter(List[SavedRoute])


class SavedRouteStore:
    """
    File-backed "saved routes" collection keyed by route id.

    The whole collection is read and replaced on every write, mirroring a
    key/value store with a single key.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = Lock()

    def _read(self) -> List[SavedRoute]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return _routes_adapter.validate_python(raw.get(SAVED_ROUTES_KEY, []))
        except (OSError, ValueError, AttributeError, ValidationError):
            log.error("Cannot read saved routes from %s", self.path, exc_info=True)
            return []

    def _write(self, routes: List[SavedRoute]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {SAVED_ROUTES_KEY: _routes_adapter.dump_python(routes, mode="json")}
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".saved_routes.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def list(self) -> List[SavedRoute]:
        with self._lock:
            return self._read()

    def get(self, route_id: str) -> SavedRoute | None:
        with self._lock:
            return next((r for r in self._read() if r.id == route_id), None)

    def save(self, route: SavedRoute) -> SavedRoute:
        """Append, or overwrite the entry with the same id in place."""
        with self._lock:
            routes = self._read()
            for i, existing in enumerate(routes):
                if existing.id == route.id:
                    routes[i] = route
                    break
            else:
                routes.append(route)
            self._write(routes)
        return route

    def delete(self, route_id: str) -> bool:
        with self._lock:
            routes = self._read()
            kept = [r for r in routes if r.id != route_id]
            if len(kept) == len(routes):
                return False
            self._write(kept)
            return True

    def clear(self) -> None:
        with self._lock:
            if self.path.exists():
                self.path.unlink()
