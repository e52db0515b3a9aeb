from __future__ import annotations

import logging
import uuid
from functools import lru_cache
from typing import List

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from loopgen.config import GeneratorConfig, settings
from loopgen.logging_setup import configure_logging
from loopgen.models import LoopRequest, LoopResponse, SavedRoute
from loopgen.services.directions import DirectionsClient, DirectionsOptions
from loopgen.services.generator import LoopGenerator
from loopgen.services.geo import GeoPoint
from loopgen.services.store import SavedRouteStore

configure_logging()
log = logging.getLogger("loopgen.api")

api = FastAPI(title=settings.app_name, version=settings.app_version)

api.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_allow_origins.split(",")],
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_directions_client() -> DirectionsClient:
    if not settings.google_maps_api_key:
        raise HTTPException(503, "Directions provider is not configured (missing API key)")
    return DirectionsClient(
        api_key=settings.google_maps_api_key,
        base_url=settings.directions_base_url,
        timeout_s=settings.directions_timeout_s,
    )


def get_generator_config() -> GeneratorConfig:
    return GeneratorConfig()


@lru_cache(maxsize=1)
def get_store() -> SavedRouteStore:
    return SavedRouteStore(settings.saved_routes_path)


@api.get("/health")
def health():
    return {"ok": True}


@api.post("/loops", response_model=LoopResponse)
async def generate_loops(
    req: LoopRequest,
    client: DirectionsClient = Depends(get_directions_client),
    config: GeneratorConfig = Depends(get_generator_config),
) -> LoopResponse:
    options = DirectionsOptions(
        mode=req.mode,
        avoid_highways=req.avoid_highways,
        avoid_tolls=req.avoid_tolls,
        avoid_ferries=req.avoid_ferries,
    )
    generator = LoopGenerator(client, config=config, options=options)
    try:
        result = await generator.run(
            GeoPoint(req.start.lat, req.start.lon),
            radius_km=req.radius_km,
            target_count=req.target_count,
            min_distance_km=req.min_distance_km,
            max_distance_km=req.max_distance_km,
            max_attempts=req.max_attempts,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return LoopResponse(
        routes=result.routes,
        warnings=result.warnings,
        generation_debug=result.debug(),
    )


@api.get("/saved", response_model=List[SavedRoute])
def list_saved(store: SavedRouteStore = Depends(get_store)):
    return store.list()


@api.put("/saved", response_model=SavedRoute)
def save_route(route: SavedRoute, store: SavedRouteStore = Depends(get_store)):
    # Generated routes carry a throwaway id until the user keeps them.
    if route.id.startswith("route-"):
        route = route.model_copy(update={"id": str(uuid.uuid4())})
    saved = store.save(route)
    log.info("route saved", extra={"route_id": saved.id})
    return saved


@api.delete("/saved/{route_id}")
def delete_saved(route_id: str, store: SavedRouteStore = Depends(get_store)):
    if not store.delete(route_id):
        raise HTTPException(404, f"Saved route not found: {route_id}")
    return {"deleted": route_id}


@api.delete("/saved")
def clear_saved(store: SavedRouteStore = Depends(get_store)):
    store.clear()
    return {"cleared": True}
