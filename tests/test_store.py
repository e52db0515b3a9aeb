import json

import pytest

from loopgen.models import Location, SavedRoute
from loopgen.services.store import SAVED_ROUTES_KEY, SavedRouteStore


def _route(route_id="abc", name="Route 1", **extra):
    home = Location(lat=52.0, lon=5.0)
    return SavedRoute(
        id=route_id,
        name=name,
        distance_km=14.2,
        start_location=home,
        end_location=home,
        coordinates=[[52.0, 5.0], [52.01, 5.0], [52.0, 5.0]],
        **extra,
    )


@pytest.fixture
def store(tmp_path):
    return SavedRouteStore(tmp_path / "data" / "saved.json")


def test_empty_store_lists_nothing(store):
    assert store.list() == []
    assert store.get("nope") is None


def test_save_appends_new_ids(store):
    store.save(_route("a"))
    store.save(_route("b", name="Route 2"))
    assert [r.id for r in store.list()] == ["a", "b"]


def test_save_overwrites_existing_id_in_place(store):
    store.save(_route("a"))
    store.save(_route("b"))
    store.save(_route("a", name="Renamed", rating=4, tags=["Scenic"]))

    routes = store.list()
    assert [r.id for r in routes] == ["a", "b"]
    assert routes[0].name == "Renamed"
    assert routes[0].rating == 4
    assert routes[0].tags == ["Scenic"]


def test_delete_by_id(store):
    store.save(_route("a"))
    store.save(_route("b"))
    assert store.delete("a") is True
    assert [r.id for r in store.list()] == ["b"]
    assert store.delete("a") is False


def test_clear(store):
    store.save(_route("a"))
    store.clear()
    assert store.list() == []
    store.clear()


def test_file_layout_uses_single_key(store):
    store.save(_route("a"))
    raw = json.loads(store.path.read_text(encoding="utf-8"))
    assert list(raw) == [SAVED_ROUTES_KEY]
    assert raw[SAVED_ROUTES_KEY][0]["id"] == "a"


def test_corrupt_file_reads_as_empty(store):
    store.path.parent.mkdir(parents=True)
    store.path.write_text("{not json", encoding="utf-8")
    assert store.list() == []
    store.save(_route("a"))
    assert [r.id for r in store.list()] == ["a"]


def test_rating_is_validated():
    with pytest.raises(ValueError):
        _route(rating=6)
