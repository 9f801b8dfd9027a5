from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path

import httpx
import pytest

from birdexplorer.cache import DiskCache, DiskCacheConfig, FamilyCache, ObservationCache
from birdexplorer.clients.geocoding import MapboxGeocoder
from birdexplorer.config import GeocodingConfig
from birdexplorer.errors import InvalidRequestError
from birdexplorer.models import GeoPair, ObservationPoint, RangeBounds, Selection
from birdexplorer.service import parse_point, recent_sightings, share_link, species_map
from fakes import HOME, FakeEbird, FakeGeocoder, make_explorer, observation


def _points(*records: dict) -> list[ObservationPoint]:
    return [ObservationPoint.from_ebird(record) for record in records]


def test_species_map_is_case_insensitive_last_wins() -> None:
    observations = _points(
        observation("American Robin", "amerob"),
        observation("Song Sparrow", "sonspa"),
        observation("american robin", "amerob2"),
    )

    assert species_map(observations) == {"Song Sparrow": "sonspa", "american robin": "amerob2"}


def test_recent_sightings_slices_then_orders() -> None:
    records = [
        observation("A", "a", obs_dt="2024-05-01 08:00", how_many=1),
        observation("B", "b", obs_dt="2024-05-02 08:00", how_many=1),
        observation("C", "c", obs_dt="2024-05-02 08:00", how_many=7),
        observation("D", "d", obs_dt="2024-05-03 08:00", how_many=1),
    ]

    ordered = recent_sightings(_points(*records), limit=3)

    assert [obs.species_code for obs in ordered] == ["c", "b", "a"]


def test_parse_point() -> None:
    assert parse_point(None, None, default=HOME) == HOME
    assert parse_point("1.5", "-2", default=HOME) == GeoPair(lat=1.5, lng=-2.0)
    with pytest.raises(InvalidRequestError):
        parse_point("1.5", None, default=HOME)
    with pytest.raises(InvalidRequestError):
        parse_point("north", "2", default=HOME)


def test_share_link() -> None:
    assert share_link(GeoPair(1.5, 2.0)) == "?lat=1.5&lng=2.0"
    assert share_link(GeoPair(1.5, 2.0), "amerob", base_url="https://birds.test/") == (
        "https://birds.test/?lat=1.5&lng=2.0&species=amerob"
    )


def test_families_isolates_failed_lookups() -> None:
    ebird = FakeEbird(families={"amerob": "Thrushes and Allies", "sonspa": "New World Sparrows"})
    ebird.failing_families = {"sonspa"}
    explorer = make_explorer(ebird)

    result = asyncio.run(explorer.families(["amerob", "sonspa", "amerob", "nofam"]))

    assert result == {"amerob": "Thrushes and Allies"}
    assert ebird.family_calls == ["amerob", "sonspa", "nofam"]


def test_families_rejects_empty_code_list() -> None:
    with pytest.raises(InvalidRequestError):
        asyncio.run(make_explorer().families([]))


def test_families_use_family_cache(tmp_path: Path) -> None:
    store = DiskCache(DiskCacheConfig(path=tmp_path / "cache.db"))
    family_cache = FamilyCache(store)
    family_cache.set("amerob", "Thrushes and Allies")
    ebird = FakeEbird(families={"sonspa": "New World Sparrows"})
    explorer = make_explorer(ebird, family_cache=family_cache)

    result = asyncio.run(explorer.families(["amerob", "sonspa"]))

    assert result == {"amerob": "Thrushes and Allies", "sonspa": "New World Sparrows"}
    assert ebird.family_calls == ["sonspa"]
    assert family_cache.get("sonspa") == "New World Sparrows"


def test_nearby_observations_cache_only_for_home(tmp_path: Path) -> None:
    store = DiskCache(DiskCacheConfig(path=tmp_path / "cache.db"))
    ebird = FakeEbird([observation("American Robin", "amerob")])
    explorer = make_explorer(ebird, observation_cache=ObservationCache(store, HOME))
    elsewhere = GeoPair(lat=40.0, lng=-74.0)

    async def scenario() -> None:
        await explorer.nearby_observations(HOME)
        await explorer.nearby_observations(HOME)
        await explorer.nearby_observations(elsewhere)
        await explorer.nearby_observations(elsewhere)

    asyncio.run(scenario())

    assert [point for point, _ in ebird.recent_calls] == [HOME, elsewhere, elsewhere]


def test_load_area_builds_species_and_taxonomies() -> None:
    ebird = FakeEbird(
        [observation("American Robin", "amerob"), observation("Song Sparrow", "sonspa")],
        families={"amerob": "Thrushes and Allies"},
    )

    area = asyncio.run(make_explorer(ebird).load_area())

    assert area.center == HOME
    assert area.species == {"American Robin": "amerob", "Song Sparrow": "sonspa"}
    assert area.taxonomies == {"amerob": "Thrushes and Allies"}


def test_load_area_with_no_observations() -> None:
    area = asyncio.run(make_explorer(FakeEbird()).load_area())

    assert area.species == {}
    assert area.taxonomies == {}


def test_locate_local_selection_picks_nearest_to_center() -> None:
    ebird = FakeEbird()
    ebird.by_species["amerob"] = [
        observation("American Robin", "amerob", lat=38.5, lng=-122.4),
        observation("American Robin", "amerob", lat=37.78, lng=-122.42),
    ]
    explorer = make_explorer(ebird)

    found = asyncio.run(explorer.locate(Selection(name="American Robin", code="amerob")))

    assert found is not None
    assert found.lat == 37.78


def test_locate_extended_follows_range_then_bounding_center() -> None:
    ebird = FakeEbird()
    ebird.bounds = RangeBounds(min_x=170, min_y=-46, max_x=174, max_y=-40)
    ebird.by_species["kea1"] = [
        observation("Kea", "kea1", lat=-42.0, lng=171.0),
        observation("Kea", "kea1", lat=-43.0, lng=172.0),
        observation("Kea", "kea1", lat=-44.0, lng=173.0),
    ]
    explorer = make_explorer(ebird)

    found = asyncio.run(explorer.locate(Selection(name="Kea", code="kea1", extended=True)))

    assert ebird.species_calls == [("kea1", GeoPair(lat=-43.0, lng=172.0))]
    assert found is not None
    assert (found.lat, found.lng) == (-43.0, 172.0)


def test_locate_extended_without_range_or_observations() -> None:
    ebird = FakeEbird()
    explorer = make_explorer(ebird)

    assert asyncio.run(explorer.locate_extended("kea1")) is None

    ebird.bounds = RangeBounds(min_x=170, min_y=-46, max_x=174, max_y=-40)
    assert asyncio.run(explorer.locate_extended("kea1")) is None


def test_compare_locations_sets_and_label_fallback() -> None:
    first = GeoPair(lat=37.77, lng=-122.42)
    second = GeoPair(lat=40.71, lng=-74.0)
    ebird = FakeEbird()
    ebird.by_point[first] = [
        observation("American Robin", "amerob"),
        observation("Anna's Hummingbird", "annhum"),
        observation("American Robin", "amerob"),
    ]
    ebird.by_point[second] = [
        observation("Blue Jay", "blujay"),
        observation("American Robin", "amerob"),
    ]
    explorer = make_explorer(ebird, geocoder=FakeGeocoder({first: "San Francisco"}))

    comparison = asyncio.run(explorer.compare_locations(first, second))

    assert comparison.first_label == "San Francisco"
    assert comparison.second_label == "40.71, -74.0"
    assert comparison.only_first == ["Anna's Hummingbird"]
    assert comparison.only_second == ["Blue Jay"]
    assert comparison.common == ["American Robin"]
    assert {dist for _, dist in ebird.recent_calls} == {10}


def test_recent_sightings_handles_missing_dates() -> None:
    obs = _points(observation("A", "a", obs_dt=""), observation("B", "b"))

    assert [o.species_code for o in recent_sightings(obs)] == ["b", "a"]
    assert obs[0].observed_at is None
    assert obs[1].observed_at == datetime(2024, 5, 1, 8, 0)


def test_compare_locations_with_malformed_geocoder_body() -> None:
    first = GeoPair(lat=1.0, lng=2.0)
    second = GeoPair(lat=3.0, lng=4.0)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"features": {"x": 1}})

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            geocoder = MapboxGeocoder(http=http, config=GeocodingConfig(provider="mapbox"))
            explorer = make_explorer(FakeEbird([observation("Kea", "kea1")]), geocoder=geocoder)
            return await explorer.compare_locations(first, second)

    comparison = asyncio.run(run())

    assert comparison.first_label == "1.0, 2.0"
    assert comparison.second_label == "3.0, 4.0"
    assert comparison.common == ["Kea"]
