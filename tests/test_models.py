from __future__ import annotations

from datetime import datetime

from birdexplorer.models import (
    BatchCursor,
    GeoPair,
    ObservationPoint,
    RangeBounds,
    SuggestionResult,
    TaxonCandidate,
)


def test_geo_pair_roundtrip_and_label() -> None:
    point = GeoPair.from_dict({"lat": "37.5", "lng": -122})

    assert point == GeoPair(lat=37.5, lng=-122.0)
    assert point.to_dict() == {"lat": 37.5, "lng": -122.0}
    assert point.label() == "37.5, -122.0"


def test_observation_from_ebird_record() -> None:
    record = {
        "speciesCode": "amerob",
        "comName": "American Robin",
        "sciName": "Turdus migratorius",
        "locName": "Golden Gate Park",
        "obsDt": "2024-05-01 08:15",
        "howMany": 3,
        "lat": 37.77,
        "lng": -122.46,
    }

    obs = ObservationPoint.from_ebird(record)

    assert obs.species_code == "amerob"
    assert obs.observed_at == datetime(2024, 5, 1, 8, 15)
    assert obs.count == 3
    assert obs.point == GeoPair(37.77, -122.46)
    assert obs.to_dict()["observed_at"] == "2024-05-01T08:15:00"


def test_observation_without_count_or_time() -> None:
    obs = ObservationPoint.from_ebird(
        {"speciesCode": "x", "comName": "X", "lat": 1, "lng": 2, "obsDt": "2024-05-01"}
    )

    assert obs.count == 0
    assert obs.observed_at == datetime(2024, 5, 1)


def test_range_bounds_from_dict() -> None:
    bounds = RangeBounds.from_dict({"minX": -1, "minY": -2, "maxX": 3, "maxY": 4})

    assert (bounds.min_x, bounds.min_y, bounds.max_x, bounds.max_y) == (-1, -2, 3, 4)


def test_batch_cursor_last_page() -> None:
    cursor = BatchCursor(batch_size=20)

    assert cursor.last_page(0) == 0
    assert cursor.last_page(20) == 0
    assert cursor.last_page(21) == 1
    assert cursor.last_page(45) == 2


def test_batch_cursor_window() -> None:
    cursor = BatchCursor(page=2, batch_size=20)

    assert list(range(45))[cursor.window()] == list(range(40, 45))
    assert not cursor.has_more(45)


def test_suggestion_result_kind() -> None:
    assert SuggestionResult().kind == "empty"
    assert SuggestionResult(local=["American Robin"]).kind == "local"

    extended = SuggestionResult(extended=[TaxonCandidate(name="Kea", code="kea1")])
    assert extended.kind == "extended"
    assert extended.to_dict() == {"extended": [{"name": "Kea", "code": "kea1"}]}
