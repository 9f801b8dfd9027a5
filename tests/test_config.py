from __future__ import annotations

import json
from pathlib import Path

import pytest

from birdexplorer.config import load_config
from birdexplorer.models import GeoPair

SECRETS = (
    "EBIRD_API_TOKEN",
    "EBIRD_TAXON_FIND_TOKEN",
    "TYPESENSE_API_KEY",
    "TYPESENSE_HOST",
    "MAPBOX_ACCESS_TOKEN",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in SECRETS:
        monkeypatch.delenv(name, raising=False)


def _write(tmp_path: Path, data: dict) -> Path:
    path = tmp_path / "birdexplorer.config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_load_config_defaults(tmp_path: Path) -> None:
    config = load_config(_write(tmp_path, {"home": {"lat": 37.7749, "lng": -122.4194}}))

    assert config.home == GeoPair(lat=37.7749, lng=-122.4194)
    assert config.suggest.threshold == 0.4
    assert config.suggest.distance == 100
    assert config.browse.batch_size == 20
    assert config.cache.family_ttl_seconds == 30 * 24 * 60 * 60
    assert config.typesense.port == 443
    assert config.ebird.search_dist_km is None


def test_load_config_sections(tmp_path: Path) -> None:
    data = {
        "home": {"lat": 0, "lng": 0},
        "ebird": {"search_dist_km": 25},
        "typesense": {"enabled": False, "host": "search.local", "port": 8108, "protocol": "http"},
        "geocoding": {"provider": "mapbox"},
        "cache": {"enabled": False, "path": "tmp/cache.db"},
        "suggest": {"threshold": 0.3, "debounce_ms": 0},
        "browse": {"batch_size": 10},
    }

    config = load_config(_write(tmp_path, data))

    assert config.ebird.search_dist_km == 25.0
    assert config.typesense.base_url == "http://search.local:8108"
    assert config.typesense.enabled is False
    assert config.geocoding.provider == "mapbox"
    assert config.cache.enabled is False
    assert config.suggest.threshold == 0.3
    assert config.browse.batch_size == 10


def test_load_config_reads_secrets_from_env(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("EBIRD_API_TOKEN", "ebird-token")
    monkeypatch.setenv("TYPESENSE_API_KEY", "ts-key")
    monkeypatch.setenv("TYPESENSE_HOST", "ts.example.org")
    monkeypatch.setenv("MAPBOX_ACCESS_TOKEN", "pk.mapbox")

    config = load_config(_write(tmp_path, {"home": {"lat": 1, "lng": 2}}))

    assert config.ebird.api_token == "ebird-token"
    assert config.ebird.taxon_find_token == "ebird-token"
    assert config.typesense.api_key == "ts-key"
    assert config.typesense.host == "ts.example.org"
    assert config.geocoding.mapbox_token == "pk.mapbox"


def test_load_config_separate_taxon_find_token(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("EBIRD_API_TOKEN", "ebird-token")
    monkeypatch.setenv("EBIRD_TAXON_FIND_TOKEN", "find-token")

    config = load_config(_write(tmp_path, {"home": {"lat": 1, "lng": 2}}))

    assert config.ebird.taxon_find_token == "find-token"


def test_load_config_requires_home(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Invalid config"):
        load_config(_write(tmp_path, {"browse": {"batch_size": 10}}))


def test_load_config_rejects_unknown_keys(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Invalid config"):
        load_config(_write(tmp_path, {"home": {"lat": 1, "lng": 2}, "api_token": "x"}))


def test_load_config_rejects_out_of_range_home(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Invalid config"):
        load_config(_write(tmp_path, {"home": {"lat": 91, "lng": 2}}))


def test_load_config_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.json")
