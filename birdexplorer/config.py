from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

import jsonschema
from dotenv import load_dotenv

from .models import GeoPair


@dataclass
class EbirdConfig:
    base_url: str = "https://api.ebird.org"
    map_url: str = "https://ebird.org/map"
    timeout: float = 10
    search_dist_km: float | None = None
    api_token: str = ""
    taxon_find_token: str = ""


@dataclass
class TypesenseConfig:
    enabled: bool = True
    host: str = "localhost"
    port: int = 443
    protocol: str = "https"
    collection: str = "birds"
    query_by: str = "name"
    timeout: float = 2
    api_key: str = ""

    @property
    def base_url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"


@dataclass
class GeocodingConfig:
    provider: str = "osm"
    osm_url: str = "https://nominatim.openstreetmap.org/reverse"
    mapbox_url: str = "https://api.mapbox.com/search/geocode/v6/reverse"
    timeout: float = 10
    mapbox_token: str = ""


@dataclass
class InaturalistConfig:
    base_url: str = "https://api.inaturalist.org"
    timeout: float = 30
    photo_size: str = "square_url"


@dataclass
class CacheConfig:
    enabled: bool = True
    path: str = "cache/birdexplorer.db"
    observation_ttl_seconds: int = 24 * 60 * 60
    family_ttl_seconds: int = 30 * 24 * 60 * 60
    taxon_find_ttl_seconds: int = 24 * 60 * 60


@dataclass
class SuggestConfig:
    distance: int = 100
    threshold: float = 0.4
    debounce_ms: int = 300
    remote_limit: int = 150


@dataclass
class BrowseConfig:
    batch_size: int = 20


@dataclass
class Config:
    home: GeoPair
    user_agent: str = "BirdExplorer/0.1.0"
    ebird: EbirdConfig = field(default_factory=EbirdConfig)
    typesense: TypesenseConfig = field(default_factory=TypesenseConfig)
    geocoding: GeocodingConfig = field(default_factory=GeocodingConfig)
    inaturalist: InaturalistConfig = field(default_factory=InaturalistConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    suggest: SuggestConfig = field(default_factory=SuggestConfig)
    browse: BrowseConfig = field(default_factory=BrowseConfig)


def load_config(path: Path) -> Config:
    load_dotenv()

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    data = json.loads(path.read_text(encoding="utf-8"))
    _validate_config(data)

    return Config(
        home=GeoPair.from_dict(data["home"]),
        user_agent=str(data.get("user_agent", Config.user_agent)),
        ebird=_load_ebird(data.get("ebird")),
        typesense=_load_typesense(data.get("typesense")),
        geocoding=_load_geocoding(data.get("geocoding")),
        inaturalist=_load_inaturalist(data.get("inaturalist")),
        cache=_load_cache(data.get("cache")),
        suggest=_load_suggest(data.get("suggest")),
        browse=BrowseConfig(
            batch_size=int((data.get("browse") or {}).get("batch_size", BrowseConfig.batch_size))
        ),
    )


def _validate_config(data: dict) -> None:
    schema_path = Path(__file__).resolve().parents[1] / "schemas" / "config.schema.json"
    schema = json.loads(schema_path.read_text(encoding="utf-8"))
    validator = jsonschema.Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(data), key=lambda e: e.path)
    if errors:
        messages = "; ".join(error.message for error in errors)
        raise ValueError(f"Invalid config: {messages}")


def _load_ebird(data: dict | None) -> EbirdConfig:
    data = data or {}
    api_token = os.environ.get("EBIRD_API_TOKEN", "")
    dist = data.get("search_dist_km")
    return EbirdConfig(
        base_url=str(data.get("base_url", EbirdConfig.base_url)),
        map_url=str(data.get("map_url", EbirdConfig.map_url)),
        timeout=float(data.get("timeout", EbirdConfig.timeout)),
        search_dist_km=None if dist is None else float(dist),
        api_token=api_token,
        taxon_find_token=os.environ.get("EBIRD_TAXON_FIND_TOKEN", api_token),
    )


def _load_typesense(data: dict | None) -> TypesenseConfig:
    data = data or {}
    return TypesenseConfig(
        enabled=bool(data.get("enabled", TypesenseConfig.enabled)),
        host=os.environ.get("TYPESENSE_HOST") or str(data.get("host", TypesenseConfig.host)),
        port=int(data.get("port", TypesenseConfig.port)),
        protocol=str(data.get("protocol", TypesenseConfig.protocol)),
        collection=str(data.get("collection", TypesenseConfig.collection)),
        query_by=str(data.get("query_by", TypesenseConfig.query_by)),
        timeout=float(data.get("timeout", TypesenseConfig.timeout)),
        api_key=os.environ.get("TYPESENSE_API_KEY", ""),
    )


def _load_geocoding(data: dict | None) -> GeocodingConfig:
    data = data or {}
    return GeocodingConfig(
        provider=str(data.get("provider", GeocodingConfig.provider)),
        osm_url=str(data.get("osm_url", GeocodingConfig.osm_url)),
        mapbox_url=str(data.get("mapbox_url", GeocodingConfig.mapbox_url)),
        timeout=float(data.get("timeout", GeocodingConfig.timeout)),
        mapbox_token=os.environ.get("MAPBOX_ACCESS_TOKEN", ""),
    )


def _load_inaturalist(data: dict | None) -> InaturalistConfig:
    if not data:
        return InaturalistConfig()
    return InaturalistConfig(
        base_url=str(data.get("base_url", InaturalistConfig.base_url)),
        timeout=float(data.get("timeout", InaturalistConfig.timeout)),
        photo_size=str(data.get("photo_size", InaturalistConfig.photo_size)),
    )


def _load_cache(data: dict | None) -> CacheConfig:
    if not data:
        return CacheConfig()
    return CacheConfig(
        enabled=bool(data.get("enabled", CacheConfig.enabled)),
        path=str(data.get("path", CacheConfig.path)),
        observation_ttl_seconds=int(
            data.get("observation_ttl_seconds", CacheConfig.observation_ttl_seconds)
        ),
        family_ttl_seconds=int(data.get("family_ttl_seconds", CacheConfig.family_ttl_seconds)),
        taxon_find_ttl_seconds=int(
            data.get("taxon_find_ttl_seconds", CacheConfig.taxon_find_ttl_seconds)
        ),
    )


def _load_suggest(data: dict | None) -> SuggestConfig:
    if not data:
        return SuggestConfig()
    return SuggestConfig(
        distance=int(data.get("distance", SuggestConfig.distance)),
        threshold=float(data.get("threshold", SuggestConfig.threshold)),
        debounce_ms=int(data.get("debounce_ms", SuggestConfig.debounce_ms)),
        remote_limit=int(data.get("remote_limit", SuggestConfig.remote_limit)),
    )
