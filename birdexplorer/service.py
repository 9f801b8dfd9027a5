"""Service orchestrator.

Thin layer: the ordering, suggestion, geo and caching logic lives in its own
modules. This module wires upstream clients to them and turns upstream
failures into "less data" instead of errors.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import urlencode

import httpx
import structlog

from .browse import BatchImageLoader, BrowseSession
from .cache import DiskCache, DiskCacheConfig, FamilyCache, ObservationCache, TaxonFindCache
from .clients.ebird import EbirdClient
from .clients.geocoding import MapboxGeocoder, NominatimGeocoder, ReverseGeocoder
from .clients.images import ImageFetcher, INaturalistImageFetcher
from .config import Config
from .errors import InvalidRequestError, UpstreamError
from .geo import bounding_center, bounds_center, nearest
from .models import GeoPair, LocationComparison, ObservationPoint, Selection
from .normalizer import normalize
from .resolvers.base import TaxonSearcher
from .resolvers.ebird import EbirdTaxonFinder
from .resolvers.remote import RemoteTaxonResolver
from .resolvers.typesense import TypesenseSearcher
from .suggest import SuggestionEngine, SuggestionSession

logger = structlog.get_logger()

COMPARE_DIST_KM = 10
RECENT_SIGHTINGS = 10


@dataclass(slots=True)
class AreaSnapshot:
    """Species set loaded for one map center; replaced wholesale when it moves."""

    center: GeoPair
    observations: list[ObservationPoint] = field(default_factory=list)
    species: dict[str, str] = field(default_factory=dict)
    taxonomies: dict[str, str] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def parse_point(lat: Any, lng: Any, *, default: GeoPair) -> GeoPair:
    """Coordinates from request parameters; *default* when both are missing."""
    if lat in (None, "") and lng in (None, ""):
        return default
    if lat in (None, "") or lng in (None, ""):
        raise InvalidRequestError("Missing lat or lng parameter")
    try:
        return GeoPair(lat=float(lat), lng=float(lng))
    except (TypeError, ValueError) as exc:
        raise InvalidRequestError(f"Invalid coordinates: {lat}, {lng}") from exc


def species_map(observations: Iterable[ObservationPoint]) -> dict[str, str]:
    """Name -> species code; names are unique case-insensitively, last one wins."""
    by_key: dict[str, tuple[str, str]] = {}
    for observation in observations:
        if not observation.common_name or not observation.species_code:
            continue
        key = normalize(observation.common_name)
        by_key.pop(key, None)
        by_key[key] = (observation.common_name, observation.species_code)
    return dict(by_key.values())


def recent_sightings(
    observations: Sequence[ObservationPoint], limit: int = RECENT_SIGHTINGS
) -> list[ObservationPoint]:
    """First *limit* observations, newest first, larger counts first on the same time."""
    return sorted(
        observations[:limit],
        key=lambda obs: (obs.observed_at or datetime.min, obs.count),
        reverse=True,
    )


def share_link(center: GeoPair, species: str | None = None, *, base_url: str = "") -> str:
    params: dict[str, Any] = {"lat": center.lat, "lng": center.lng}
    if species:
        params["species"] = species
    return f"{base_url}?{urlencode(params)}"


def _unique(names: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(names))


def _parse_observations(raw: Iterable[dict[str, Any]]) -> list[ObservationPoint]:
    observations: list[ObservationPoint] = []
    for item in raw:
        try:
            observations.append(ObservationPoint.from_ebird(item))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("observation_skipped", error=str(exc))
    return observations


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class BirdExplorer:
    def __init__(
        self,
        config: Config,
        *,
        ebird: EbirdClient,
        remote: RemoteTaxonResolver,
        geocoder: ReverseGeocoder,
        images: ImageFetcher,
        observation_cache: ObservationCache | None = None,
        family_cache: FamilyCache | None = None,
    ) -> None:
        self.config = config
        self._ebird = ebird
        self._remote = remote
        self._geocoder = geocoder
        self._images = images
        self._observation_cache = observation_cache
        self._family_cache = family_cache

    @property
    def home(self) -> GeoPair:
        return self.config.home

    # --- nearby species ----------------------------------------------------

    async def nearby_observations(
        self, point: GeoPair | None = None, *, dist_km: float | None = None
    ) -> list[ObservationPoint]:
        point = point or self.home
        # Only the default-radius search of the home coordinate is cached.
        cache = self._observation_cache if dist_km is None else None

        raw = cache.get(point) if cache is not None else None
        if raw is None:
            try:
                raw = await self._ebird.recent_observations(point, dist_km=dist_km)
            except UpstreamError as exc:
                logger.error("species_search_failed", lat=point.lat, lng=point.lng, error=str(exc))
                return []
            if cache is not None and cache.set(point, raw):
                logger.debug("species_search_cached", key=cache.key)
        return _parse_observations(raw)

    async def families(self, species_codes: Iterable[str]) -> dict[str, str]:
        """Family by species code; lookups fail individually without failing the batch."""
        codes = _unique(code for code in species_codes if code)
        if not codes:
            raise InvalidRequestError("Invalid speciesCodes provided")

        results = await asyncio.gather(
            *(self._family(code) for code in codes),
            return_exceptions=True,
        )

        taxonomies: dict[str, str] = {}
        for code, result in zip(codes, results):
            if isinstance(result, (UpstreamError, httpx.HTTPError)):
                logger.warning("taxonomy_lookup_failed", species_code=code, error=str(result))
                continue
            if isinstance(result, BaseException):
                raise result
            if result:
                taxonomies[code] = result
        return taxonomies

    async def _family(self, species_code: str) -> str | None:
        if self._family_cache is not None:
            cached = self._family_cache.get(species_code)
            if cached is not None:
                return cached

        family = await self._ebird.family(species_code)
        if family and self._family_cache is not None:
            self._family_cache.set(species_code, family)
        return family

    async def load_area(self, point: GeoPair | None = None) -> AreaSnapshot:
        center = point or self.home
        observations = await self.nearby_observations(center)
        species = species_map(observations)
        taxonomies = await self.families(species.values()) if species else {}
        logger.info(
            "area_loaded",
            lat=center.lat,
            lng=center.lng,
            species=len(species),
            families=len(set(taxonomies.values())),
        )
        return AreaSnapshot(
            center=center,
            observations=observations,
            species=species,
            taxonomies=taxonomies,
        )

    # --- suggestions and browsing -----------------------------------------

    def suggestion_engine(self, area: AreaSnapshot) -> SuggestionEngine:
        return SuggestionEngine(
            area.species,
            area.taxonomies,
            self._remote,
            distance=self.config.suggest.distance,
            threshold=self.config.suggest.threshold,
        )

    def suggestion_session(self, area: AreaSnapshot) -> SuggestionSession:
        return SuggestionSession(
            self.suggestion_engine(area),
            debounce_seconds=self.config.suggest.debounce_ms / 1000,
        )

    def image_loader(self) -> BatchImageLoader:
        return BatchImageLoader(self._images)

    def browse_session(self) -> BrowseSession:
        return BrowseSession(batch_size=self.config.browse.batch_size)

    # --- locating a species ------------------------------------------------

    async def species_observations(
        self, species_code: str, point: GeoPair | None = None
    ) -> list[ObservationPoint]:
        point = point or self.home
        try:
            raw = await self._ebird.species_observations(species_code, point)
        except UpstreamError as exc:
            logger.error("species_observations_failed", species_code=species_code, error=str(exc))
            return []
        return _parse_observations(raw)

    async def locate(
        self, selection: Selection, center: GeoPair | None = None
    ) -> ObservationPoint | None:
        """Representative observation for a submitted selection."""
        if selection.extended:
            return await self.locate_extended(selection.code)

        center = center or self.home
        observations = await self.species_observations(selection.code, center)
        if not observations:
            return None
        return nearest(observations, center)

    async def locate_extended(self, species_code: str) -> ObservationPoint | None:
        """Find a species outside the local area, seeded by its range extension."""
        try:
            bounds = await self._ebird.range_bounds(species_code)
        except UpstreamError as exc:
            logger.error("range_extension_failed", species_code=species_code, error=str(exc))
            return None

        seed = bounds_center(bounds)
        observations = await self.species_observations(species_code, seed)
        if not observations:
            logger.info("extended_species_not_observed", species_code=species_code)
            return None

        center = bounding_center(observations)
        closest = nearest(observations, center)
        logger.info(
            "extended_species_located",
            species_code=species_code,
            lat=closest.lat,
            lng=closest.lng,
        )
        return closest

    # --- comparing two locations ------------------------------------------

    async def location_label(self, point: GeoPair) -> str:
        try:
            return await self._geocoder.reverse(point)
        except UpstreamError as exc:
            logger.warning("reverse_geocode_failed", lat=point.lat, lng=point.lng, error=str(exc))
            return point.label()

    async def compare_locations(self, first: GeoPair, second: GeoPair) -> LocationComparison:
        first_obs, second_obs = await asyncio.gather(
            self.nearby_observations(first, dist_km=COMPARE_DIST_KM),
            self.nearby_observations(second, dist_km=COMPARE_DIST_KM),
        )
        first_label, second_label = await asyncio.gather(
            self.location_label(first),
            self.location_label(second),
        )

        first_names = _unique(obs.common_name for obs in first_obs)
        second_names = _unique(obs.common_name for obs in second_obs)
        second_set = set(second_names)
        first_set = set(first_names)

        return LocationComparison(
            first=first,
            second=second,
            first_label=first_label,
            second_label=second_label,
            only_first=[name for name in first_names if name not in second_set],
            only_second=[name for name in second_names if name not in first_set],
            common=[name for name in first_names if name in second_set],
        )


def build_explorer(config: Config, http: httpx.AsyncClient) -> BirdExplorer:
    """Production wiring of a BirdExplorer from *config* over a shared *http* client."""
    observation_cache: ObservationCache | None = None
    family_cache: FamilyCache | None = None
    taxon_cache: TaxonFindCache | None = None
    if config.cache.enabled:
        store = DiskCache(DiskCacheConfig(path=Path(config.cache.path)))
        observation_cache = ObservationCache(
            store, config.home, ttl_seconds=config.cache.observation_ttl_seconds
        )
        family_cache = FamilyCache(store, ttl_seconds=config.cache.family_ttl_seconds)
        taxon_cache = TaxonFindCache(store, ttl_seconds=config.cache.taxon_find_ttl_seconds)

    limit = config.suggest.remote_limit
    searchers: list[TaxonSearcher] = []
    if config.typesense.enabled:
        searchers.append(TypesenseSearcher(http=http, config=config.typesense, limit=limit))
    searchers.append(EbirdTaxonFinder(http=http, config=config.ebird, limit=limit))

    geocoder: ReverseGeocoder
    if config.geocoding.provider == "mapbox":
        geocoder = MapboxGeocoder(http=http, config=config.geocoding, user_agent=config.user_agent)
    else:
        geocoder = NominatimGeocoder(
            http=http, config=config.geocoding, user_agent=config.user_agent
        )

    return BirdExplorer(
        config,
        ebird=EbirdClient(http=http, config=config.ebird),
        remote=RemoteTaxonResolver(searchers, cache=taxon_cache, limit=limit),
        geocoder=geocoder,
        images=INaturalistImageFetcher(
            http=http, config=config.inaturalist, user_agent=config.user_agent
        ),
        observation_cache=observation_cache,
        family_cache=family_cache,
    )


__all__ = [
    "AreaSnapshot",
    "BirdExplorer",
    "build_explorer",
    "parse_point",
    "recent_sightings",
    "share_link",
    "species_map",
]
