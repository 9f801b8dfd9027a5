from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from ..config import GeocodingConfig
from ..models import GeoPair
from .http import get_json


class ReverseGeocoder(Protocol):
    async def reverse(self, point: GeoPair) -> str:
        ...


@dataclass(slots=True)
class NominatimGeocoder:
    http: httpx.AsyncClient
    config: GeocodingConfig
    user_agent: str = "BirdExplorer/0.1.0"

    async def reverse(self, point: GeoPair) -> str:
        data = await get_json(
            self.http,
            self.config.osm_url,
            params={"format": "json", "lat": point.lat, "lon": point.lng},
            headers={"User-Agent": self.user_agent},
            timeout=self.config.timeout,
        )
        name = data.get("display_name") if isinstance(data, dict) else None
        return str(name) if name else point.label()


@dataclass(slots=True)
class MapboxGeocoder:
    http: httpx.AsyncClient
    config: GeocodingConfig
    user_agent: str = "BirdExplorer/0.1.0"

    async def reverse(self, point: GeoPair) -> str:
        data = await get_json(
            self.http,
            self.config.mapbox_url,
            params={
                "types": "place",
                "access_token": self.config.mapbox_token,
                "longitude": point.lng,
                "latitude": point.lat,
            },
            headers={"User-Agent": self.user_agent},
            timeout=self.config.timeout,
        )
        return _full_address(data) or point.label()


def _full_address(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    features = data.get("features")
    if not isinstance(features, list) or not features or not isinstance(features[0], dict):
        return None
    properties = features[0].get("properties")
    if not isinstance(properties, dict):
        return None
    address = properties.get("full_address")
    return str(address) if address else None


__all__ = ["MapboxGeocoder", "NominatimGeocoder", "ReverseGeocoder"]
