from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from ..config import EbirdConfig
from ..errors import InvalidRequestError, UpstreamError
from ..models import GeoPair, RangeBounds
from .http import get_json, get_text

_RANGE_GRID_SCALE = 100


@dataclass(slots=True)
class EbirdClient:
    http: httpx.AsyncClient
    config: EbirdConfig

    async def recent_observations(
        self, point: GeoPair, *, dist_km: float | None = None
    ) -> list[dict[str, Any]]:
        """Recent observations of all species near *point*, as returned by eBird."""
        return await self._observations("/v2/data/obs/geo/recent", point, dist_km)

    async def species_observations(
        self, species_code: str, point: GeoPair, *, dist_km: float | None = None
    ) -> list[dict[str, Any]]:
        if not species_code:
            raise InvalidRequestError("Missing species code parameter")
        return await self._observations(f"/v2/data/obs/geo/recent/{species_code}", point, dist_km)

    async def family(self, species_code: str) -> str | None:
        """Family common name of one species, None when eBird does not know it."""
        if not species_code:
            raise InvalidRequestError("Missing species code parameter")
        data = await get_json(
            self.http,
            self._url("/v2/ref/taxonomy/ebird"),
            params={"fmt": "json", "version": "2019", "species": species_code},
            headers=self._headers(),
            timeout=self.config.timeout,
        )
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            return None
        family = data[0].get("familyComName")
        return str(family) if family else None

    async def range_bounds(self, species_code: str) -> RangeBounds:
        """Bounding rectangle of the mapped range of a species."""
        if not species_code:
            raise InvalidRequestError("Missing species code parameter")
        map_url = self.config.map_url.rstrip("/")
        rsid = await get_text(
            self.http,
            f"{map_url}/rsid",
            params={"speciesCode": species_code, "gridScale": _RANGE_GRID_SCALE},
            timeout=self.config.timeout,
        )
        data = await get_json(
            self.http,
            f"{map_url}/env",
            params={"speciesCode": species_code, "rsid": rsid.strip()},
            timeout=self.config.timeout,
        )
        try:
            return RangeBounds.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise UpstreamError(f"Unexpected range extension for {species_code}") from exc

    async def _observations(
        self, path: str, point: GeoPair, dist_km: float | None
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"lat": point.lat, "lng": point.lng}
        dist = dist_km if dist_km is not None else self.config.search_dist_km
        if dist is not None:
            params["dist"] = dist
        data = await get_json(
            self.http,
            self._url(path),
            params=params,
            headers=self._headers(),
            timeout=self.config.timeout,
        )
        if not isinstance(data, list):
            raise UpstreamError(f"Unexpected observations payload from {path}")
        return data

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}{path}"

    def _headers(self) -> dict[str, str]:
        return {"X-eBirdApiToken": self.config.api_token}


__all__ = ["EbirdClient"]
