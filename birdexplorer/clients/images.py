from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import structlog

from ..config import InaturalistConfig
from ..errors import UpstreamError
from .http import get_json

logger = structlog.get_logger()

AVES_TAXON_ID = 3


class ImageFetcher(Protocol):
    async def fetch_images(self, batch: Mapping[str, str]) -> dict[str, str]:
        """Image URL by species name for the ``{name: species_code}`` *batch*."""
        ...


@dataclass(slots=True)
class INaturalistImageFetcher:
    """Species photos from iNaturalist taxa autocomplete, looked up by common name."""

    http: httpx.AsyncClient
    config: InaturalistConfig
    user_agent: str = "BirdExplorer/0.1.0"

    async def fetch_images(self, batch: Mapping[str, str]) -> dict[str, str]:
        names = list(batch)
        results = await asyncio.gather(
            *(self._photo_url(name) for name in names),
            return_exceptions=True,
        )

        images: dict[str, str] = {}
        failures = 0
        for name, result in zip(names, results):
            if isinstance(result, (UpstreamError, httpx.HTTPError)):
                failures += 1
                logger.warning("image_lookup_failed", name=name, error=str(result))
                continue
            if isinstance(result, BaseException):
                raise result
            if result:
                images[name] = result

        if names and failures == len(names):
            raise UpstreamError(f"All {failures} image lookups failed")
        return images

    async def _photo_url(self, name: str) -> str | None:
        data = await get_json(
            self.http,
            f"{self.config.base_url.rstrip('/')}/v1/taxa/autocomplete",
            params={"q": name, "taxon_id": AVES_TAXON_ID, "rank": "species", "per_page": 1},
            headers={"User-Agent": self.user_agent},
            timeout=self.config.timeout,
        )
        return _extract_photo(data, self.config.photo_size)


def _extract_photo(data: Any, size: str) -> str | None:
    if not isinstance(data, dict):
        return None
    results = data.get("results")
    if not isinstance(results, list) or not results or not isinstance(results[0], dict):
        return None
    photo = results[0].get("default_photo")
    if not isinstance(photo, dict):
        return None
    url = photo.get(size) or photo.get("url")
    return str(url) if url else None


__all__ = ["ImageFetcher", "INaturalistImageFetcher"]
