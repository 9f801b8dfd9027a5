from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from ..clients.http import get_json
from ..config import EbirdConfig
from ..models import TaxonCandidate


@dataclass(slots=True)
class EbirdTaxonFinder:
    """eBird ``ref/taxon/find`` species-name search."""

    http: httpx.AsyncClient
    config: EbirdConfig
    limit: int = 150

    async def search(self, query: str) -> list[TaxonCandidate]:
        url = f"{self.config.base_url.rstrip('/')}/v2/ref/taxon/find"
        data = await get_json(
            self.http,
            url,
            params={
                "cat": "species",
                "key": self.config.taxon_find_token,
                "q": query,
                "count": self.limit,
            },
            timeout=self.config.timeout,
        )
        return _parse_taxa(data)


def _parse_taxa(data: Any) -> list[TaxonCandidate]:
    if not isinstance(data, list):
        return []
    return [
        TaxonCandidate(name=str(item["name"]), code=str(item["code"]))
        for item in data
        if isinstance(item, dict) and item.get("name") and item.get("code")
    ]


__all__ = ["EbirdTaxonFinder"]
