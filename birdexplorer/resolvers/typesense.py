from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from ..clients.http import get_json
from ..config import TypesenseConfig
from ..models import TaxonCandidate

_MAX_PER_PAGE = 250


@dataclass(slots=True)
class TypesenseSearcher:
    """Full-text search over the species index served by Typesense."""

    http: httpx.AsyncClient
    config: TypesenseConfig
    limit: int = 150

    async def search(self, query: str) -> list[TaxonCandidate]:
        url = f"{self.config.base_url}/collections/{self.config.collection}/documents/search"
        data = await get_json(
            self.http,
            url,
            params={
                "q": query,
                "query_by": self.config.query_by,
                "per_page": min(self.limit, _MAX_PER_PAGE),
            },
            headers={"X-TYPESENSE-API-KEY": self.config.api_key},
            timeout=self.config.timeout,
        )
        return _parse_hits(data)


def _parse_hits(data: Any) -> list[TaxonCandidate]:
    if not isinstance(data, dict):
        return []
    candidates: list[TaxonCandidate] = []
    for hit in data.get("hits") or []:
        document = hit.get("document") if isinstance(hit, dict) else None
        if not isinstance(document, dict):
            continue
        name = document.get("name")
        code = document.get("code")
        if name and code:
            candidates.append(TaxonCandidate(name=str(name), code=str(code)))
    return candidates


__all__ = ["TypesenseSearcher"]
