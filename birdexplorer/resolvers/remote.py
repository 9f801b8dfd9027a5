from __future__ import annotations

from collections.abc import Sequence

import httpx
import structlog

from ..cache import TaxonFindCache
from ..errors import InvalidRequestError, UpstreamError
from ..models import TaxonCandidate
from ..normalizer import strip_name_suffix
from .base import TaxonSearcher

logger = structlog.get_logger()


class RemoteTaxonResolver:
    """Name completions from the full taxonomy, outside the local species set.

    Backends are tried in order until one returns hits. A failing backend
    counts as returning nothing.
    """

    def __init__(
        self,
        searchers: Sequence[TaxonSearcher],
        *,
        cache: TaxonFindCache | None = None,
        limit: int = 150,
    ) -> None:
        self._searchers = list(searchers)
        self._cache = cache
        self._limit = limit

    async def resolve(self, query: str) -> list[TaxonCandidate]:
        query = query.strip()
        if not query:
            raise InvalidRequestError("Missing search text parameter")

        if self._cache is not None:
            cached = self._cache.get(query)
            if cached is not None:
                return [TaxonCandidate(name=item["name"], code=item["code"]) for item in cached]

        hits: list[TaxonCandidate] = []
        for searcher in self._searchers:
            backend = type(searcher).__name__
            try:
                hits = await searcher.search(query)
            except (UpstreamError, httpx.HTTPError) as exc:
                logger.warning("taxon_search_failed", backend=backend, query=query, error=str(exc))
                continue
            if hits:
                logger.debug("taxon_search_hits", backend=backend, query=query, count=len(hits))
                break
            logger.info("taxon_search_empty", backend=backend, query=query)

        candidates = _clean(hits)[: self._limit]
        if candidates and self._cache is not None:
            self._cache.set(query, [candidate.to_dict() for candidate in candidates])
        return candidates


def _clean(hits: list[TaxonCandidate]) -> list[TaxonCandidate]:
    # Suffix stripping can collapse subspecies onto one (name, code) pair.
    cleaned = {
        TaxonCandidate(name=strip_name_suffix(hit.name), code=hit.code) for hit in hits
    }
    return sorted(cleaned, key=lambda candidate: (candidate.name, candidate.code))


__all__ = ["RemoteTaxonResolver"]
