from __future__ import annotations

from typing import Protocol

from ..models import TaxonCandidate


class TaxonSearcher(Protocol):
    """One backend of the remote name-completion chain.

    An empty list means "no result" and lets the next backend try.
    """

    async def search(self, query: str) -> list[TaxonCandidate]:
        ...
