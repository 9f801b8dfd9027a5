"""Progressive name suggestions for the species search box.

Local fuzzy matches come first, widened with a few species of the same
family once the input is long enough. When nothing local matches, the
remote taxonomy is asked instead and its candidates are returned as
"extended" suggestions.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping

import structlog
from rapidfuzz import fuzz, utils

from .errors import InvalidRequestError
from .models import Selection, SuggestionResult, TaxonCandidate
from .resolvers.remote import RemoteTaxonResolver

logger = structlog.get_logger()

MIN_QUERY_LENGTH = 2
REMOTE_MIN_LENGTH = 3
FAMILY_MIN_LENGTH = 5
FAMILY_SIBLINGS = 4


def fuzzy_score(query: str, choice: str, *, distance: int = 100) -> float:
    """Match quality in [0, 1], 0 being a perfect match at the start of *choice*.

    Edit mismatch of the best-aligned window, plus a penalty growing with how
    far into *choice* that window starts (scaled by *distance*).
    """
    alignment = fuzz.partial_ratio_alignment(query, choice, processor=utils.default_process)
    if alignment is None:
        return 1.0

    mismatch = 1 - alignment.score / 100
    offset = alignment.dest_start
    if distance:
        proximity = offset / distance
    else:
        proximity = 0.0 if offset == 0 else 1.0
    return min(mismatch + proximity, 1.0)


class SuggestionEngine:
    def __init__(
        self,
        species: Mapping[str, str],
        taxonomies: Mapping[str, str],
        remote: RemoteTaxonResolver | None = None,
        *,
        distance: int = 100,
        threshold: float = 0.4,
    ) -> None:
        self._species = dict(species)
        self._taxonomies = dict(taxonomies)
        self._remote = remote
        self._distance = distance
        self._threshold = threshold

    def load(self, species: Mapping[str, str], taxonomies: Mapping[str, str]) -> None:
        self._species = dict(species)
        self._taxonomies = dict(taxonomies)

    def code_for(self, name: str) -> str | None:
        return self._species.get(name)

    def match_local(self, partial: str) -> list[str]:
        scored: list[tuple[float, int, str]] = []
        for position, name in enumerate(self._species):
            score = fuzzy_score(partial, name, distance=self._distance)
            if score < self._threshold:
                scored.append((score, position, name))
        scored.sort()
        return [name for _, _, name in scored]

    async def suggest(self, partial: str) -> SuggestionResult:
        if len(partial) < MIN_QUERY_LENGTH or not partial.strip():
            return SuggestionResult()

        matches = self.match_local(partial)
        if matches:
            if len(partial) >= FAMILY_MIN_LENGTH:
                matches.extend(self._family_siblings(matches))
            return SuggestionResult(local=matches)

        if len(partial) >= REMOTE_MIN_LENGTH and self._remote is not None:
            extended = await self._remote.resolve(partial)
            logger.debug("suggest_extended", query=partial, count=len(extended))
            return SuggestionResult(extended=extended)

        return SuggestionResult()

    def _family_siblings(self, matches: list[str]) -> list[str]:
        family = self._taxonomies.get(self._species.get(matches[0], ""))
        if not family:
            return []

        limit = FAMILY_SIBLINGS - (1 if len(matches) > 1 else 0)
        present = set(matches)
        siblings = [
            name
            for name, code in self._species.items()
            if name not in present and self._taxonomies.get(code) == family
        ]
        return siblings[:limit]


class SuggestionSession:
    """Search-box state of one user: current text, visible suggestions, selection.

    Every keystroke bumps a generation counter; an evaluation only lands if
    its generation is still current when it finishes.
    """

    def __init__(self, engine: SuggestionEngine, *, debounce_seconds: float = 0.0) -> None:
        self._engine = engine
        self._debounce_seconds = debounce_seconds
        self._generation = 0
        self.text = ""
        self.result = SuggestionResult()
        self.selection: Selection | None = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def resolved(self) -> bool:
        return self.selection is not None

    async def update(self, text: str) -> SuggestionResult | None:
        """Re-evaluate suggestions for *text*; None when a newer input superseded it."""
        self._generation += 1
        generation = self._generation
        self.text = text
        self.selection = None

        if len(text) < MIN_QUERY_LENGTH:
            self.result = SuggestionResult()
            return self.result

        if self._debounce_seconds > 0:
            await asyncio.sleep(self._debounce_seconds)
            if generation != self._generation:
                return None

        result = await self._engine.suggest(text)
        if generation != self._generation:
            logger.debug("suggestion_discarded", text=text, generation=generation)
            return None

        self.result = result
        return result

    def select_local(self, name: str) -> Selection:
        code = self._engine.code_for(name)
        if code is None:
            raise InvalidRequestError(f"Unknown species: {name}")
        return self._resolve(Selection(name=name, code=code))

    def select_extended(self, candidate: TaxonCandidate) -> Selection:
        return self._resolve(Selection(name=candidate.name, code=candidate.code, extended=True))

    def submit(self) -> Selection:
        if self.selection is None:
            raise InvalidRequestError("Select a suggestion before searching")
        selection = self.selection
        self.text = ""
        self.selection = None
        return selection

    def _resolve(self, selection: Selection) -> Selection:
        # Invalidate anything still in flight so it cannot repopulate the lists.
        self._generation += 1
        self.text = selection.name
        self.result = SuggestionResult()
        self.selection = selection
        return selection


__all__ = ["SuggestionEngine", "SuggestionSession", "fuzzy_score"]
