"""Paged browsing of the taxonomy-ordered species list with image enrichment."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field

import httpx
import structlog

from .clients.images import ImageFetcher
from .errors import UpstreamError
from .models import BatchCursor
from .taxonomy import (
    ALL_GROUPS,
    build_group_order,
    filter_by_group,
    group_options,
    sort_species,
)

logger = structlog.get_logger()

BatchKey = tuple[int, str, int | None]


@dataclass
class BrowseSession:
    """Browsing state of one user, passed explicitly into every loader call."""

    batch_size: int = 20
    species: dict[str, str] = field(default_factory=dict)
    taxonomies: dict[str, str] = field(default_factory=dict)
    ordered_groups: list[str] = field(default_factory=list)
    ordered: list[tuple[str, str]] = field(default_factory=list)
    groups: list[str] = field(default_factory=lambda: [ALL_GROUPS])
    selected_group: str = ALL_GROUPS
    images: dict[str, str] = field(default_factory=dict)
    cursor: BatchCursor = field(init=False)
    inflight: dict[BatchKey, asyncio.Task[None]] = field(default_factory=dict)
    epoch: int = 0

    def __post_init__(self) -> None:
        self.cursor = BatchCursor(page=0, batch_size=self.batch_size)

    @property
    def page(self) -> int:
        return self.cursor.page

    @property
    def loading(self) -> bool:
        return any(key[0] == self.epoch for key in self.inflight)

    @property
    def paginated(self) -> bool:
        return self.selected_group == ALL_GROUPS

    def filtered(self) -> list[tuple[str, str]]:
        return filter_by_group(self.ordered, self.taxonomies, self.selected_group)

    def current_batch(self) -> dict[str, str]:
        entries = self.filtered()
        if self.paginated:
            entries = entries[self.cursor.window()]
        return dict(entries)

    def visible(self) -> list[tuple[str, str, str]]:
        """``(name, code, image_url)`` for fetched species of the active group, in order."""
        return [
            (name, code, self.images[name])
            for name, code in self.filtered()
            if name in self.images
        ]


class BatchImageLoader:
    def __init__(self, fetcher: ImageFetcher) -> None:
        self._fetcher = fetcher

    async def load(
        self,
        session: BrowseSession,
        species: Mapping[str, str],
        taxonomies: Mapping[str, str],
    ) -> None:
        """Replace the species set, re-sort it and fetch the first batch."""
        session.species = dict(species)
        session.taxonomies = dict(taxonomies)
        session.ordered_groups = build_group_order(session.taxonomies.values())
        session.ordered = sort_species(
            session.species, session.taxonomies, session.ordered_groups
        )
        session.groups = group_options(session.species, session.taxonomies)
        self._reset(session)
        self._revert_empty_group(session)
        await self.refresh(session)

    async def select_group(self, session: BrowseSession, group: str) -> None:
        session.selected_group = group
        self._reset(session)
        self._revert_empty_group(session)
        await self.refresh(session)

    async def load_more(self, session: BrowseSession) -> bool:
        """Advance to the next page; False when loading, unpaginated or exhausted."""
        if not session.paginated or session.loading:
            return False
        if not session.cursor.has_more(len(session.filtered())):
            return False

        session.cursor.page += 1
        await self.refresh(session)
        return True

    async def refresh(self, session: BrowseSession) -> None:
        """Fetch images for the current page, joining a fetch already running for it."""
        key: BatchKey = (
            session.epoch,
            session.selected_group,
            session.cursor.page if session.paginated else None,
        )
        task = session.inflight.get(key)
        if task is None:
            batch = session.current_batch()
            if not batch:
                return
            task = asyncio.create_task(self._fetch(session, key, batch))
            session.inflight[key] = task
        await task

    async def _fetch(
        self,
        session: BrowseSession,
        key: BatchKey,
        batch: dict[str, str],
    ) -> None:
        try:
            images = await self._fetcher.fetch_images(batch)
        except (UpstreamError, httpx.HTTPError) as exc:
            logger.error("image_batch_failed", group=key[1], page=key[2], error=str(exc))
            return
        finally:
            session.inflight.pop(key, None)

        if key[0] != session.epoch:
            logger.debug("image_batch_stale", group=key[1], page=key[2])
            return
        for name, url in images.items():
            session.images.setdefault(name, url)
        logger.debug("image_batch_merged", group=key[1], page=key[2], count=len(images))

    @staticmethod
    def _reset(session: BrowseSession) -> None:
        session.epoch += 1
        session.cursor.page = 0
        session.images = {}

    @staticmethod
    def _revert_empty_group(session: BrowseSession) -> None:
        if session.selected_group != ALL_GROUPS and not session.filtered():
            logger.info("group_filter_reverted", group=session.selected_group)
            session.selected_group = ALL_GROUPS


__all__ = ["BatchImageLoader", "BrowseSession"]
