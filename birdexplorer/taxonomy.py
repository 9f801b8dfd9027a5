"""Family-group ordering and taxonomy-based sorting of species lists.

The group order is the order in which family names first occur in a
canonical sequence, not the alphabet. Group strings that do not appear in
that order verbatim are classified by shared words.
"""

from __future__ import annotations

import sys
from collections.abc import Iterable, Mapping
from functools import cmp_to_key

from .normalizer import collation_key, sort_name

ALL_GROUPS = "All Groups"
UNMATCHED_GROUP_INDEX = sys.maxsize

_IGNORED_TOKEN = "and"


def build_group_order(groups: Iterable[str | None]) -> list[str]:
    """Deduplicate *groups* keeping first occurrences and dropping empty names."""
    ordered: list[str] = []
    seen: set[str] = set()
    for group in groups:
        if not group or group in seen:
            continue
        seen.add(group)
        ordered.append(group)
    return ordered


def group_index(group: str, ordered_groups: list[str]) -> int:
    """Position of *group* in *ordered_groups*.

    An exact match wins. Otherwise the last candidate sharing a word with
    *group* (ignoring "and") wins, so "Thrushes" lands on the last
    "...Thrushes..." family in the order. Groups sharing no word get
    ``UNMATCHED_GROUP_INDEX``.
    """
    try:
        return ordered_groups.index(group)
    except ValueError:
        pass

    tokens = {token for token in group.split() if token != _IGNORED_TOKEN}
    index = -1
    for position, candidate in enumerate(ordered_groups):
        if tokens.intersection(candidate.split()):
            index = position

    return UNMATCHED_GROUP_INDEX if index == -1 else index


def sort_species(
    species: Mapping[str, str] | Iterable[tuple[str, str]],
    taxonomies: Mapping[str, str],
    ordered_groups: list[str],
) -> list[tuple[str, str]]:
    """Order ``(name, code)`` pairs by family position, then by reversed name.

    Species without a known family always come after those with one.
    """
    entries = list(species.items()) if isinstance(species, Mapping) else list(species)
    index_cache: dict[str, int] = {}

    def position(group: str) -> int:
        if group not in index_cache:
            index_cache[group] = group_index(group, ordered_groups)
        return index_cache[group]

    def compare(left: tuple[str, str], right: tuple[str, str]) -> int:
        group_left = taxonomies.get(left[1]) or ""
        group_right = taxonomies.get(right[1]) or ""

        if group_left and not group_right:
            return -1
        if group_right and not group_left:
            return 1
        if group_left and group_right:
            index_left = position(group_left)
            index_right = position(group_right)
            if index_left != index_right:
                return -1 if index_left < index_right else 1

        key_left = collation_key(sort_name(left[0]))
        key_right = collation_key(sort_name(right[0]))
        if key_left == key_right:
            return 0
        return -1 if key_left < key_right else 1

    return sorted(entries, key=cmp_to_key(compare))


def group_options(species: Mapping[str, str], taxonomies: Mapping[str, str]) -> list[str]:
    """Choices for the group filter: "All Groups", then known groups alphabetically."""
    groups = {taxonomies[code] for code in species.values() if taxonomies.get(code)}
    return [ALL_GROUPS, *sorted(groups, key=collation_key)]


def filter_by_group(
    entries: list[tuple[str, str]],
    taxonomies: Mapping[str, str],
    group: str,
) -> list[tuple[str, str]]:
    if group == ALL_GROUPS:
        return list(entries)
    return [(name, code) for name, code in entries if taxonomies.get(code) == group]


__all__ = [
    "ALL_GROUPS",
    "UNMATCHED_GROUP_INDEX",
    "build_group_order",
    "filter_by_group",
    "group_index",
    "group_options",
    "sort_species",
]
