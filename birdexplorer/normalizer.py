from __future__ import annotations

import unicodedata

_SUFFIX_SEPARATOR = " - "


def normalize(text: str) -> str:
    return text.strip().casefold()


def sort_name(name: str) -> str:
    """Reverse word order for sorting: ``"American Robin"`` -> ``"Robin, American"``."""
    if not name:
        return ""
    return ", ".join(reversed(name.split(" ")))


def collation_key(text: str) -> tuple[str, str]:
    # Accent- and case-insensitive first, original text breaks ties.
    decomposed = unicodedata.normalize("NFKD", text)
    base = "".join(char for char in decomposed if not unicodedata.combining(char))
    return base.casefold(), text


def strip_name_suffix(name: str) -> str:
    """Drop the scientific name or subspecies part after the first ``" - "``."""
    head, _, _ = name.partition(_SUFFIX_SEPARATOR)
    return head.strip()


__all__ = ["collation_key", "normalize", "sort_name", "strip_name_suffix"]
