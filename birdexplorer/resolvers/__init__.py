from __future__ import annotations

from .base import TaxonSearcher
from .ebird import EbirdTaxonFinder
from .remote import RemoteTaxonResolver
from .typesense import TypesenseSearcher

__all__ = [
    "EbirdTaxonFinder",
    "RemoteTaxonResolver",
    "TaxonSearcher",
    "TypesenseSearcher",
]
