from __future__ import annotations

from .ebird import EbirdClient
from .geocoding import MapboxGeocoder, NominatimGeocoder, ReverseGeocoder
from .images import ImageFetcher, INaturalistImageFetcher

__all__ = [
    "EbirdClient",
    "ImageFetcher",
    "INaturalistImageFetcher",
    "MapboxGeocoder",
    "NominatimGeocoder",
    "ReverseGeocoder",
]
