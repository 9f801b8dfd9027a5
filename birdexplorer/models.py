from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

SuggestionKind = Literal["empty", "local", "extended"]

_EBIRD_DATETIME_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%d")


@dataclass(slots=True, frozen=True)
class GeoPair:
    lat: float
    lng: float

    def to_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> GeoPair:
        return GeoPair(lat=float(data["lat"]), lng=float(data["lng"]))

    def label(self) -> str:
        return f"{self.lat}, {self.lng}"


@dataclass(slots=True, frozen=True)
class TaxonCandidate:
    """A name completion sourced from the full remote taxonomy."""

    name: str
    code: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "code": self.code}


@dataclass(slots=True)
class ObservationPoint:
    lat: float
    lng: float
    species_code: str
    common_name: str
    observed_at: datetime | None
    count: int
    location_name: str = ""
    scientific_name: str = ""

    @property
    def point(self) -> GeoPair:
        return GeoPair(lat=self.lat, lng=self.lng)

    def to_dict(self) -> dict[str, Any]:
        return {
            "lat": self.lat,
            "lng": self.lng,
            "species_code": self.species_code,
            "common_name": self.common_name,
            "observed_at": None if self.observed_at is None else self.observed_at.isoformat(),
            "count": self.count,
            "location_name": self.location_name,
            "scientific_name": self.scientific_name,
        }

    @staticmethod
    def from_ebird(data: dict[str, Any]) -> ObservationPoint:
        """Build from an eBird ``data/obs`` record (``comName``, ``obsDt``, ``howMany``...)."""
        return ObservationPoint(
            lat=float(data["lat"]),
            lng=float(data["lng"]),
            species_code=str(data.get("speciesCode", "")),
            common_name=str(data.get("comName", "")),
            observed_at=_parse_observation_datetime(data.get("obsDt")),
            count=int(data.get("howMany") or 0),
            location_name=str(data.get("locName", "")),
            scientific_name=str(data.get("sciName", "")),
        )


@dataclass(slots=True, frozen=True)
class RangeBounds:
    """Bounding rectangle of a species range, x = longitude and y = latitude."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @staticmethod
    def from_dict(data: dict[str, Any]) -> RangeBounds:
        return RangeBounds(
            min_x=float(data["minX"]),
            min_y=float(data["minY"]),
            max_x=float(data["maxX"]),
            max_y=float(data["maxY"]),
        )


@dataclass(slots=True)
class SuggestionResult:
    local: list[str] = field(default_factory=list)
    extended: list[TaxonCandidate] = field(default_factory=list)

    @property
    def kind(self) -> SuggestionKind:
        if self.extended:
            return "extended"
        if self.local:
            return "local"
        return "empty"

    def to_dict(self) -> dict[str, Any]:
        if self.extended:
            return {"extended": [candidate.to_dict() for candidate in self.extended]}
        return {"local": list(self.local)}


@dataclass(slots=True)
class BatchCursor:
    page: int = 0
    batch_size: int = 20

    def last_page(self, total: int) -> int:
        if total <= 0:
            return 0
        return math.ceil(total / self.batch_size) - 1

    def has_more(self, total: int) -> bool:
        return self.page < self.last_page(total)

    def window(self) -> slice:
        start = self.page * self.batch_size
        return slice(start, start + self.batch_size)


@dataclass(slots=True)
class LocationComparison:
    first: GeoPair
    second: GeoPair
    first_label: str
    second_label: str
    only_first: list[str]
    only_second: list[str]
    common: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "first": {**self.first.to_dict(), "label": self.first_label},
            "second": {**self.second.to_dict(), "label": self.second_label},
            "only_first": list(self.only_first),
            "only_second": list(self.only_second),
            "common": list(self.common),
        }


@dataclass(slots=True, frozen=True)
class Selection:
    """A suggestion the user picked; the only thing a search may be submitted with."""

    name: str
    code: str
    extended: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "code": self.code, "extended": self.extended}


def _parse_observation_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    text = str(value)
    for fmt in _EBIRD_DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None
