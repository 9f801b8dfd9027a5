from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

from haversine import Unit, haversine

from .models import GeoPair, ObservationPoint, RangeBounds

EARTH_RADIUS_KM = 6371

PointT = TypeVar("PointT", ObservationPoint, GeoPair)


def distance_km(first: ObservationPoint | GeoPair, second: ObservationPoint | GeoPair) -> float:
    angle = haversine((first.lat, first.lng), (second.lat, second.lng), unit=Unit.RADIANS)
    return angle * EARTH_RADIUS_KM


def bounding_center(points: Sequence[ObservationPoint | GeoPair]) -> GeoPair:
    """Midpoint of the bounding box of *points*; not the averaged centroid.

    *points* must not be empty.
    """
    if not points:
        raise ValueError("bounding_center requires at least one point")

    latitudes = [point.lat for point in points]
    longitudes = [point.lng for point in points]
    return GeoPair(
        lat=(min(latitudes) + max(latitudes)) / 2,
        lng=(min(longitudes) + max(longitudes)) / 2,
    )


def bounds_center(bounds: RangeBounds) -> GeoPair:
    return GeoPair(
        lat=(bounds.min_y + bounds.max_y) / 2,
        lng=(bounds.min_x + bounds.max_x) / 2,
    )


def nearest(points: Sequence[PointT], target: GeoPair) -> PointT:
    """Point with the smallest great-circle distance to *target*; first wins on ties."""
    if not points:
        raise ValueError("nearest requires at least one point")

    closest = points[0]
    min_distance = distance_km(target, closest)
    for point in points[1:]:
        distance = distance_km(target, point)
        if distance < min_distance:
            min_distance = distance
            closest = point
    return closest


__all__ = ["EARTH_RADIUS_KM", "bounding_center", "bounds_center", "distance_km", "nearest"]
