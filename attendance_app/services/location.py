from __future__ import annotations

from dataclasses import dataclass
from math import asin, cos, radians, sin, sqrt

EARTH_RADIUS_KM = 6371.0
VALIDATION_DISABLED_MESSAGE = "Location validation disabled"


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class OfficePolicy:
    latitude: float
    longitude: float
    max_distance_km: float
    validation_enabled: bool


@dataclass(frozen=True)
class LocationCheck:
    is_valid: bool
    message: str | None = None
    distance_km: float | None = None


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    lat1_rad = radians(lat1)
    lon1_rad = radians(lon1)
    lat2_rad = radians(lat2)
    lon2_rad = radians(lon2)

    delta_lat = lat2_rad - lat1_rad
    delta_lon = lon2_rad - lon1_rad

    a = sin(delta_lat / 2) ** 2 + cos(lat1_rad) * cos(lat2_rad) * sin(delta_lon / 2) ** 2
    c = 2 * asin(min(1.0, sqrt(a)))
    return EARTH_RADIUS_KM * c


class GeoValidator:
    def __init__(self, policy: OfficePolicy):
        self.policy = policy

    def validate(self, point: GeoPoint) -> LocationCheck:
        if not self.policy.validation_enabled:
            return LocationCheck(is_valid=True, message=VALIDATION_DISABLED_MESSAGE)

        distance_value = distance_km(
            self.policy.latitude,
            self.policy.longitude,
            point.latitude,
            point.longitude,
        )
        rounded = round(distance_value, 2)
        if distance_value <= self.policy.max_distance_km:
            return LocationCheck(is_valid=True, distance_km=rounded)

        return LocationCheck(
            is_valid=False,
            distance_km=rounded,
            message=(
                "Location is too far from office. "
                f"Maximum allowed distance is {self.policy.max_distance_km:g}km. "
                f"Current distance: {distance_value:.2f}km."
            ),
        )
