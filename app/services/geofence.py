"""
Geofence Validator - decides whether a position lies inside an office zone
"""
import math
from dataclasses import dataclass
from typing import Iterable, Optional

EARTH_RADIUS_M = 6371000


class InvalidCoordinatesError(ValueError):
    """Latitude/longitude is not a finite WGS84 coordinate"""


@dataclass(frozen=True)
class Position:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Zone:
    id: int
    name: str
    latitude: float
    longitude: float
    radius_meters: int
    is_active: bool = True


@dataclass(frozen=True)
class GeofenceResult:
    is_valid: bool
    matched_zone: Optional[Zone] = None
    distance_meters: Optional[float] = None
    nearest_zone: Optional[Zone] = None


def validate_coordinates(latitude: float, longitude: float) -> None:
    """
    Raises:
        InvalidCoordinatesError: NaN, infinite or out-of-range values
    """
    for name, value in (("latitude", latitude), ("longitude", longitude)):
        if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidCoordinatesError(f"{name} must be a number")
        if not math.isfinite(value):
            raise InvalidCoordinatesError(f"{name} must be finite")
    if not -90 <= latitude <= 90:
        raise InvalidCoordinatesError(f"latitude {latitude} out of range [-90, 90]")
    if not -180 <= longitude <= 180:
        raise InvalidCoordinatesError(f"longitude {longitude} out of range [-180, 180]")


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two coordinates using Haversine formula

    Returns:
        float: Distance in meters
    """
    validate_coordinates(lat1, lon1)
    validate_coordinates(lat2, lon2)

    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (math.sin(delta_lat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) *
         math.sin(delta_lon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def check_position(position: Optional[Position], zones: Iterable[Zone]) -> GeofenceResult:
    """
    Check a position against office zones

    Zones are visited in the order given and the first one whose radius
    contains the position wins, even if a later zone is closer. Inactive
    zones are skipped. A missing position or an empty zone list is invalid.

    Args:
        position: Employee position, None when geolocation is unavailable
        zones: Candidate zones, already ordered

    Returns:
        GeofenceResult: match flag, matched zone and its distance. When no zone
        matches, distance_meters/nearest_zone describe the closest active zone.

    Raises:
        InvalidCoordinatesError: If position coordinates are malformed
    """
    if position is None:
        return GeofenceResult(is_valid=False)

    validate_coordinates(position.latitude, position.longitude)

    nearest_zone = None
    nearest_distance = None
    for zone in zones:
        if not zone.is_active:
            continue
        distance = haversine_distance(
            position.latitude, position.longitude,
            zone.latitude, zone.longitude
        )
        if distance <= zone.radius_meters:
            return GeofenceResult(is_valid=True, matched_zone=zone, distance_meters=distance)
        if nearest_distance is None or distance < nearest_distance:
            nearest_zone = zone
            nearest_distance = distance

    return GeofenceResult(
        is_valid=False,
        distance_meters=nearest_distance,
        nearest_zone=nearest_zone
    )
