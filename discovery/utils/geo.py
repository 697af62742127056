"""Geospatial utilities used for distance calculations."""

from __future__ import annotations

from math import atan2, cos, radians, sin, sqrt

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Calculate distance between two lat/lng points in kilometers.

    Args:
        lat1: Latitude of the first point, in degrees.
        lng1: Longitude of the first point, in degrees.
        lat2: Latitude of the second point, in degrees.
        lng2: Longitude of the second point, in degrees.

    Returns:
        Great-circle distance in kilometers on a spherical Earth.
    """

    lat1_rad = radians(lat1)
    lng1_rad = radians(lng1)
    lat2_rad = radians(lat2)
    lng2_rad = radians(lng2)

    delta_lat = lat2_rad - lat1_rad
    delta_lng = lng2_rad - lng1_rad

    a = sin(delta_lat / 2) ** 2 + cos(lat1_rad) * cos(lat2_rad) * sin(
        delta_lng / 2
    ) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_KM * c
