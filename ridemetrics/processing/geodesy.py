"""
Geodesy primitives shared by every pipeline.
"""

from math import asin, atan2, cos, degrees, radians, sin, sqrt

EARTH_RADIUS_M = 6371000


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great circle distance between two coordinates in meters.
    """
    # Convert decimal degrees to radians
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])

    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    # Rounding can push a slightly past 1 for antipodal points
    c = 2 * asin(sqrt(min(1.0, a)))

    return c * EARTH_RADIUS_M


def point_distance(p1, p2) -> float:
    """Distance in meters between two objects exposing lat/lon."""
    if p1.lat == p2.lat and p1.lon == p2.lon:
        return 0.0
    return haversine_distance(p1.lat, p1.lon, p2.lat, p2.lon)


def calculate_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the bearing between two points in degrees (0-360).
    """
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])

    dlon = lon2 - lon1
    y = sin(dlon) * cos(lat2)
    x = cos(lat1) * sin(lat2) - sin(lat1) * cos(lat2) * cos(dlon)

    bearing = degrees(atan2(y, x))
    return (bearing + 360) % 360


def calculate_gradient(distance_m: float, elevation_change_m: float) -> float:
    """
    Calculate gradient as a percentage.
    """
    if distance_m <= 0:
        return 0.0
    return (elevation_change_m / distance_m) * 100
