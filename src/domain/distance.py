"""
Distance calculation using the Haversine formula.

Assumption
----------
Great-circle distance stands in for road distance when the client does
not send one.  A routing-service client would replace ``route_km`` in
production.

Complexity: O(1) per call.
"""

import math

from .entities import Location

EARTH_RADIUS_KM = 6_371.0


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def route_km(pickup: Location, destination: Location) -> float:
    """Pickup -> destination distance, rounded to 0.1 km."""
    return round(
        haversine_km(pickup.lat, pickup.lng, destination.lat, destination.lng), 1
    )
