from math import radians, sin, cos, sqrt, atan2, floor
from typing import NamedTuple

# Mean Earth radius in kilometers
EARTH_RADIUS_KM = 6371.0

MAX_POINTS = 5000


class Coordinate(NamedTuple):
    """A point in decimal degrees."""
    latitude: float
    longitude: float


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great circle distance between two points on Earth.

    Inputs are not range checked; out-of-range degrees give a meaningless
    but finite result.

    Args:
        lat1, lon1: Coordinates of the first point (degrees)
        lat2, lon2: Coordinates of the second point (degrees)

    Returns:
        Distance in kilometers
    """
    # Convert coordinates to radians
    lat1_rad = radians(lat1)
    lat2_rad = radians(lat2)

    # Haversine formula
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)

    a = sin(dlat / 2)**2 + cos(lat1_rad) * cos(lat2_rad) * sin(dlon / 2)**2
    # Keep a in [0, 1]: float error near antipodes, garbage for out-of-range degrees
    a = min(1.0, max(0.0, a))
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """Great circle distance between two coordinates in kilometers."""
    return haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude)


def round_half_up(value: float) -> int:
    # SQL AVG() may hand back a Decimal depending on the driver
    return int(floor(float(value) + 0.5))


def calculate_score(distance_km: float) -> int:
    """
    Calculate score based on distance from actual location.

    Bands are checked top-down, first match wins:
    - exactly 0km: 5000 points
    - < 1km: 5000-4000 points, 1000 per km
    - < 10km: 4000 points minus 100 per km past 1km
    - < 50km: 3000 points minus 25 per km past 10km
    - < 100km: 2000 points minus 20 per km past 50km
    - < 500km: 1000 points minus 2 per km past 100km
    - otherwise: 500 points minus 0.5 per km past 500km, floored at 0

    Args:
        distance_km: Distance in kilometers

    Returns:
        Score (0 to 5000)
    """
    if distance_km == 0:
        return MAX_POINTS
    elif distance_km < 1:
        return round_half_up(5000 - distance_km * 1000)
    elif distance_km < 10:
        return round_half_up(4000 - (distance_km - 1) * 100)
    elif distance_km < 50:
        return round_half_up(3000 - (distance_km - 10) * 25)
    elif distance_km < 100:
        return round_half_up(2000 - (distance_km - 50) * 20)
    elif distance_km < 500:
        return round_half_up(1000 - (distance_km - 100) * 2)
    else:
        return max(0, round_half_up(500 - (distance_km - 500) * 0.5))
