import math
from typing import Tuple, List

EARTH_RADIUS_KM = 6371

Coordinate = Tuple[float, float]

def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two points using Haversine formula
    Returns distance in kilometers
    """
    lat1, lon1, lat2, lon2 = map(math.radians, [lat1, lon1, lat2, lon2])
    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = math.sin(dlat/2)**2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon/2)**2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c

def distance_km(point_a: Coordinate, point_b: Coordinate) -> float:
    """Great-circle distance between two (latitude, longitude) pairs"""
    return calculate_distance(point_a[0], point_a[1], point_b[0], point_b[1])

def is_within_radius(center: Coordinate, point: Coordinate, radius_km: float) -> bool:
    return distance_km(center, point) <= radius_km

def validate_coordinates(latitude: float, longitude: float) -> List[str]:
    """Return the range errors for a coordinate pair (empty when valid)"""
    errors = []

    if not (-90 <= latitude <= 90):
        errors.append("Invalid latitude: must be between -90 and 90")

    if not (-180 <= longitude <= 180):
        errors.append("Invalid longitude: must be between -180 and 180")

    return errors

def format_coordinates(latitude: float, longitude: float) -> str:
    return f"{latitude:.6f}, {longitude:.6f}"

def maps_link(latitude: float, longitude: float) -> str:
    return f"https://maps.google.com/maps?q={latitude},{longitude}"
