from math import atan2, cos, radians, sin, sqrt

from .errors import ValidationError

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometers, unrounded."""
    phi1, phi2 = radians(lat1), radians(lat2)
    dphi = radians(lat2 - lat1)
    dlambda = radians(lon2 - lon1)
    a = sin(dphi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlambda / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_to_point(lat: float, lon: float, point: dict) -> float:
    coordinates = point.get('coordinates') or {}
    return haversine_km(lat, lon, coordinates['latitude'], coordinates['longitude'])


def parse_coordinate(value, name, lower, upper):
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError('Koordinat tidak valid', details={name: value})
    if not lower <= number <= upper:
        raise ValidationError('Koordinat tidak valid', details={name: value})
    return number


def parse_location(latitude, longitude):
    """Return ``(lat, lon)`` when both values are present, otherwise ``None``."""
    if latitude in (None, '') or longitude in (None, ''):
        return None
    return (
        parse_coordinate(latitude, 'latitude', -90, 90),
        parse_coordinate(longitude, 'longitude', -180, 180),
    )
