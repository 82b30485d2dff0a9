"""Spherical-earth geometry: distance, direct geodesic and path interpolation."""
from __future__ import annotations

from math import asin, atan2, cos, degrees, radians, sin, sqrt
from typing import List

import numpy as np

from .models import GeoPoint

EARTH_RADIUS_KM = 6371.0  # Mean Earth radius in km


def _central_angle(a: GeoPoint, b: GeoPoint) -> float:
    """Haversine central angle between two points, in radians."""
    phi1 = radians(a.lat)
    phi2 = radians(b.lat)
    d_phi = radians(b.lat - a.lat)
    d_lambda = radians(b.lng - a.lng)

    h = sin(d_phi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(d_lambda / 2) ** 2
    return 2 * atan2(sqrt(h), sqrt(1 - h))


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in kilometres (haversine, R = 6371 km)."""
    return EARTH_RADIUS_KM * _central_angle(a, b)


def destination_point(origin: GeoPoint, bearing_deg: float, distance: float) -> GeoPoint:
    """
    Point reached travelling ``distance`` km from ``origin`` on an initial bearing.

    Args:
        origin: Start point
        bearing_deg: Bearing in degrees clockwise from true north
        distance: Distance in kilometres

    Returns:
        Destination point, longitude normalised to [-180, 180]
    """
    delta = distance / EARTH_RADIUS_KM
    theta = radians(bearing_deg % 360.0)
    phi1 = radians(origin.lat)
    lambda1 = radians(origin.lng)

    phi2 = asin(sin(phi1) * cos(delta) + cos(phi1) * sin(delta) * cos(theta))
    lambda2 = lambda1 + atan2(
        sin(theta) * sin(delta) * cos(phi1),
        cos(delta) - sin(phi1) * sin(phi2),
    )

    lng = (degrees(lambda2) + 540.0) % 360.0 - 180.0
    return GeoPoint(lat=max(-90.0, min(90.0, degrees(phi2))), lng=lng)


def interpolate_path(start: GeoPoint, end: GeoPoint, sample_count: int) -> List[GeoPoint]:
    """
    Evenly spaced points along the great-circle arc from ``start`` to ``end``.

    Uses spherical linear interpolation. The first and last points are the
    inputs themselves. When the endpoints coincide the arc has no direction
    and ``start`` is repeated. Antipodal endpoints are joined along the
    meridian through ``start`` (any great circle reaches the antipode).
    """
    if sample_count < 2:
        raise ValueError(f"sample_count must be >= 2, got {sample_count}")

    c = _central_angle(start, end)
    if c < 1e-12:
        return [start] * sample_count
    if abs(sin(c)) < 1e-12:
        step_km = EARTH_RADIUS_KM * c / (sample_count - 1)
        interior = [destination_point(start, 0.0, i * step_km) for i in range(1, sample_count - 1)]
        return [start, *interior, end]

    lat1, lng1 = radians(start.lat), radians(start.lng)
    lat2, lng2 = radians(end.lat), radians(end.lng)

    f = np.linspace(0.0, 1.0, sample_count)
    a = np.sin((1.0 - f) * c) / sin(c)
    b = np.sin(f * c) / sin(c)

    x = a * cos(lat1) * cos(lng1) + b * cos(lat2) * cos(lng2)
    y = a * cos(lat1) * sin(lng1) + b * cos(lat2) * sin(lng2)
    z = a * sin(lat1) + b * sin(lat2)

    lats = np.degrees(np.arctan2(z, np.sqrt(x * x + y * y)))
    lngs = np.degrees(np.arctan2(y, x))

    points = [GeoPoint(lat=float(la), lng=float(lo)) for la, lo in zip(lats[1:-1], lngs[1:-1])]
    return [start, *points, end]
