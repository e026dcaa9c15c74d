"""
Coordinate parsing and great-circle helpers.
"""

from __future__ import annotations

import math
from decimal import Decimal

# Mean Earth radius, the same constant Elasticsearch uses for arc distances.
EARTH_RADIUS_KM = 6371.0088


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometers."""
    lat1_r = math.radians(lat1)
    lat2_r = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def offset_north(lat: float, lon: float, distance_km: float) -> tuple[float, float]:
    """Return the point `distance_km` due north of (lat, lon)."""
    return lat + math.degrees(distance_km / EARTH_RADIUS_KM), lon


def parse_float(raw: str | float | None, name: str) -> float:
    """
    Parse a decimal string into a finite float.

    Raises ValueError with a message naming the field; empty and missing values
    are errors rather than zero.
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise ValueError(f"{name} is required")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a decimal number, got {raw!r}") from None
    if not math.isfinite(value):
        raise ValueError(f"{name} must be finite, got {raw!r}")
    return value


def parse_lat_lon(raw_lat: str | float | None, raw_lon: str | float | None) -> tuple[float, float]:
    lat = parse_float(raw_lat, "lat")
    lon = parse_float(raw_lon, "lon")
    if not -90.0 <= lat <= 90.0:
        raise ValueError(f"lat must be within [-90, 90], got {lat}")
    if not -180.0 <= lon <= 180.0:
        raise ValueError(f"lon must be within [-180, 180], got {lon}")
    return lat, lon


def format_decimal(value: float) -> str:
    """Shortest plain decimal form of a number: 37.77, -122, 0.00001."""
    text = format(Decimal(repr(value)).normalize(), "f")
    return "0" if text in ("-0", "") else text
