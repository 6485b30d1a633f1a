"""Geo math: great-circle distance, bearing and unit conversions."""

import math
from typing import Optional, Sequence

EARTH_RADIUS_M = 6_371_000  # mean Earth radius in metres
MPS_TO_KMH = 3.6


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in metres between two WGS-84 points."""
    rlat1, rlat2 = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = math.sin(dlat / 2) ** 2 + math.cos(rlat1) * math.cos(rlat2) * math.sin(dlon / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bearing_deg(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Initial bearing from point 1 to point 2, degrees clockwise from north in [0, 360)."""
    rlat1, rlat2 = math.radians(lat1), math.radians(lat2)
    dlon = math.radians(lon2 - lon1)
    x = math.sin(dlon) * math.cos(rlat2)
    y = math.cos(rlat1) * math.sin(rlat2) - math.sin(rlat1) * math.cos(rlat2) * math.cos(dlon)
    return (math.degrees(math.atan2(x, y)) + 360.0) % 360.0


def mps_to_kmh(speed_mps: float) -> float:
    return speed_mps * MPS_TO_KMH


def sample_distance_m(a, b) -> Optional[float]:
    """Great-circle distance between two samples, or None if either lacks coordinates.

    This is the only distance strategy used by segmentation and mode detection.
    """
    if None in (a.latitude, a.longitude, b.latitude, b.longitude):
        return None
    return haversine_m(a.latitude, a.longitude, b.latitude, b.longitude)


def path_distance_m(samples: Sequence) -> float:
    """Sum of consecutive sample distances; pairs without coordinates add nothing."""
    total = 0.0
    for prev, cur in zip(samples, samples[1:]):
        d = sample_distance_m(prev, cur)
        if d is not None:
            total += d
    return total


def average_speed_kmh(distance_m: float, duration_s: float) -> float:
    """Average speed in km/h rounded to 2 decimals; 0 for empty distance or duration."""
    if duration_s <= 0 or distance_m <= 0:
        return 0.0
    return round(mps_to_kmh(distance_m / duration_s), 2)
