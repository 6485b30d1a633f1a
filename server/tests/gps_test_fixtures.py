"""Synthetic GPS traces for segmentation and mode detection tests.

Every trace heads due north from ORIGIN (Berlin, Alexanderplatz). Each sample
is placed ``speed * interval`` metres past the previous one and reports that
speed as its velocity, so reported and measured speeds agree.

Traces:
1. WALK_THEN_DRIVE (12 pts, 60 s apart) - 6 walking samples at 1.5 m/s, then
   6 driving samples at 15 m/s
2. COMMUTE (12 pts, 30 s apart) - the same speeds with a spacing short enough
   that no single step exceeds the 500 m track-split distance
3. TWO_TRIPS - COMMUTE, a 2 hour pause, then a 6 point walk
4. TELEPORT_TRACE - a walk interrupted by a 2 km jump between two samples
5. GRADUAL_RAMP - a smooth 20 to 70 km/h acceleration; LONG_WALK - a 3.5 hour walk
6. Annotated traces for Overland, Google and OwnTracks payloads
"""

import math

from annotations import annotations_for
from geo import EARTH_RADIUS_M
from samples import Sample

BASE_TS = 1_705_305_600  # 2024-01-15 08:00:00 UTC
ORIGIN = (52.5219, 13.4132)

METRES_PER_DEG_LAT = EARTH_RADIUS_M * math.pi / 180

WALKING_MPS = 1.5
DRIVING_MPS = 15.0


def trace(
    speeds_mps,
    interval_s=30,
    start_ts=BASE_TS,
    origin=ORIGIN,
    altitudes=None,
    motion_data=None,
    raw_data=None,
):
    """Point dicts heading north, one per speed. Optional per-point lists are indexed like ``speeds_mps``."""
    lat, lon = origin
    ts = start_ts
    points = []
    for i, speed in enumerate(speeds_mps):
        if i > 0:
            ts += interval_s
            lat += speed * interval_s / METRES_PER_DEG_LAT
        points.append({
            "timestamp": ts,
            "latitude": lat,
            "longitude": lon,
            "velocity": speed,
            "altitude": altitudes[i] if altitudes else None,
            "motion_data": motion_data[i] if motion_data else None,
            "raw_data": raw_data[i] if raw_data else None,
        })
    return points


def to_samples(points):
    return [
        Sample(
            timestamp=p["timestamp"],
            latitude=p["latitude"],
            longitude=p["longitude"],
            velocity=p.get("velocity"),
            altitude=p.get("altitude"),
            annotations=annotations_for(p.get("motion_data"), p.get("raw_data")),
        )
        for p in points
    ]


# -- Unannotated movement --
WALK_THEN_DRIVE = trace([WALKING_MPS] * 6 + [DRIVING_MPS] * 6, interval_s=60)
COMMUTE = trace([WALKING_MPS] * 6 + [DRIVING_MPS] * 6, interval_s=30)

EVENING_WALK = trace([WALKING_MPS] * 6, interval_s=30, start_ts=COMMUTE[-1]["timestamp"] + 2 * 60 * 60)
TWO_TRIPS = COMMUTE + EVENING_WALK

STATIONARY_TRACE = trace([0.0] * 10, interval_s=60)
CYCLING_TRACE = trace([5.0] * 10, interval_s=30)  # 18 km/h, no jerks

# A car accelerating steadily from 20 to 70 km/h over half an hour
GRADUAL_RAMP = trace([(20 + i * 50 / 30) / 3.6 for i in range(31)], interval_s=60)

# 43 walking samples 5 minutes apart: one 3.5 hour track
LONG_WALK = trace([WALKING_MPS] * 43, interval_s=300)

_before_jump = trace([WALKING_MPS] * 5, interval_s=30)
_after_jump = trace(
    [WALKING_MPS] * 5,
    interval_s=30,
    start_ts=_before_jump[-1]["timestamp"] + 30,
    origin=(_before_jump[-1]["latitude"] + 2000 / METRES_PER_DEG_LAT, ORIGIN[1]),
)
TELEPORT_TRACE = _before_jump + _after_jump

# Altitudes with one gap: gain 5 + 7, loss 2 + 2
ALTITUDE_TRACE = trace(
    [WALKING_MPS] * 6,
    interval_s=30,
    altitudes=[100.0, 105.0, 103.0, 110.0, None, 108.0],
)

# -- Provider annotations --
OVERLAND_DRIVING = {"motion": ["driving"]}
OVERLAND_WALKING = {"properties": {"motion": ["walking"], "activity": "fitness"}}
OVERLAND_STILL = {"motion": ["stationary"]}
GOOGLE_WALKING = {
    "activityRecord": {
        "probableActivities": [
            {"type": "STILL", "confidence": 15},
            {"type": "WALKING", "confidence": 85},
        ],
    },
}
GOOGLE_IN_VEHICLE = {"activities": [{"activityType": "IN_PASSENGER_VEHICLE", "probability": 0.9}]}
OWNTRACKS_STOPPED = {"_type": "location", "m": 0, "lat": ORIGIN[0], "lon": ORIGIN[1]}
OWNTRACKS_MOVING = {"_type": "location", "m": 1}

# driving, driving, nothing, driving, driving
OVERLAND_WITH_GAP = trace(
    [12.0] * 5,
    interval_s=30,
    motion_data=[OVERLAND_DRIVING, OVERLAND_DRIVING, None, OVERLAND_DRIVING, OVERLAND_DRIVING],
)

# Walked (Overland), then driven (Google raw payloads only)
MIXED_PROVIDERS = trace(
    [WALKING_MPS] * 4 + [DRIVING_MPS / 2] * 4,
    interval_s=30,
    motion_data=[OVERLAND_WALKING] * 4 + [None] * 4,
    raw_data=[None] * 4 + [GOOGLE_IN_VEHICLE] * 4,
)

# Only OwnTracks "moving" reports: recognized, but no usable mode
OWNTRACKS_MOVING_TRACE = trace(
    [DRIVING_MPS / 2] * 8,
    interval_s=30,
    raw_data=[OWNTRACKS_MOVING] * 8,
)
