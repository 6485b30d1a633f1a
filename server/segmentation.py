"""Track segmentation: split a user's samples into tracks and compute track aggregates.

Algorithm:
- Walk samples chronologically.
- Start a new track when the gap to the previous sample is longer than the
  time threshold, or when the jump between them is longer than the distance
  threshold.
- Keep only tracks with at least two samples.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from geo import average_speed_kmh, path_distance_m, sample_distance_m
from samples import Track

logger = logging.getLogger(__name__)

TIME_THRESHOLD_MINUTES = 60     # a pause longer than this ends a track
DISTANCE_THRESHOLD_M = 500      # a jump longer than this ends a track
MIN_TRACK_POINTS = 2


@dataclass(frozen=True)
class SegmentationParams:
    time_threshold_minutes: float = TIME_THRESHOLD_MINUTES
    distance_threshold_meters: float = DISTANCE_THRESHOLD_M


DEFAULT_SEGMENTATION = SegmentationParams()


def should_start_new_track(current, previous, params: SegmentationParams = DEFAULT_SEGMENTATION) -> bool:
    if previous is None:
        return False

    if current.timestamp - previous.timestamp > params.time_threshold_minutes * 60:
        return True

    distance = sample_distance_m(previous, current)
    return distance is not None and distance > params.distance_threshold_meters


def split_into_groups(samples, params: SegmentationParams = DEFAULT_SEGMENTATION) -> list[list]:
    """Group time-sorted samples into runs; runs shorter than two samples are dropped."""
    groups = []
    current: list = []

    for sample in samples:
        if should_start_new_track(sample, current[-1] if current else None, params):
            if len(current) >= MIN_TRACK_POINTS:
                groups.append(current)
            current = [sample]
        else:
            current.append(sample)

    if len(current) >= MIN_TRACK_POINTS:
        groups.append(current)
    return groups


def elevation_stats(samples) -> dict:
    """Cumulative ascent/descent and extremes over the samples that report altitude."""
    altitudes = [s.altitude for s in samples if s.altitude is not None]
    if not altitudes:
        return {"gain": 0, "loss": 0, "max": 0, "min": 0}

    gain = 0.0
    loss = 0.0
    for prev, cur in zip(altitudes, altitudes[1:]):
        diff = cur - prev
        if diff > 0:
            gain += diff
        else:
            loss += -diff

    return {"gain": round(gain), "loss": round(loss), "max": max(altitudes), "min": min(altitudes)}


def build_track(samples) -> Optional[Track]:
    """Track with aggregates for one run of samples, or None if it has fewer than two."""
    if len(samples) < MIN_TRACK_POINTS:
        return None

    distance = round(path_distance_m(samples))
    duration = samples[-1].timestamp - samples[0].timestamp
    elevation = elevation_stats(samples)

    return Track(
        samples=tuple(samples),
        start_time=samples[0].timestamp,
        end_time=samples[-1].timestamp,
        distance_m=distance,
        duration_s=duration,
        avg_speed_kmh=average_speed_kmh(distance, duration),
        elevation_gain_m=elevation["gain"],
        elevation_loss_m=elevation["loss"],
        elevation_max_m=elevation["max"],
        elevation_min_m=elevation["min"],
    )


def segment_tracks(samples, params: SegmentationParams = DEFAULT_SEGMENTATION) -> list[Track]:
    """Split time-sorted samples into tracks with aggregates. Pure, no side effects."""
    if not samples:
        return []

    tracks = [build_track(group) for group in split_into_groups(samples, params)]
    logger.debug(
        "Split %d samples into %d track(s) (thresholds: %smin, %sm)",
        len(samples), len(tracks), params.time_threshold_minutes, params.distance_threshold_meters,
    )
    return tracks
