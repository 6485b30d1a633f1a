"""Transportation mode detection for one track.

Provider-reported activity wins over inference: movement analysis only runs
when no sample of the track carries a usable annotation. Every result covers
the track's samples exactly once.
"""

import logging
from dataclasses import dataclass, field, replace

from geo import average_speed_kmh, path_distance_m
from mode_classifier import DEFAULT_THRESHOLDS, ClassifierThresholds
from movement import DEFAULT_PARAMS, MovementParams, analyze_movement
from samples import SOURCE_DEFAULT, Confidence, ModeSegment, Track, TransportMode
from source_data import extract_source_segments

logger = logging.getLogger(__name__)

MIN_POINTS = 2
MIN_TRACK_DURATION_S = 30


@dataclass(frozen=True)
class DetectionParams:
    min_points: int = MIN_POINTS
    min_track_duration_seconds: float = MIN_TRACK_DURATION_S
    movement: MovementParams = field(default=DEFAULT_PARAMS)
    classifier: ClassifierThresholds = field(default=DEFAULT_THRESHOLDS)


DEFAULT_DETECTION = DetectionParams()


def default_segment(samples) -> ModeSegment:
    """Single low-confidence unknown segment spanning the whole track."""
    distance = round(path_distance_m(samples))
    duration = samples[-1].timestamp - samples[0].timestamp if samples else 0
    return ModeSegment(
        mode=TransportMode.UNKNOWN,
        start_index=0,
        end_index=max(len(samples) - 1, 0),
        distance_m=distance,
        duration_s=duration,
        avg_speed_kmh=average_speed_kmh(distance, duration),
        confidence=Confidence.LOW,
        source=SOURCE_DEFAULT,
    )


def _too_short(samples, params: DetectionParams) -> bool:
    if len(samples) < params.min_points or len(samples) < 2:
        return True
    return samples[-1].timestamp - samples[0].timestamp < params.min_track_duration_seconds


def detect_modes(samples, params: DetectionParams = DEFAULT_DETECTION) -> list[ModeSegment]:
    """Split a track's samples into mode segments covering every sample exactly once."""
    if _too_short(samples, params):
        logger.debug("Track too short for mode detection (%d samples)", len(samples))
        return [default_segment(samples)]

    segments = extract_source_segments(samples)
    if segments:
        return segments

    segments = analyze_movement(samples, params.movement, params.classifier)
    if segments:
        return segments

    logger.debug("No measurable movement in %d samples, using default segment", len(samples))
    return [default_segment(samples)]


def attach_modes(track: Track, params: DetectionParams = DEFAULT_DETECTION) -> Track:
    """Copy of ``track`` with its mode segments filled in."""
    return replace(track, segments=tuple(detect_modes(track.samples, params)))
