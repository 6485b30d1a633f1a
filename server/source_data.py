"""Mode segments built from provider-reported activity.

When the recording app reports what the user was doing (Overland motion,
Google activity recognition, OwnTracks motion state) that is trusted over any
speed-based inference. Samples without a usable report are folded into a
neighbouring segment, so the result always covers every sample of the track.
"""

import logging
from dataclasses import dataclass, replace

from annotations import resolve_mode
from geo import average_speed_kmh, mps_to_kmh, path_distance_m
from samples import Confidence, ModeSegment, TransportMode, lower_confidence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Run:
    """Consecutive samples sharing one reported mode, before statistics are computed."""

    mode: TransportMode
    start_index: int
    end_index: int
    source: str
    confidence: Confidence


def extract_source_segments(samples) -> list[ModeSegment]:
    """Segments from the samples' provider annotations, or [] if none carry a known mode."""
    if not samples:
        return []

    point_modes = [resolve_mode(s.annotations) for s in samples]
    if all(mode is TransportMode.UNKNOWN for mode, _ in point_modes):
        return []

    runs = _group_runs(point_modes)
    runs = _merge_same_mode(_absorb_unknown_runs(runs))
    segments = [_finalize(run, samples) for run in runs]
    logger.debug(
        "Source data gave %d segment(s) for %d samples (%s)",
        len(segments), len(samples), ", ".join(s.mode.value for s in segments),
    )
    return segments


def _group_runs(point_modes) -> list[_Run]:
    runs: list[_Run] = []
    for index, (mode, source) in enumerate(point_modes):
        if runs and runs[-1].mode is mode:
            runs[-1] = replace(runs[-1], end_index=index)
        else:
            confidence = Confidence.LOW if mode is TransportMode.UNKNOWN else Confidence.HIGH
            runs.append(_Run(mode, index, index, source, confidence))
    return runs


def _absorb_unknown_runs(runs: list[_Run]) -> list[_Run]:
    """Fold unknown runs into the previous run, or the next one when they lead the track.

    The absorbing run drops to medium confidence since part of it is now guessed.
    If nothing but unknown runs exist they are returned unchanged.
    """
    result: list[_Run] = []
    leading = None
    for run in runs:
        if run.mode is TransportMode.UNKNOWN:
            if result:
                result[-1] = replace(result[-1], end_index=run.end_index, confidence=Confidence.MEDIUM)
            elif leading is None:
                leading = run
            else:
                leading = replace(leading, end_index=run.end_index)
            continue

        if leading is not None:
            run = replace(run, start_index=leading.start_index, confidence=Confidence.MEDIUM)
            leading = None
        result.append(run)

    if leading is not None:
        result.append(leading)
    return result


def _merge_same_mode(runs: list[_Run]) -> list[_Run]:
    # Absorbing an unknown gap can leave two runs of the same mode side by side
    merged: list[_Run] = []
    for run in runs:
        if merged and merged[-1].mode is run.mode:
            prev = merged[-1]
            if Confidence.MEDIUM in (prev.confidence, run.confidence):
                confidence = Confidence.MEDIUM
            else:
                confidence = lower_confidence(prev.confidence, run.confidence)
            merged[-1] = replace(prev, end_index=run.end_index, confidence=confidence)
        else:
            merged.append(run)
    return merged


def _finalize(run: _Run, samples) -> ModeSegment:
    chunk = samples[run.start_index:run.end_index + 1]
    distance = round(path_distance_m(chunk))
    duration = chunk[-1].timestamp - chunk[0].timestamp
    avg_speed = average_speed_kmh(distance, duration)

    velocities = [mps_to_kmh(s.velocity) for s in chunk if s.velocity is not None]
    max_speed = round(max(velocities), 2) if velocities else None

    return ModeSegment(
        mode=run.mode,
        start_index=run.start_index,
        end_index=run.end_index,
        distance_m=distance,
        duration_s=duration,
        avg_speed_kmh=avg_speed,
        max_speed_kmh=max_speed,
        avg_acceleration=None,
        confidence=run.confidence,
        source=run.source,
    )
