"""Transportation mode inference from movement physics.

Used when the recording app did not report any activity. The track is cut where
movement changes character (a long pause, a jump in smoothed speed, a sudden
acceleration out of a steady state), each piece is classified from its speed
and acceleration, and neighbouring pieces with the same mode are merged again.

All per-step metrics are computed on consecutive sample *pairs*; indices are
translated back to sample indices only when the final segments are built.
"""

import logging
from dataclasses import dataclass, replace

from geo import mps_to_kmh, sample_distance_m
from mode_classifier import DEFAULT_THRESHOLDS, ClassifierThresholds, classify
from samples import SOURCE_INFERRED, Confidence, ModeSegment, TransportMode, lower_confidence

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

GAP_THRESHOLD_S = 180              # a pause this long marks a change of mode
SPEED_CHANGE_THRESHOLD_KMH = 25    # jump in smoothed speed that marks a change
ACCELERATION_SPIKE_MS2 = 3.0       # sudden acceleration...
CALM_ACCELERATION_MS2 = 0.3        # ...out of a pair steadier than this
MIN_SEGMENT_DURATION_S = 60        # shorter pieces are folded into the next one
SMOOTHING_WINDOW = 5               # centred moving average width, in pairs
MIN_SEGMENT_POINTS = 2


@dataclass(frozen=True)
class MovementParams:
    gap_threshold_seconds: float = GAP_THRESHOLD_S
    speed_change_threshold_kmh: float = SPEED_CHANGE_THRESHOLD_KMH
    acceleration_spike_threshold: float = ACCELERATION_SPIKE_MS2
    calm_acceleration_threshold: float = CALM_ACCELERATION_MS2
    min_segment_duration_seconds: float = MIN_SEGMENT_DURATION_S
    smoothing_window_size: int = SMOOTHING_WINDOW


DEFAULT_PARAMS = MovementParams()


@dataclass(frozen=True)
class PairMetric:
    """Movement between two consecutive samples.

    ``index`` is the position of the pair's first sample in the track.
    """

    index: int
    start_time: int
    end_time: int
    time_diff: int
    distance_m: float
    speed_mps: float
    acceleration: float

    @property
    def speed_kmh(self) -> float:
        return mps_to_kmh(self.speed_mps)


@dataclass(frozen=True)
class _Classified:
    """A classified range of pair metrics (inclusive metric indices)."""

    mode: TransportMode
    first: int
    last: int
    distance_m: int
    duration_s: int
    avg_speed_kmh: float
    max_speed_kmh: float
    avg_acceleration: float
    confidence: Confidence


# ---------------------------------------------------------------------------
# Step 1: per-pair metrics
# ---------------------------------------------------------------------------

def _pair_speed(later, distance_m: float, time_diff: int) -> float:
    """Reported velocity of the later sample when usable, otherwise distance over time."""
    if later.velocity is not None and later.velocity >= 0:
        return float(later.velocity)
    return distance_m / time_diff


def compute_pair_metrics(samples) -> list[PairMetric]:
    """Distance, speed and acceleration for every usable consecutive pair.

    Pairs with missing coordinates or a non-positive time delta are skipped.
    Acceleration is measured against the previous usable pair (0 for the first).
    """
    metrics: list[PairMetric] = []
    skipped = 0

    for index, (p1, p2) in enumerate(zip(samples, samples[1:])):
        time_diff = p2.timestamp - p1.timestamp
        distance = sample_distance_m(p1, p2)
        if time_diff <= 0 or distance is None:
            skipped += 1
            continue

        speed = _pair_speed(p2, distance, time_diff)
        prev_speed = metrics[-1].speed_mps if metrics else speed
        metrics.append(PairMetric(
            index=index,
            start_time=p1.timestamp,
            end_time=p2.timestamp,
            time_diff=time_diff,
            distance_m=distance,
            speed_mps=speed,
            acceleration=(speed - prev_speed) / time_diff,
        ))

    if skipped:
        logger.debug("Skipped %d unusable sample pair(s) out of %d", skipped, max(len(samples) - 1, 0))
    return metrics


# ---------------------------------------------------------------------------
# Step 2: boundary detection
# ---------------------------------------------------------------------------

def smooth_speeds(speeds: list[float], window: int = SMOOTHING_WINDOW) -> list[float]:
    """Centred moving average; returned unchanged when shorter than the window.

    The window is always centred on the current pair, so an even width
    behaves like the next odd one (4 averages the same five pairs as 5).
    """
    if len(speeds) < window:
        return list(speeds)

    half = window // 2
    smoothed = []
    for i in range(len(speeds)):
        lo = max(0, i - half)
        hi = min(len(speeds) - 1, i + half)
        chunk = speeds[lo:hi + 1]
        smoothed.append(sum(chunk) / len(chunk))
    return smoothed


def _has_raw_step(i: int, speeds: list[float], threshold: float, window: int) -> bool:
    """True if two consecutive raw speeds inside the smoothing window around i differ by more than threshold."""
    half = window // 2
    lo = max(0, i - half)
    hi = min(len(speeds) - 1, i + half)
    return any(abs(speeds[j] - speeds[j - 1]) > threshold for j in range(lo + 1, hi + 1))


def _is_boundary(
    i: int,
    range_start: int,
    metrics: list[PairMetric],
    speeds: list[float],
    smoothed: list[float],
    params: MovementParams,
) -> bool:
    metric, prev = metrics[i], metrics[i - 1]

    if metric.time_diff > params.gap_threshold_seconds:
        return True

    threshold = params.speed_change_threshold_kmh
    if abs(smoothed[i] - smoothed[i - 1]) > threshold:
        return True
    # Smoothing spreads a step change over several pairs; a gradual ramp has no raw step
    if (
        abs(smoothed[i] - smoothed[range_start]) > threshold
        and _has_raw_step(i, speeds, threshold, params.smoothing_window_size)
    ):
        return True

    return (
        abs(metric.acceleration) > params.acceleration_spike_threshold
        and abs(prev.acceleration) < params.calm_acceleration_threshold
    )


def detect_boundaries(metrics: list[PairMetric], params: MovementParams = DEFAULT_PARAMS) -> list[tuple[int, int]]:
    """Split the metric sequence into inclusive (first, last) ranges of pair indices."""
    if not metrics:
        return []
    if len(metrics) < 3:
        return [(0, len(metrics) - 1)]

    speeds = [m.speed_kmh for m in metrics]
    smoothed = smooth_speeds(speeds, window=params.smoothing_window_size)

    ranges = []
    start = 0
    for i in range(1, len(metrics)):
        if _is_boundary(i, start, metrics, speeds, smoothed, params):
            ranges.append((start, i - 1))
            start = i
    ranges.append((start, len(metrics) - 1))

    return merge_short_ranges(ranges, metrics, params.min_segment_duration_seconds)


# ---------------------------------------------------------------------------
# Step 3: short range merging
# ---------------------------------------------------------------------------

def _range_duration(first: int, last: int, metrics: list[PairMetric]) -> int:
    return metrics[last].end_time - metrics[first].start_time


def merge_short_ranges(
    ranges: list[tuple[int, int]], metrics: list[PairMetric], min_duration: float = MIN_SEGMENT_DURATION_S,
) -> list[tuple[int, int]]:
    """Fold every range shorter than ``min_duration`` forward into the next one.

    The final range is kept as it is, whatever its length.
    """
    if len(ranges) <= 1:
        return list(ranges)

    merged = []
    current = ranges[0]
    for nxt in ranges[1:]:
        if _range_duration(current[0], current[1], metrics) < min_duration:
            current = (current[0], nxt[1])
        else:
            merged.append(current)
            current = nxt
    merged.append(current)
    return merged


# ---------------------------------------------------------------------------
# Steps 4 and 5: classification and consolidation
# ---------------------------------------------------------------------------

def _classify_range(
    first: int, last: int, metrics: list[PairMetric], thresholds: ClassifierThresholds,
) -> _Classified:
    chunk = metrics[first:last + 1]
    speeds = [m.speed_kmh for m in chunk]
    avg_speed = sum(speeds) / len(speeds)
    max_speed = max(speeds)
    avg_acceleration = sum(abs(m.acceleration) for m in chunk) / len(chunk)
    duration = sum(m.time_diff for m in chunk)

    mode, confidence = classify(avg_speed, max_speed, avg_acceleration, duration, thresholds)
    return _Classified(
        mode=mode,
        first=first,
        last=last,
        distance_m=round(sum(m.distance_m for m in chunk)),
        duration_s=round(duration),
        avg_speed_kmh=round(avg_speed, 2),
        max_speed_kmh=round(max_speed, 2),
        avg_acceleration=round(avg_acceleration, 4),
        confidence=confidence,
    )


def _combine(a: _Classified, b: _Classified) -> _Classified:
    """Merge two adjacent same-mode ranges, weighting averages by duration."""
    total = a.duration_s + b.duration_s
    if total > 0:
        avg_speed = (a.avg_speed_kmh * a.duration_s + b.avg_speed_kmh * b.duration_s) / total
        avg_accel = (a.avg_acceleration * a.duration_s + b.avg_acceleration * b.duration_s) / total
    else:
        avg_speed = (a.avg_speed_kmh + b.avg_speed_kmh) / 2
        avg_accel = (a.avg_acceleration + b.avg_acceleration) / 2

    return replace(
        a,
        last=b.last,
        distance_m=a.distance_m + b.distance_m,
        duration_s=total,
        avg_speed_kmh=round(avg_speed, 2),
        max_speed_kmh=max(a.max_speed_kmh, b.max_speed_kmh),
        avg_acceleration=round(avg_accel, 4),
        confidence=lower_confidence(a.confidence, b.confidence),
    )


def _merge_same_mode(parts: list[_Classified]) -> list[_Classified]:
    merged: list[_Classified] = []
    for part in parts:
        if merged and merged[-1].mode is part.mode:
            merged[-1] = _combine(merged[-1], part)
        else:
            merged.append(part)
    return merged


# ---------------------------------------------------------------------------
# Step 6: pair space -> sample space
# ---------------------------------------------------------------------------

def _to_segments(parts: list[_Classified], metrics: list[PairMetric], sample_count: int) -> list[ModeSegment]:
    """Build sample-indexed segments.

    A pair's speed describes its later sample, so a range ends at the later
    sample of its last pair (pair index + 1) and the next range starts right
    after. The first segment starts at 0 and the last ends at the final sample
    even when pairs at either end were skipped.
    """
    segments = []
    next_start = 0
    for position, part in enumerate(parts):
        if position == len(parts) - 1:
            end_index = sample_count - 1
        else:
            end_index = metrics[part.last].index + 1

        segments.append(ModeSegment(
            mode=part.mode,
            start_index=next_start,
            end_index=end_index,
            distance_m=part.distance_m,
            duration_s=part.duration_s,
            avg_speed_kmh=part.avg_speed_kmh,
            max_speed_kmh=part.max_speed_kmh,
            avg_acceleration=part.avg_acceleration,
            confidence=part.confidence,
            source=SOURCE_INFERRED,
        ))
        next_start = end_index + 1
    return segments


def analyze_movement(
    samples,
    params: MovementParams = DEFAULT_PARAMS,
    thresholds: ClassifierThresholds = DEFAULT_THRESHOLDS,
) -> list[ModeSegment]:
    """Infer mode segments from speed and acceleration. Returns [] if nothing is measurable."""
    if len(samples) < MIN_SEGMENT_POINTS:
        return []

    metrics = compute_pair_metrics(samples)
    if not metrics:
        logger.debug("No usable sample pairs among %d samples", len(samples))
        return []

    ranges = detect_boundaries(metrics, params)
    parts = _merge_same_mode([_classify_range(first, last, metrics, thresholds) for first, last in ranges])
    segments = _to_segments(parts, metrics, len(samples))

    logger.debug(
        "Inferred %d segment(s) from %d pairs: %s",
        len(segments), len(metrics), ", ".join(s.mode.value for s in segments),
    )
    return segments
