"""Track processing engine: segmentation, mode detection and persistence.

Processing pipeline (runs server-side after points are ingested):
1. Load the user's unassigned points (all of them in bulk mode, a short tail
   window around a new point in incremental mode)
2. Split them into tracks on long pauses and large jumps
3. Detect transportation-mode segments for every track (thread pool)
4. Store Track and TrackSegment rows and assign the points to their track
"""

import datetime
import logging
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from annotations import annotations_for
from mode_classifier import ClassifierThresholds
from mode_detection import MIN_POINTS, MIN_TRACK_DURATION_S, DetectionParams, attach_modes, detect_modes
from models import Config, Point, Track, TrackSegment
from movement import (
    ACCELERATION_SPIKE_MS2,
    CALM_ACCELERATION_MS2,
    GAP_THRESHOLD_S,
    MIN_SEGMENT_DURATION_S,
    SMOOTHING_WINDOW,
    SPEED_CHANGE_THRESHOLD_KMH,
    MovementParams,
)
from samples import Sample, dominant_mode
from segmentation import DISTANCE_THRESHOLD_M, TIME_THRESHOLD_MINUTES, SegmentationParams, segment_tracks

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

MODES = ("bulk", "incremental")

INCREMENTAL_LOOKBACK_S = 2 * 60 * 60                 # tail window before the new point
INCREMENTAL_MAX_AGE = datetime.timedelta(hours=1)    # older anchors are not processed
INCREMENTAL_GRACE_PERIOD_S = 5 * 60                  # a trip this recent may still be growing

# Optional classifier overrides; absent keys keep the classifier defaults
USER_OVERRIDE_KEYS = ("walking_max_speed", "cycling_max_speed", "flying_min_speed")
EXPERT_OVERRIDE_KEYS = (
    "stationary_max_speed", "running_vs_cycling_accel", "cycling_vs_driving_accel", "train_min_speed",
)


def get_thresholds(db: Session) -> dict:
    """Read algorithm thresholds from the Config table, falling back to module defaults."""
    defaults = {
        "time_threshold_minutes": TIME_THRESHOLD_MINUTES,
        "distance_threshold_meters": DISTANCE_THRESHOLD_M,
        "min_points": MIN_POINTS,
        "min_track_duration_seconds": MIN_TRACK_DURATION_S,
        "gap_threshold_seconds": GAP_THRESHOLD_S,
        "speed_change_threshold_kmh": SPEED_CHANGE_THRESHOLD_KMH,
        "acceleration_spike_threshold": ACCELERATION_SPIKE_MS2,
        "calm_acceleration_threshold": CALM_ACCELERATION_MS2,
        "min_segment_duration_seconds": MIN_SEGMENT_DURATION_S,
        "smoothing_window_size": SMOOTHING_WINDOW,
    }
    keys = list(defaults) + list(USER_OVERRIDE_KEYS) + list(EXPERT_OVERRIDE_KEYS)
    rows = db.query(Config).filter(Config.key.in_(keys)).all()
    for row in rows:
        defaults[row.key] = float(row.value)
    return defaults


def segmentation_params(thresholds: dict | None = None) -> SegmentationParams:
    t = thresholds or {}
    return SegmentationParams(
        time_threshold_minutes=t.get("time_threshold_minutes", TIME_THRESHOLD_MINUTES),
        distance_threshold_meters=t.get("distance_threshold_meters", DISTANCE_THRESHOLD_M),
    )


def detection_params(thresholds: dict | None = None) -> DetectionParams:
    """Mode detection parameters, including classifier overrides, from a thresholds dict."""
    t = thresholds or {}
    movement = MovementParams(
        gap_threshold_seconds=t.get("gap_threshold_seconds", GAP_THRESHOLD_S),
        speed_change_threshold_kmh=t.get("speed_change_threshold_kmh", SPEED_CHANGE_THRESHOLD_KMH),
        acceleration_spike_threshold=t.get("acceleration_spike_threshold", ACCELERATION_SPIKE_MS2),
        calm_acceleration_threshold=t.get("calm_acceleration_threshold", CALM_ACCELERATION_MS2),
        min_segment_duration_seconds=t.get("min_segment_duration_seconds", MIN_SEGMENT_DURATION_S),
        smoothing_window_size=int(t.get("smoothing_window_size", SMOOTHING_WINDOW)),
    )
    classifier = ClassifierThresholds.from_settings(
        user={k: t[k] for k in USER_OVERRIDE_KEYS if k in t},
        expert={k: t[k] for k in EXPERT_OVERRIDE_KEYS if k in t},
    )
    return DetectionParams(
        min_points=int(t.get("min_points", MIN_POINTS)),
        min_track_duration_seconds=t.get("min_track_duration_seconds", MIN_TRACK_DURATION_S),
        movement=movement,
        classifier=classifier,
    )


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def point_to_sample(point: Point) -> Sample:
    return Sample(
        timestamp=point.timestamp,
        latitude=point.latitude,
        longitude=point.longitude,
        velocity=point.velocity,
        altitude=point.altitude,
        annotations=annotations_for(point.motion_data, point.raw_data),
        point_id=point.id,
    )


def _unassigned_points(db: Session, user_id: int, since: Optional[int] = None) -> list[Point]:
    query = db.query(Point).filter(Point.user_id == user_id, Point.track_id.is_(None))
    if since is not None:
        query = query.filter(Point.timestamp >= since)
    return query.order_by(Point.timestamp.asc(), Point.id.asc()).all()


def _dissolve_tracks(db: Session, user_id: int, ending_since: Optional[int] = None) -> tuple[int, Optional[int]]:
    """Delete the user's tracks (optionally only those ending at or after a timestamp).

    Their points become unassigned again. Returns the number of tracks removed
    and the earliest start among them (None if nothing was removed).
    """
    query = db.query(Track).filter(Track.user_id == user_id)
    if ending_since is not None:
        query = query.filter(Track.end_at >= ending_since)
    tracks = query.all()
    earliest = min((t.start_at for t in tracks), default=None)
    for track in tracks:
        # segments cascade; points are detached (track_id set to NULL)
        db.delete(track)
    db.flush()
    return len(tracks), earliest


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def _segment_rows(segments) -> list[TrackSegment]:
    return [
        TrackSegment(
            transportation_mode=seg.mode.value,
            start_index=seg.start_index,
            end_index=seg.end_index,
            distance=seg.distance_m,
            duration=seg.duration_s,
            avg_speed=seg.avg_speed_kmh,
            max_speed=seg.max_speed_kmh,
            avg_acceleration=seg.avg_acceleration,
            confidence=seg.confidence.value,
            source=seg.source,
        )
        for seg in segments
    ]


def _store_track(db: Session, user_id: int, track) -> Track:
    row = Track(
        user_id=user_id,
        start_at=track.start_time,
        end_at=track.end_time,
        distance=track.distance_m,
        duration=track.duration_s,
        avg_speed=track.avg_speed_kmh,
        elevation_gain=track.elevation_gain_m,
        elevation_loss=track.elevation_loss_m,
        elevation_max=track.elevation_max_m,
        elevation_min=track.elevation_min_m,
        dominant_mode=track.dominant_mode.value,
    )
    row.segments = _segment_rows(track.segments)
    db.add(row)
    db.flush()  # get the id

    point_ids = [s.point_id for s in track.samples if s.point_id is not None]
    db.query(Point).filter(Point.id.in_(point_ids)).update(
        {Point.track_id: row.id}, synchronize_session=False,
    )
    return row


# ---------------------------------------------------------------------------
# Full pipeline: build tracks for a user
# ---------------------------------------------------------------------------

def _epoch_seconds(moment: datetime.datetime) -> int:
    """Unix timestamp of a naive UTC datetime."""
    return int(moment.replace(tzinfo=datetime.timezone.utc).timestamp())


def _finalized_tracks(tracks: list, now_ts: int) -> list:
    """Drop the last track while its final sample is within the grace period of ``now_ts``.

    Its points stay unassigned, so the next incremental run extends the same
    trip instead of starting a second track.
    """
    if tracks and now_ts - tracks[-1].end_time <= INCREMENTAL_GRACE_PERIOD_S:
        open_track = tracks[-1]
        logger.debug("Holding back open track ending at %d (%d samples)", open_track.end_time, len(open_track.samples))
        return tracks[:-1]
    return tracks


def detect_all(tracks, params: DetectionParams, max_workers: Optional[int] = None) -> list:
    """Attach mode segments to every track; results come back in input order."""
    if not tracks:
        return []
    if max_workers == 1 or len(tracks) == 1:
        return [attach_modes(track, params) for track in tracks]
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(partial(attach_modes, params=params), tracks))


def process_user_points(
    db: Session,
    user_id: int,
    mode: str = "bulk",
    point_id: Optional[int] = None,
    cleanup: bool = False,
    thresholds: dict | None = None,
    now: Optional[datetime.datetime] = None,
    max_workers: Optional[int] = None,
) -> list[Track]:
    """Segment the user's unassigned points into tracks with transportation modes.

    Bulk mode uses every unassigned point; with ``cleanup`` all existing tracks
    of the user are dissolved first. Incremental mode is anchored on
    ``point_id``: it is skipped when that point is missing or was received more
    than an hour before ``now``, and otherwise works on the two hours before the
    anchor. There ``cleanup`` dissolves the tracks ending in that window and
    resegments all of their points, and a last track whose final sample is
    less than five minutes older than ``now`` is left open (its points stay
    unassigned) for the next run to extend.

    Returns the newly created Track rows.
    """
    if mode not in MODES:
        raise ValueError(f"Unknown processing mode: {mode!r} (expected one of {', '.join(MODES)})")

    if thresholds is None:
        thresholds = get_thresholds(db)
    now = now or datetime.datetime.utcnow()

    since = None
    if mode == "incremental":
        anchor = db.query(Point).filter(Point.id == point_id, Point.user_id == user_id).first()
        if anchor is None:
            logger.info("Incremental run for user=%d skipped: point %s not found", user_id, point_id)
            return []
        if anchor.received_at is not None and now - anchor.received_at > INCREMENTAL_MAX_AGE:
            logger.info("Incremental run for user=%d skipped: point %d is too old", user_id, anchor.id)
            return []
        since = anchor.timestamp - INCREMENTAL_LOOKBACK_S

    try:
        if cleanup:
            removed, earliest = _dissolve_tracks(db, user_id, ending_since=since)
            if removed:
                logger.info("Dissolved %d existing track(s) for user=%d", removed, user_id)
            # dissolved tracks may reach back before the window; reload all of their points
            if since is not None and earliest is not None:
                since = min(since, earliest)

        points = _unassigned_points(db, user_id, since)
        samples = [point_to_sample(p) for p in points]
        tracks = segment_tracks(samples, segmentation_params(thresholds))
        if mode == "incremental":
            tracks = _finalized_tracks(tracks, _epoch_seconds(now))
        tracks = detect_all(tracks, detection_params(thresholds), max_workers)

        new_tracks = [_store_track(db, user_id, track) for track in tracks]
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Track processing failed for user=%d (mode=%s)", user_id, mode)
        raise

    logger.info(
        "Processed %d points for user=%d (%s): %d tracks created",
        len(points), user_id, mode, len(new_tracks),
    )
    return new_tracks


def reprocess_all(db: Session, user_id: int, max_workers: Optional[int] = None) -> dict:
    """Delete all tracks for the user and rebuild them from scratch.

    Returns {"tracks_created": int, "segments_created": int, "points_assigned": int}.
    """
    tracks = process_user_points(db, user_id, mode="bulk", cleanup=True, max_workers=max_workers)

    segments_created = sum(len(t.segments) for t in tracks)
    points_assigned = (
        db.query(Point)
        .filter(Point.user_id == user_id, Point.track_id.isnot(None))
        .count()
    )

    logger.info(
        "Reprocessed user=%d: %d tracks, %d segments created",
        user_id, len(tracks), segments_created,
    )
    return {
        "tracks_created": len(tracks),
        "segments_created": segments_created,
        "points_assigned": points_assigned,
    }


def redetect_track_modes(db: Session, track_id: int, thresholds: dict | None = None) -> Optional[Track]:
    """Replace the mode segments of one stored track, e.g. after annotations were backfilled.

    Returns the updated Track row, or None if it does not exist.
    """
    track = db.query(Track).filter(Track.id == track_id).first()
    if track is None:
        return None

    if thresholds is None:
        thresholds = get_thresholds(db)

    points = (
        db.query(Point)
        .filter(Point.track_id == track_id)
        .order_by(Point.timestamp.asc(), Point.id.asc())
        .all()
    )
    segments = detect_modes([point_to_sample(p) for p in points], detection_params(thresholds))

    try:
        track.segments = _segment_rows(segments)
        track.dominant_mode = dominant_mode(segments).value
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Mode re-detection failed for track=%d", track_id)
        raise

    db.refresh(track)
    logger.info("Re-detected modes for track=%d: %d segments (%s)", track_id, len(segments), track.dominant_mode)
    return track
