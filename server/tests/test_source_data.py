"""Tests for mode segments built from provider-reported activity."""

from annotations import parse_annotations
from samples import Confidence, Sample, TransportMode
from source_data import extract_source_segments
from tests.gps_test_fixtures import (
    MIXED_PROVIDERS,
    OVERLAND_DRIVING,
    OVERLAND_STILL,
    OVERLAND_WITH_GAP,
    OWNTRACKS_MOVING_TRACE,
    to_samples,
    trace,
)


def _annotated(payloads, speed=10.0):
    """Samples 30 s apart with one payload (or None) each."""
    return to_samples(trace([speed] * len(payloads), interval_s=30, motion_data=payloads))


def _assert_contiguous(segments, count):
    assert segments[0].start_index == 0
    assert segments[-1].end_index == count - 1
    for prev, cur in zip(segments, segments[1:]):
        assert prev.end_index + 1 == cur.start_index


# =====================================================================
# Grouping
# =====================================================================

class TestExtractSourceSegments:
    def test_no_samples(self):
        assert extract_source_segments([]) == []

    def test_no_annotations(self):
        samples = _annotated([None] * 5)
        assert extract_source_segments(samples) == []

    def test_only_unusable_annotations(self):
        assert extract_source_segments(to_samples(OWNTRACKS_MOVING_TRACE)) == []

    def test_single_mode(self):
        segments = extract_source_segments(_annotated([OVERLAND_DRIVING] * 4))
        assert len(segments) == 1
        seg = segments[0]
        assert seg.mode == TransportMode.DRIVING
        assert (seg.start_index, seg.end_index) == (0, 3)
        assert seg.confidence == Confidence.HIGH
        assert seg.source == "overland"
        assert seg.avg_acceleration is None

    def test_two_providers(self):
        samples = to_samples(MIXED_PROVIDERS)
        segments = extract_source_segments(samples)
        assert [(s.mode, s.source) for s in segments] == [
            (TransportMode.WALKING, "overland"),
            (TransportMode.DRIVING, "google"),
        ]
        assert (segments[0].start_index, segments[0].end_index) == (0, 3)
        assert (segments[1].start_index, segments[1].end_index) == (4, 7)
        _assert_contiguous(segments, len(samples))

    def test_mode_change(self):
        samples = _annotated([OVERLAND_STILL] * 3 + [OVERLAND_DRIVING] * 3)
        segments = extract_source_segments(samples)
        assert [s.mode for s in segments] == [TransportMode.STATIONARY, TransportMode.DRIVING]
        assert all(s.confidence == Confidence.HIGH for s in segments)


# =====================================================================
# Unknown absorption
# =====================================================================

class TestUnknownAbsorption:
    def test_gap_is_absorbed_and_merged(self):
        samples = to_samples(OVERLAND_WITH_GAP)
        segments = extract_source_segments(samples)
        assert len(segments) == 1
        seg = segments[0]
        assert seg.mode == TransportMode.DRIVING
        assert (seg.start_index, seg.end_index) == (0, 4)
        assert seg.confidence == Confidence.MEDIUM

    def test_trailing_unknown_extends_previous(self):
        samples = _annotated([OVERLAND_DRIVING] * 3 + [None] * 2)
        segments = extract_source_segments(samples)
        assert len(segments) == 1
        assert segments[0].end_index == 4
        assert segments[0].confidence == Confidence.MEDIUM

    def test_leading_unknown_is_prepended_to_next(self):
        samples = _annotated([None] * 2 + [OVERLAND_DRIVING] * 3)
        segments = extract_source_segments(samples)
        assert len(segments) == 1
        assert (segments[0].start_index, segments[0].end_index) == (0, 4)
        assert segments[0].mode == TransportMode.DRIVING
        assert segments[0].confidence == Confidence.MEDIUM

    def test_gap_between_different_modes_goes_to_previous(self):
        samples = _annotated([OVERLAND_STILL] * 2 + [None] + [OVERLAND_DRIVING] * 2)
        segments = extract_source_segments(samples)
        assert [(s.start_index, s.end_index) for s in segments] == [(0, 2), (3, 4)]
        assert [s.confidence for s in segments] == [Confidence.MEDIUM, Confidence.HIGH]


# =====================================================================
# Segment statistics
# =====================================================================

class TestSegmentStatistics:
    def test_distance_duration_and_speed(self):
        samples = _annotated([OVERLAND_DRIVING] * 5, speed=10.0)
        seg = extract_source_segments(samples)[0]
        assert seg.duration_s == 120
        assert abs(seg.distance_m - 1200) <= 1
        assert abs(seg.avg_speed_kmh - 36.0) < 0.1

    def test_max_speed_from_reported_velocity(self):
        samples = _annotated([OVERLAND_DRIVING] * 4, speed=10.0)
        assert extract_source_segments(samples)[0].max_speed_kmh == 36.0

    def test_max_speed_absent_without_velocity(self):
        annotations = tuple(parse_annotations(OVERLAND_DRIVING))
        samples = [
            Sample(timestamp=t, latitude=52.5 + t / 100_000, longitude=13.4, annotations=annotations)
            for t in range(0, 120, 30)
        ]
        assert extract_source_segments(samples)[0].max_speed_kmh is None

    def test_single_sample_segment_has_zero_speed(self):
        samples = _annotated([OVERLAND_STILL] * 3 + [OVERLAND_DRIVING])
        last = extract_source_segments(samples)[-1]
        assert (last.start_index, last.end_index) == (3, 3)
        assert last.duration_s == 0
        assert last.avg_speed_kmh == 0.0
