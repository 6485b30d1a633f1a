"""Value types shared by track segmentation and mode detection."""

import enum
from dataclasses import dataclass, field
from typing import Optional


class TransportMode(str, enum.Enum):
    STATIONARY = "stationary"
    WALKING = "walking"
    RUNNING = "running"
    CYCLING = "cycling"
    DRIVING = "driving"
    MOTORCYCLE = "motorcycle"
    BUS = "bus"
    TRAIN = "train"
    BOAT = "boat"
    FLYING = "flying"
    UNKNOWN = "unknown"


class Confidence(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]


_CONFIDENCE_RANK = {Confidence.LOW: 1, Confidence.MEDIUM: 2, Confidence.HIGH: 3}


def lower_confidence(a: Confidence, b: Confidence) -> Confidence:
    """Return the less reliable of two confidences (ties keep the first)."""
    return a if a.rank <= b.rank else b


# Provenance labels that are not provider names
SOURCE_DEFAULT = "default"
SOURCE_INFERRED = "inferred"
SOURCE_UNKNOWN = "unknown"


@dataclass(frozen=True)
class Sample:
    """A single raw location reading.

    ``annotations`` holds provider motion annotations already normalized by
    ``annotations.annotations_for``; it is empty when the provider sent none.
    ``point_id`` is the upstream row identity and is ignored by the algorithms.
    """

    timestamp: int
    latitude: Optional[float]
    longitude: Optional[float]
    velocity: Optional[float] = None
    altitude: Optional[float] = None
    annotations: tuple = ()
    point_id: Optional[int] = None


@dataclass(frozen=True)
class ModeSegment:
    """A contiguous range of a track's samples tagged with one transport mode.

    ``start_index`` and ``end_index`` are inclusive indices into the track's samples.
    """

    mode: TransportMode
    start_index: int
    end_index: int
    distance_m: int
    duration_s: int
    avg_speed_kmh: float
    confidence: Confidence
    source: str
    max_speed_kmh: Optional[float] = None
    avg_acceleration: Optional[float] = None


@dataclass(frozen=True)
class Track:
    """A run of samples bounded by inactivity or distance jumps, with aggregates."""

    samples: tuple
    start_time: int
    end_time: int
    distance_m: int
    duration_s: int
    avg_speed_kmh: float
    elevation_gain_m: int = 0
    elevation_loss_m: int = 0
    elevation_max_m: float = 0
    elevation_min_m: float = 0
    segments: tuple = field(default=())

    @property
    def dominant_mode(self) -> TransportMode:
        return dominant_mode(self.segments)


def dominant_mode(segments) -> TransportMode:
    """Mode of the longest segment (first wins on ties), or unknown when there are none."""
    if not segments:
        return TransportMode.UNKNOWN
    return max(segments, key=lambda s: s.duration_s).mode
