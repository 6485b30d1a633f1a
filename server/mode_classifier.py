"""Transportation mode classification from speed and acceleration statistics.

Speed bands overlap (a 15 km/h segment may be a runner or a cyclist), so the
mean absolute acceleration is used as the tie-breaker: running is jerkier than
cycling, stop-and-go traffic is jerkier than cycling, trains are the smoothest.

Speeds are in km/h, accelerations in m/s^2.
"""

from dataclasses import dataclass, replace
from typing import Optional

from samples import Confidence, TransportMode


@dataclass(frozen=True)
class ClassifierThresholds:
    # Speed bands (km/h)
    stationary_max: float = 1.0
    walking_max: float = 7.0
    running_max: float = 20.0
    cycling_max: float = 45.0
    cycling_max_likely: float = 35.0   # above this, cycling becomes unlikely
    bus_max: float = 100.0
    high_speed_boundary: float = 130.0  # train or autobahn above this
    train_min: float = 80.0
    train_max: float = 350.0
    flying_min: float = 150.0
    flying_threshold: float = 200.0    # max speed needed to call it a flight

    # Acceleration (m/s^2)
    running_vs_cycling_accel: float = 0.25
    cycling_vs_driving_accel: float = 0.4
    motorcycle_accel: float = 0.6
    train_accel: float = 0.2
    bus_accel_min: float = 0.2
    bus_accel_max: float = 0.4

    # Max/avg speed ratio below which speed is considered steady
    steady_speed_ratio: float = 1.3

    @classmethod
    def from_settings(cls, user: dict | None = None, expert: dict | None = None) -> "ClassifierThresholds":
        """Apply user and expert overrides (values may arrive as strings) to the defaults.

        User keys: walking_max_speed, cycling_max_speed, flying_min_speed.
        Expert keys: stationary_max_speed, running_vs_cycling_accel,
        cycling_vs_driving_accel, train_min_speed.
        """
        user = user or {}
        expert = expert or {}
        overrides = {}

        if user.get("walking_max_speed") is not None:
            overrides["walking_max"] = float(user["walking_max_speed"])
        if user.get("cycling_max_speed") is not None:
            overrides["cycling_max"] = float(user["cycling_max_speed"])
        if user.get("flying_min_speed") is not None:
            overrides["flying_min"] = float(user["flying_min_speed"])
            overrides["flying_threshold"] = float(user["flying_min_speed"]) + 50

        if expert.get("stationary_max_speed") is not None:
            overrides["stationary_max"] = float(expert["stationary_max_speed"])
        if expert.get("running_vs_cycling_accel") is not None:
            overrides["running_vs_cycling_accel"] = float(expert["running_vs_cycling_accel"])
        if expert.get("cycling_vs_driving_accel") is not None:
            overrides["cycling_vs_driving_accel"] = float(expert["cycling_vs_driving_accel"])
        if expert.get("train_min_speed") is not None:
            overrides["train_min"] = float(expert["train_min_speed"])

        return replace(cls(), **overrides)


DEFAULT_THRESHOLDS = ClassifierThresholds()


def classify(
    avg_speed_kmh: float,
    max_speed_kmh: Optional[float] = None,
    avg_acceleration: Optional[float] = None,
    duration_s: Optional[float] = None,
    thresholds: ClassifierThresholds = DEFAULT_THRESHOLDS,
) -> tuple[TransportMode, Confidence]:
    """Classify one stretch of movement. Pure: equal inputs give equal outputs.

    ``max_speed_kmh`` defaults to the average, ``avg_acceleration`` to 0 (its
    sign is ignored). ``duration_s`` is accepted for callers' convenience but
    does not influence the result.
    """
    avg = avg_speed_kmh or 0.0
    peak = avg if max_speed_kmh is None else max_speed_kmh
    accel = abs(avg_acceleration) if avg_acceleration is not None else 0.0
    t = thresholds
    return _classify_mode(avg, peak, accel, t), _confidence(avg, peak, t)


def _is_stationary(avg: float, t: ClassifierThresholds) -> bool:
    return avg <= t.stationary_max


def _is_flying(avg: float, peak: float, t: ClassifierThresholds) -> bool:
    return avg >= t.flying_min and peak >= t.flying_threshold


def _is_walking(avg: float, t: ClassifierThresholds) -> bool:
    return t.stationary_max < avg <= t.walking_max


def _steady_speed(avg: float, peak: float, t: ClassifierThresholds) -> bool:
    # No per-point variance here; max/avg ratio stands in for it
    if avg == 0:
        return True
    return peak / avg < t.steady_speed_ratio


def _is_train(avg: float, peak: float, accel: float, t: ClassifierThresholds) -> bool:
    if not t.train_min <= avg <= t.train_max:
        return False
    return accel < t.train_accel and _steady_speed(avg, peak, t)


def _regular_stop_pattern() -> bool:
    # Stop detection needs point-level data the classifier never receives,
    # so buses come out as driving.
    return False


def _classify_mode(avg: float, peak: float, accel: float, t: ClassifierThresholds) -> TransportMode:
    if _is_stationary(avg, t):
        return TransportMode.STATIONARY
    if _is_flying(avg, peak, t):
        return TransportMode.FLYING
    if _is_train(avg, peak, accel, t):
        return TransportMode.TRAIN

    if _is_walking(avg, t):
        return TransportMode.WALKING

    if t.walking_max < avg <= t.running_max:
        if accel > t.running_vs_cycling_accel:
            return TransportMode.RUNNING
        return TransportMode.CYCLING

    if t.running_max < avg <= t.cycling_max:
        if accel > t.cycling_vs_driving_accel:
            return TransportMode.DRIVING
        if avg <= t.cycling_max_likely:
            return TransportMode.CYCLING
        return TransportMode.DRIVING

    if t.cycling_max < avg <= t.high_speed_boundary:
        if t.bus_accel_min <= accel <= t.bus_accel_max and _regular_stop_pattern():
            return TransportMode.BUS
        if accel > t.motorcycle_accel:
            return TransportMode.MOTORCYCLE
        return TransportMode.DRIVING

    if t.high_speed_boundary < avg < t.flying_threshold:
        if accel < t.train_accel:
            return TransportMode.TRAIN
        return TransportMode.DRIVING

    return TransportMode.UNKNOWN


def _confidence(avg: float, peak: float, t: ClassifierThresholds) -> Confidence:
    if _is_stationary(avg, t) or _is_flying(avg, peak, t) or _is_walking(avg, t):
        return Confidence.HIGH
    if t.walking_max < avg <= t.cycling_max or t.bus_max < avg < t.flying_threshold:
        return Confidence.LOW
    return Confidence.MEDIUM
