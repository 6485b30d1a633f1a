"""Provider motion annotations: normalization of raw payloads into typed values.

Location providers attach their own activity vocabularies to each fix:

- Overland: ``properties.motion`` list, ``properties.activity`` or ``properties.action``
- Google: ``activityRecord.probableActivities`` (phone export), ``activities``
  (semantic history) or a bare ``activityType``
- OwnTracks: numeric motion state ``m``

``parse_annotations`` turns such a payload into a list of pydantic models, one per
vocabulary recognized in it, in precedence order. Nothing outside this module
looks at the raw key/value data or the provider vocabularies.
"""

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Annotated, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from samples import SOURCE_UNKNOWN, TransportMode

logger = logging.getLogger(__name__)

M = TransportMode

# ---------------------------------------------------------------------------
# Vocabularies
# ---------------------------------------------------------------------------

OVERLAND_MOTION_MAP = MappingProxyType({
    "driving": M.DRIVING,
    "automotive": M.DRIVING,
    "walking": M.WALKING,
    "running": M.RUNNING,
    "cycling": M.CYCLING,
    "stationary": M.STATIONARY,
})

# "fitness" could be running or cycling too; walking is the safer default
OVERLAND_ACTIVITY_MAP = MappingProxyType({
    "automotive_navigation": M.DRIVING,
    "other_navigation": M.DRIVING,
    "fitness": M.WALKING,
    "other": M.UNKNOWN,
})

OVERLAND_ACTION_MAP = MappingProxyType({
    "visit": M.STATIONARY,
    "arrive": M.STATIONARY,
    "depart": M.STATIONARY,
})

GOOGLE_ACTIVITY_MAP = MappingProxyType({
    "STILL": M.STATIONARY,
    "WALKING": M.WALKING,
    "ON_FOOT": M.WALKING,
    "RUNNING": M.RUNNING,
    "CYCLING": M.CYCLING,
    "IN_VEHICLE": M.DRIVING,
    "IN_ROAD_VEHICLE": M.DRIVING,
    "IN_PASSENGER_VEHICLE": M.DRIVING,
    "IN_BUS": M.BUS,
    "IN_RAIL_VEHICLE": M.TRAIN,
    "IN_SUBWAY": M.TRAIN,
    "IN_TRAM": M.TRAIN,
    "IN_TRAIN": M.TRAIN,
    "IN_FERRY": M.BOAT,
    "SAILING": M.BOAT,
    "FLYING": M.FLYING,
    "IN_AIRPLANE": M.FLYING,
    "MOTORCYCLING": M.MOTORCYCLE,
    "UNKNOWN": M.UNKNOWN,
})

# OwnTracks only distinguishes stopped (0) from moving (1)
OWNTRACKS_MOTION_MAP = MappingProxyType({
    0: M.STATIONARY,
    1: M.UNKNOWN,
})

VOCABULARY_ORDER = ("overland", "google", "owntracks")


def _str_or_none(value):
    return value if isinstance(value, str) else None


# ---------------------------------------------------------------------------
# Typed annotations
# ---------------------------------------------------------------------------

class _Annotation(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class OverlandAnnotation(_Annotation):
    source: Literal["overland"] = "overland"
    motion: tuple[str, ...] = ()
    activity: Optional[str] = None
    action: Optional[str] = None

    @field_validator("motion", mode="before")
    @classmethod
    def _motion_list(cls, value):
        if isinstance(value, (list, tuple)):
            return tuple(str(m) for m in value)
        return ()

    @field_validator("activity", "action", mode="before")
    @classmethod
    def _strings_only(cls, value):
        return _str_or_none(value)

    def mode(self) -> TransportMode:
        if self.motion:
            # Prefer the first moving state; several may be reported at once
            for m in self.motion:
                mapped = OVERLAND_MOTION_MAP.get(m.lower())
                if mapped is not None and mapped is not M.STATIONARY:
                    return mapped
            if any(m.lower() == "stationary" for m in self.motion):
                return M.STATIONARY
        if self.activity is not None:
            return OVERLAND_ACTIVITY_MAP.get(self.activity, M.UNKNOWN)
        if self.action is not None:
            return OVERLAND_ACTION_MAP.get(self.action, M.UNKNOWN)
        return M.UNKNOWN


class GoogleActivity(_Annotation):
    activity_type: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("activityType", "activity_type", "type"),
    )
    probability: float = Field(
        default=0.0, validation_alias=AliasChoices("probability", "confidence"),
    )

    @field_validator("activity_type", mode="before")
    @classmethod
    def _as_string(cls, value):
        return None if value is None else str(value)

    @field_validator("probability", mode="before")
    @classmethod
    def _missing_is_zero(cls, value):
        return 0.0 if value is None else value


class GoogleAnnotation(_Annotation):
    source: Literal["google"] = "google"
    activities: tuple[GoogleActivity, ...] = ()
    activity_type: Optional[str] = None

    def mode(self) -> TransportMode:
        if self.activities:
            ranked = sorted(self.activities, key=lambda a: -a.probability)
            for activity in ranked:
                if activity.activity_type is None:
                    continue
                mapped = GOOGLE_ACTIVITY_MAP.get(activity.activity_type.upper())
                if mapped is not None and mapped is not M.UNKNOWN:
                    return mapped
            return M.UNKNOWN
        if self.activity_type is not None:
            return GOOGLE_ACTIVITY_MAP.get(self.activity_type.upper(), M.UNKNOWN)
        return M.UNKNOWN


class OwnTracksAnnotation(_Annotation):
    source: Literal["owntracks"] = "owntracks"
    motion_state: Optional[int] = None

    def mode(self) -> TransportMode:
        if self.motion_state is None:
            return M.UNKNOWN
        return OWNTRACKS_MOTION_MAP.get(self.motion_state, M.UNKNOWN)


# Closed set of annotation types; an empty list stands for "no annotation"
ProviderAnnotation = Annotated[
    Union[OverlandAnnotation, GoogleAnnotation, OwnTracksAnnotation],
    Field(discriminator="source"),
]


# ---------------------------------------------------------------------------
# Parsing raw payloads
# ---------------------------------------------------------------------------

def _first_present(data: Mapping, *keys):
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _parse_overland(payload: Mapping) -> Optional[OverlandAnnotation]:
    properties = payload.get("properties")
    if not isinstance(properties, Mapping):
        properties = payload
    fields = ("motion", "activity", "action")
    if _first_present(properties, *fields) is None:
        return None
    return OverlandAnnotation.model_validate({key: properties.get(key) for key in fields})


def _google_activities(entries: list) -> tuple:
    return tuple(
        GoogleActivity.model_validate(dict(entry))
        for entry in entries
        if isinstance(entry, Mapping)
    )


def _parse_google(payload: Mapping) -> Optional[GoogleAnnotation]:
    record = _first_present(payload, "activityRecord", "activity_record")
    if isinstance(record, Mapping):
        entries = _first_present(record, "probableActivities", "probable_activities", "activities")
        if isinstance(entries, list) and entries:
            return GoogleAnnotation(activities=_google_activities(entries))

    entries = payload.get("activities")
    if isinstance(entries, list) and entries:
        return GoogleAnnotation(activities=_google_activities(entries))

    activity_type = _first_present(payload, "activityType", "activity_type")
    if activity_type is not None:
        return GoogleAnnotation(activity_type=str(activity_type))
    return None


def _parse_owntracks(payload: Mapping) -> Optional[OwnTracksAnnotation]:
    motion_state = payload.get("m")
    if motion_state is not None:
        return OwnTracksAnnotation.model_validate({"motion_state": motion_state})
    if payload.get("_type") == "location":
        return OwnTracksAnnotation()
    return None


_PARSERS = (
    ("overland", _parse_overland),
    ("google", _parse_google),
    ("owntracks", _parse_owntracks),
)


def parse_annotations(payload) -> list[ProviderAnnotation]:
    """Normalize one provider payload into typed annotations (possibly none).

    Malformed parts are dropped rather than raised, so a bad payload simply
    contributes no motion information.
    """
    if not isinstance(payload, Mapping):
        return []

    found = []
    for vocabulary, parser in _PARSERS:
        try:
            annotation = parser(payload)
        except ValidationError as e:
            logger.debug("Ignoring malformed %s annotation: %s", vocabulary, e)
            continue
        if annotation is not None:
            found.append(annotation)
    return found


def annotations_for(motion_data=None, raw_data=None) -> tuple:
    """Annotations for a stored point, preferring normalized motion data over the raw payload."""
    payload = motion_data if motion_data else raw_data
    return tuple(parse_annotations(payload))


def resolve_mode(annotations: Iterable[ProviderAnnotation]) -> tuple[TransportMode, str]:
    """Pick the mode and provenance label for one sample's annotations.

    The first vocabulary (Overland, then Google, then OwnTracks) that yields a
    known mode wins. Samples without a usable mode keep the label of the first
    recognized vocabulary so their provenance is still reported.
    """
    ordered = sorted(annotations, key=lambda a: VOCABULARY_ORDER.index(a.source))
    for annotation in ordered:
        mode = annotation.mode()
        if mode is not M.UNKNOWN:
            return mode, annotation.source
    if ordered:
        return M.UNKNOWN, ordered[0].source
    return M.UNKNOWN, SOURCE_UNKNOWN
