"""Activity models shared by every provider."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def to_camel(string: str) -> str:
    """Convert snake_case to camelCase."""
    components = string.split("_")
    return components[0] + "".join(x.title() for x in components[1:])


class Provider(str, Enum):
    """Activity sources, declared in trust order (most trusted first)."""

    INTERVALS = "intervals"        # coaching platform, computes training stress
    STRAVA = "strava"              # fitness social platform
    HEALTH_STORE = "health_store"  # on-device health store workouts

    @property
    def priority(self) -> int:
        """Lower value wins when two providers describe the same session."""
        return PROVIDER_PRIORITY.index(self)


PROVIDER_PRIORITY: List[Provider] = [
    Provider.INTERVALS,
    Provider.STRAVA,
    Provider.HEALTH_STORE,
]


class ActivityType(str, Enum):
    """Normalized activity types."""

    RIDE = "ride"
    RUN = "run"
    SWIM = "swim"
    WALK = "walk"
    HIKE = "hike"
    ROW = "row"
    STRENGTH = "strength"
    OTHER = "other"

    @classmethod
    def normalize(cls, raw: Optional[str]) -> "ActivityType":
        """Map a provider-specific type name to a normalized type."""
        if not raw:
            return cls.OTHER
        key = raw.replace("_", "").replace(" ", "").lower()
        return _TYPE_ALIASES.get(key, cls.OTHER)


_TYPE_ALIASES: Dict[str, ActivityType] = {
    "ride": ActivityType.RIDE,
    "virtualride": ActivityType.RIDE,
    "ebikeride": ActivityType.RIDE,
    "gravelride": ActivityType.RIDE,
    "mountainbikeride": ActivityType.RIDE,
    "cycling": ActivityType.RIDE,
    "indoorcycling": ActivityType.RIDE,
    "run": ActivityType.RUN,
    "virtualrun": ActivityType.RUN,
    "trailrun": ActivityType.RUN,
    "running": ActivityType.RUN,
    "swim": ActivityType.SWIM,
    "swimming": ActivityType.SWIM,
    "walk": ActivityType.WALK,
    "walking": ActivityType.WALK,
    "hike": ActivityType.HIKE,
    "hiking": ActivityType.HIKE,
    "rowing": ActivityType.ROW,
    "row": ActivityType.ROW,
    "weighttraining": ActivityType.STRENGTH,
    "strength": ActivityType.STRENGTH,
    "strengthtraining": ActivityType.STRENGTH,
    "traditionalstrengthtraining": ActivityType.STRENGTH,
    "functionalstrengthtraining": ActivityType.STRENGTH,
}


class Activity(BaseModel):
    """One completed exercise session as reported by a single provider.

    ``id`` is only unique within ``provider``. Matching across providers is
    inferred by the deduplication merger.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str
    provider: Provider
    start_time: datetime = Field(..., description="Local start time")
    activity_type: ActivityType = ActivityType.OTHER
    name: Optional[str] = None

    duration_seconds: Optional[float] = Field(None, ge=0)
    distance_meters: Optional[float] = Field(None, ge=0)

    avg_power: Optional[float] = None
    max_power: Optional[float] = None
    avg_hr: Optional[float] = None
    max_hr: Optional[float] = None
    avg_cadence: Optional[float] = None
    elevation_gain: Optional[float] = None

    training_stress: Optional[float] = Field(None, ge=0, description="Provider-computed TSS")
    intensity_factor: Optional[float] = None
    calories: Optional[float] = None

    # Coaching platform fitness snapshot as of this activity
    platform_ctl: Optional[float] = None
    platform_atl: Optional[float] = None

    @property
    def has_computed_metrics(self) -> bool:
        """Whether the provider supplied its own training-stress figures."""
        return self.training_stress is not None or self.intensity_factor is not None

    @property
    def richness(self) -> int:
        """Number of populated optional measurements."""
        fields = (
            self.duration_seconds, self.distance_meters, self.avg_power,
            self.max_power, self.avg_hr, self.max_hr, self.avg_cadence,
            self.elevation_gain, self.training_stress, self.intensity_factor,
            self.calories,
        )
        return sum(1 for value in fields if value is not None)
