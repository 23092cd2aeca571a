from collections import Counter
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple, TypedDict

from pydantic import BaseModel, ConfigDict, Field, model_validator

from memories.common.models import MediaItem

TimeRange = TypedDict("TimeRange", {"from": int, "to": int})


class ClusterParams(TypedDict, total=False):
    """
    Well-known draft parameter keys.

    Drafts accept any additional key; these are the ones produced by the
    clustering framework and the vacation pipeline.
    """
    time_range: TimeRange
    nights: int
    years: List[int]
    year: int
    month: int
    days: int
    distance_km: float
    classification: str
    score: float
    score_components: Dict[str, float]
    away_days: int
    total_days: int
    max_distance_km: float
    avg_distance_km: float
    countries: List[str]
    timezones: List[int]
    country_change: bool
    timezone_change: bool
    tourism_ratio: float
    move_days: int
    airport_transfer: bool
    high_speed_transit: bool
    spot_clusters_total: int
    core_day_count: int
    peripheral_day_count: int
    core_day_ratio: float
    day_segments: Dict[str, Dict[str, Any]]


@dataclass(frozen=True)
class Centroid:
    lat: float
    lon: float

    def as_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lon": self.lon}


class ClusterDraft:
    """
    Output record of every clustering operation.

    Members are de-duplicated on construction; the only mutation allowed
    afterwards is `set_param`.
    """

    __slots__ = ("_algorithm", "_params", "_centroid", "_members")

    def __init__(
        self,
        algorithm: str,
        params: Mapping[str, Any],
        centroid: Centroid,
        members: Iterable[int],
    ):
        if not algorithm:
            raise ValueError("algorithm must be a non-empty string")
        self._algorithm = algorithm
        self._params: Dict[str, Any] = dict(params)
        self._centroid = centroid
        self._members: Tuple[int, ...] = tuple(dict.fromkeys(members))

    @property
    def algorithm(self) -> str:
        return self._algorithm

    @property
    def params(self) -> Mapping[str, Any]:
        return MappingProxyType(self._params)

    @property
    def centroid(self) -> Centroid:
        return self._centroid

    @property
    def members(self) -> Tuple[int, ...]:
        return self._members

    def set_param(self, key: str, value: Any) -> None:
        self._params[key] = value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "algorithm": self._algorithm,
            "params": dict(self._params),
            "centroid": self._centroid.as_dict(),
            "members": list(self._members),
        }

    def __repr__(self) -> str:
        return f"ClusterDraft(algorithm={self._algorithm!r}, members={len(self._members)})"


class HomeCenter(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)
    radius_km: float = Field(gt=0.0)
    member_count: int = Field(0, ge=0)
    dwell_seconds: int = Field(0, ge=0)
    country: Optional[str] = None
    timezone_offset: Optional[int] = None
    valid_from: Optional[int] = None
    valid_until: Optional[int] = None


class HomeDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)
    radius_km: float = Field(gt=0.0, description="Home radius in kilometres")
    country: Optional[str] = None
    timezone_offset: Optional[int] = Field(None, description="UTC offset in minutes")
    centers: List[HomeCenter] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_window(self) -> "HomeDescriptor":
        for center in self.centers:
            if (
                center.valid_from is not None
                and center.valid_until is not None
                and center.valid_until < center.valid_from
            ):
                raise ValueError("home center valid_until precedes valid_from")
        return self


class Staypoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)
    start: int
    end: int
    dwell_seconds: int = Field(ge=0)
    member_ids: Tuple[int, ...] = ()

    @property
    def key(self) -> str:
        return f"{self.lat:.5f}:{self.lon:.5f}"


@dataclass
class DaySummary:
    """
    Per calendar day statistics (home-timezone local date).

    Stages fill the record in place while the summary pipeline runs; it is
    treated as read-only once the pipeline returns.
    """
    date: str
    weekday: int
    members: List[MediaItem] = field(default_factory=list)
    gps_members: List[MediaItem] = field(default_factory=list)
    photo_count: int = 0
    is_synthetic: bool = False

    max_distance_km: float = 0.0
    avg_distance_km: float = 0.0
    travel_km: float = 0.0
    max_speed_kmh: float = 0.0
    avg_speed_kmh: float = 0.0
    has_high_speed_transit: bool = False

    country_codes: Set[str] = field(default_factory=set)
    timezone_offsets: Counter = field(default_factory=Counter)
    local_timezone_identifier: Optional[str] = None
    local_timezone_offset: Optional[int] = None

    poi_samples: int = 0
    tourism_hits: int = 0
    tourism_ratio: float = 0.0
    poi_categories: Set[str] = field(default_factory=set)
    has_airport_poi: bool = False
    poi_density: float = 0.0

    density_z: float = 0.0
    sufficient_samples: bool = False

    staypoints: List[Staypoint] = field(default_factory=list)
    dominant_staypoints: List[Staypoint] = field(default_factory=list)
    transit_ratio: float = 0.0
    spot_clusters: List[List[MediaItem]] = field(default_factory=list)
    spot_noise: List[MediaItem] = field(default_factory=list)
    spot_dwell_seconds: int = 0

    cohort_presence_ratio: float = 0.0
    cohort_members: List[str] = field(default_factory=list)

    base_location: Optional[Centroid] = None
    base_away: bool = False
    away_by_distance: bool = False
    is_away_candidate: bool = False
    first_gps_media: Optional[MediaItem] = None
    last_gps_media: Optional[MediaItem] = None

    @property
    def spot_count(self) -> int:
        return len(self.spot_clusters)

    @property
    def staypoint_count(self) -> int:
        return len(self.staypoints)


@dataclass
class Run:
    """Consecutive calendar-day keys and the members that fall on them."""
    days: List[str]
    members: List[MediaItem]

    @property
    def nights(self) -> int:
        return len(self.days) - 1

    @property
    def start(self) -> str:
        return self.days[0]


@dataclass
class ClassifiedDay:
    summary: DaySummary
    score: float
    label: str
    duration_seconds: int

    @property
    def date(self) -> str:
        return self.summary.date

    @property
    def is_core(self) -> bool:
        return self.label == "core"
