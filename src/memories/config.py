from dataclasses import dataclass, field
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def _require_positive(name: str, value: float) -> None:
    if value <= 0:
        raise ValueError(f"{name} must be > 0, got {value}")


def _require_timezone(name: str, value: str) -> None:
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"{name} is not a known timezone: {value!r}") from e


@dataclass
class GeoConfig:
    """Density clustering and visit bucketing."""
    radius_km: float = 0.1
    window_seconds: int = 3 * 3600
    min_members: int = 3

    def __post_init__(self):
        _require_positive("radius_km", self.radius_km)
        _require_positive("window_seconds", self.window_seconds)
        _require_positive("min_members", self.min_members)


@dataclass
class HomeConfig:
    lat: Optional[float] = None
    lon: Optional[float] = None
    radius_km: float = 15.0
    timezone: str = "Europe/Berlin"
    night_start_hour: int = 22
    night_end_hour: int = 6
    max_centers: int = 3

    def __post_init__(self):
        if (self.lat is None) != (self.lon is None):
            raise ValueError("home lat and lon must be given together")
        if self.lat is not None and not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"home latitude out of range: {self.lat}")
        if self.lon is not None and not -180.0 <= self.lon <= 180.0:
            raise ValueError(f"home longitude out of range: {self.lon}")
        _require_positive("radius_km", self.radius_km)
        _require_positive("max_centers", self.max_centers)
        for name in ("night_start_hour", "night_end_hour"):
            hour = getattr(self, name)
            if not 0 <= hour <= 23:
                raise ValueError(f"{name} must be within 0..23, got {hour}")
        if self.night_start_hour == self.night_end_hour:
            raise ValueError("night_start_hour and night_end_hour must differ")
        _require_timezone("timezone", self.timezone)

    @property
    def explicit(self) -> bool:
        return self.lat is not None and self.lon is not None


@dataclass
class DaySummaryConfig:
    timezone: str = "Europe/Berlin"
    gps_outlier_radius_km: float = 1.0
    gps_outlier_min_samples: int = 3
    min_items_per_day: int = 3
    staypoint_radius_km: float = 0.25
    staypoint_min_dwell_seconds: int = 20 * 60
    dominant_staypoint_limit: int = 3
    spot_radius_km: float = 1.0
    spot_min_samples: int = 3
    min_leg_seconds: int = 5 * 60
    min_leg_km: float = 10.0
    high_speed_kmh: float = 100.0
    high_speed_travel_km: float = 150.0
    min_away_distance_km: float = 140.0
    important_persons: List[str] = field(default_factory=list)

    def __post_init__(self):
        _require_timezone("timezone", self.timezone)
        for name in (
            "gps_outlier_radius_km",
            "gps_outlier_min_samples",
            "min_items_per_day",
            "staypoint_radius_km",
            "dominant_staypoint_limit",
            "spot_radius_km",
            "spot_min_samples",
            "high_speed_kmh",
            "min_away_distance_km",
        ):
            _require_positive(name, getattr(self, name))
        if self.staypoint_min_dwell_seconds < 0 or self.min_leg_seconds < 0:
            raise ValueError("durations must not be negative")


@dataclass
class RunDetectionConfig:
    transit_ratio_threshold: float = 0.6
    bridge_low_sample_days: bool = True
    extend_airport_days: bool = True

    def __post_init__(self):
        if not 0.0 <= self.transit_ratio_threshold <= 1.0:
            raise ValueError(f"transit_ratio_threshold must be within [0, 1], got {self.transit_ratio_threshold}")


@dataclass
class CoreDayPolicy:
    """Weights and ratios of the per-day core score; all heuristic and overridable."""
    diversity_weight: float = 0.30
    face_weight: float = 0.25
    poi_weight: float = 0.20
    quality_weight: float = 0.25
    diversity_normalizer: float = 6.0
    poi_density_factor: float = 0.5
    poi_density_cap: float = 0.25
    default_quality: float = 0.5
    synthetic_multiplier: float = 0.6
    min_core_ratio: float = 0.6
    target_core_ratio: float = 0.65
    max_core_ratio: float = 0.7

    def __post_init__(self):
        _require_positive("diversity_normalizer", self.diversity_normalizer)
        for name in ("synthetic_multiplier", "min_core_ratio", "target_core_ratio", "max_core_ratio"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")
        if not self.min_core_ratio <= self.max_core_ratio:
            raise ValueError("min_core_ratio must not exceed max_core_ratio")


@dataclass
class VacationConfig:
    min_away_days: int = 2
    min_members: int = 20
    min_members_per_day: int = 4
    max_member_floor: int = 60
    move_day_min_km: float = 35.0
    distance_scale_km: float = 400.0
    transit_day_ratio: float = 0.5
    transit_penalty_ratio: float = 0.3
    transit_penalty: float = 0.1
    work_day_tourism_ratio: float = 0.2
    work_day_penalty: float = 0.1
    vacation_min_score: float = 7.0
    short_trip_min_score: float = 5.5
    weekend_getaway_min_score: float = 5.0
    day_trip_min_score: float = 4.0

    def __post_init__(self):
        _require_positive("min_away_days", self.min_away_days)
        _require_positive("distance_scale_km", self.distance_scale_km)
        if self.min_members < 0 or self.min_members_per_day < 0:
            raise ValueError("member floors must not be negative")
        if self.max_member_floor < self.min_members:
            raise ValueError("max_member_floor must be >= min_members")


@dataclass
class ClusteringConfig:
    geo: GeoConfig = field(default_factory=GeoConfig)
    home: HomeConfig = field(default_factory=HomeConfig)
    days: DaySummaryConfig = field(default_factory=DaySummaryConfig)
    runs: RunDetectionConfig = field(default_factory=RunDetectionConfig)
    core_days: CoreDayPolicy = field(default_factory=CoreDayPolicy)
    vacation: VacationConfig = field(default_factory=VacationConfig)
    use_timezone_finder: bool = True
