from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Dict, List, Optional


@dataclass
class Poi:
    name: Optional[str] = None
    category_key: Optional[str] = None
    category_value: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass
class Location:
    """Resolved place label attached to a media item by an upstream geocoder."""
    cell: Optional[str] = None
    country_code: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    category: Optional[str] = None
    type: Optional[str] = None
    pois: List[Poi] = field(default_factory=list)


@dataclass
class MediaItem:
    id: int
    path: str = ""
    taken_at: Optional[datetime] = None  # timezone-aware capture time
    lat: Optional[float] = None
    lon: Optional[float] = None
    timezone_offset_min: Optional[int] = None
    has_faces: bool = False
    quality_score: Optional[float] = None
    persons: List[str] = field(default_factory=list)
    location: Optional[Location] = None
    geocell: Optional[str] = None
    camera_make: Optional[str] = None
    camera_model: Optional[str] = None
    camera_owner: Optional[str] = None
    camera_serial: Optional[str] = None

    @property
    def timestamp(self) -> Optional[float]:
        if self.taken_at is None:
            return None
        return self.taken_at.timestamp()

    @property
    def has_gps(self) -> bool:
        return self.lat is not None and self.lon is not None

    @property
    def cell(self) -> Optional[str]:
        if self.location is not None and self.location.cell:
            return self.location.cell
        return self.geocell

    @property
    def country_code(self) -> Optional[str]:
        if self.location is None or not self.location.country_code:
            return None
        return self.location.country_code.lower()

    def local_time(self, tz: Optional[tzinfo] = None) -> Optional[datetime]:
        """
        Capture time in local wall-clock terms.

        An explicit `tz` wins, then the recorded offset minutes, then whatever
        zone `taken_at` already carries.
        """
        if self.taken_at is None:
            return None
        if tz is not None:
            return self.taken_at.astimezone(tz)
        if self.timezone_offset_min is not None:
            return self.taken_at.astimezone(timezone(timedelta(minutes=self.timezone_offset_min)))
        return self.taken_at

    def local_date(self, tz: Optional[tzinfo] = None) -> Optional[date]:
        local = self.local_time(tz)
        return local.date() if local is not None else None

    def offset_minutes(self) -> Optional[int]:
        if self.timezone_offset_min is not None:
            return self.timezone_offset_min
        if self.taken_at is None or self.taken_at.utcoffset() is None:
            return None
        return int(self.taken_at.utcoffset().total_seconds() // 60)
