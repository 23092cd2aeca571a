import logging
from collections import Counter
from functools import lru_cache
from importlib import resources
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from memories.cluster.schema import HomeCenter, HomeDescriptor
from memories.common.models import MediaItem
from memories.config import HomeConfig
from memories.utils.geo import centroid, haversine_km, timestamped

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _zone_countries() -> Dict[str, str]:
    """Zone name -> lowercase ISO country code, read from the tz database zone.tab."""
    table = resources.files("tzdata").joinpath("zoneinfo", "zone.tab").read_text(encoding="utf-8")
    countries = {}
    for line in table.splitlines():
        if not line or line.startswith("#"):
            continue
        parts = line.split("\t")
        if len(parts) >= 3:
            countries[parts[2]] = parts[0].lower()
    return countries


def country_for_timezone(name: str) -> Optional[str]:
    return _zone_countries().get(name)


def _majority(values: List[Any]) -> Any:
    counts = Counter(v for v in values if v is not None)
    if not counts:
        return None
    return counts.most_common(1)[0][0]


class HomeLocator:
    """
    Infers where the user lives from night-time GPS photos.

    Night photos are bucketed by place identity (geocell, then country, then
    coordinates rounded to three decimals); the largest bucket is home and
    the next largest ones become secondary centres.
    """

    def __init__(self, config: HomeConfig):
        self.config = config
        self.timezone = ZoneInfo(config.timezone)

    def locate(self, items: List[MediaItem]) -> Optional[HomeDescriptor]:
        if self.config.explicit:
            return self._explicit_home(items)

        night = [
            item for item in timestamped(items)
            if item.has_gps and self._is_night(item)
        ]
        if not night:
            logger.info("No night-time GPS media; home location undetermined.")
            return None

        buckets: Dict[str, List[MediaItem]] = {}
        for item in night:
            buckets.setdefault(self._place_key(item), []).append(item)

        ranked = sorted(buckets.items(), key=lambda kv: (-len(kv[1]), -self._dwell(kv[1]), kv[0]))
        centers = [self._center(members) for _, members in ranked[: self.config.max_centers]]
        home = centers[0]
        logger.info(
            f"Home inferred from {len(ranked[0][1])} of {len(night)} night photos "
            f"at ({home.lat:.4f}, {home.lon:.4f}), radius {home.radius_km:.2f}km"
        )
        return HomeDescriptor(
            lat=home.lat,
            lon=home.lon,
            radius_km=home.radius_km,
            country=home.country,
            timezone_offset=home.timezone_offset,
            centers=centers,
        )

    def _explicit_home(self, items: List[MediaItem]) -> HomeDescriptor:
        dated = timestamped(items)
        offset = None
        if dated:
            reference = dated[-1].taken_at.astimezone(self.timezone)
            offset = int(reference.utcoffset().total_seconds() // 60)
        country = country_for_timezone(self.config.timezone)
        center = HomeCenter(
            lat=self.config.lat,
            lon=self.config.lon,
            radius_km=self.config.radius_km,
            country=country,
            timezone_offset=offset,
        )
        return HomeDescriptor(
            lat=self.config.lat,
            lon=self.config.lon,
            radius_km=self.config.radius_km,
            country=country,
            timezone_offset=offset,
            centers=[center],
        )

    def _is_night(self, item: MediaItem) -> bool:
        local = item.local_time(None if item.timezone_offset_min is not None else self.timezone)
        start, end = self.config.night_start_hour, self.config.night_end_hour
        if start > end:
            return local.hour >= start or local.hour < end
        return start <= local.hour < end

    @staticmethod
    def _place_key(item: MediaItem) -> str:
        if item.cell:
            return f"cell:{item.cell}"
        if item.country_code:
            return f"country:{item.country_code}"
        return f"coord:{round(item.lat, 3):.3f}:{round(item.lon, 3):.3f}"

    @staticmethod
    def _dwell(members: List[MediaItem]) -> int:
        stamps = [m.timestamp for m in members]
        return int(max(stamps) - min(stamps))

    def _center(self, members: List[MediaItem]) -> HomeCenter:
        center = centroid(members)
        spread = max(haversine_km(center.lat, center.lon, m.lat, m.lon) for m in members)
        stamps = [int(m.timestamp) for m in members]
        return HomeCenter(
            lat=center.lat,
            lon=center.lon,
            radius_km=max(self.config.radius_km, spread),
            member_count=len(members),
            dwell_seconds=self._dwell(members),
            country=_majority([m.country_code for m in members]),
            timezone_offset=_majority([m.offset_minutes() for m in members]),
            valid_from=min(stamps),
            valid_until=max(stamps),
        )
