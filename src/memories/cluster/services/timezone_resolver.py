import logging
from collections import Counter
from functools import lru_cache
from typing import Iterable, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from timezonefinder import TimezoneFinder

from memories.common.models import MediaItem

logger = logging.getLogger(__name__)


@lru_cache(maxsize=256)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


class TimezoneResolver:
    """
    Resolves the UTC offset and zone name a photo was taken in.

    Explicit offsets recorded on the item win. Otherwise the zone is looked
    up from the coordinates with `TimezoneFinder` when a finder is given,
    falling back to the home timezone.
    """

    def __init__(self, default_timezone: str, finder: Optional[TimezoneFinder] = None):
        self.default_timezone = default_timezone
        self.default_zone = _zone(default_timezone)
        self.finder = finder

    def zone_name(self, item: MediaItem) -> str:
        if self.finder is not None and item.has_gps:
            name = self.finder.timezone_at(lat=item.lat, lng=item.lon)
            if name:
                return name
        return self.default_timezone

    def offset_minutes(self, item: MediaItem) -> Optional[int]:
        if item.timezone_offset_min is not None:
            return item.timezone_offset_min
        if item.taken_at is None:
            return None
        name = self.zone_name(item)
        try:
            zone = _zone(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.debug(f"Unknown zone {name!r} for media {item.id}; using {self.default_timezone}")
            zone = self.default_zone
        return int(item.taken_at.astimezone(zone).utcoffset().total_seconds() // 60)

    def resolve_day(
        self, items: Iterable[MediaItem], home_offset: Optional[int] = None
    ) -> Tuple[Counter, Optional[int], Optional[str]]:
        """
        Majority offset and zone name of one day.

        Ties prefer the home offset, then the smaller offset.
        """
        offsets: Counter = Counter()
        zones: Counter = Counter()
        for item in items:
            offset = self.offset_minutes(item)
            if offset is None:
                continue
            offsets[offset] += 1
            zones[(offset, self.zone_name(item))] += 1

        if not offsets:
            return offsets, None, None

        best = max(offsets.values())
        tied = sorted(o for o, count in offsets.items() if count == best)
        offset = home_offset if home_offset in tied else tied[0]
        named = sorted(
            ((count, name) for (o, name), count in zones.items() if o == offset),
            key=lambda pair: (-pair[0], pair[1]),
        )
        return offsets, offset, named[0][1]
