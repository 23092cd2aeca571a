"""Concrete strategies composed from the session, run, keyed and visit builders."""
from typing import List, Optional
from zoneinfo import ZoneInfo

from memories.cluster.clusters.base import Clusterer
from memories.cluster.clusters.geotemporal import GeoTemporalBucketer
from memories.cluster.clusters.keyed import KeyedGrouper
from memories.cluster.clusters.runs import ConsecutiveRunOverYearsBuilder, contains_weekend_day
from memories.cluster.clusters.sessions import TimeGapSessionBuilder, moved_more_than, within_radius
from memories.cluster.schema import ClusterParams
from memories.common.models import MediaItem
from memories.config import GeoConfig


def burst_strategy(gap_seconds: int = 90, max_move_m: float = 50.0, min_items: int = 3) -> TimeGapSessionBuilder:
    return TimeGapSessionBuilder(
        algorithm="burst",
        session_gap_seconds=gap_seconds,
        min_items=min_items,
        should_split=moved_more_than(max_move_m),
        is_valid=within_radius(max_move_m * 2),
    )


def weekend_getaways_over_years(min_years: int = 3, timezone: str = "Europe/Berlin") -> ConsecutiveRunOverYearsBuilder:
    return ConsecutiveRunOverYearsBuilder(
        algorithm="weekend_getaways_over_years",
        min_nights=1,
        max_nights=3,
        min_years=min_years,
        min_items_per_day=3,
        min_items_total=12,
        is_valid=contains_weekend_day,
        timezone=ZoneInfo(timezone),
    )


def monthly_highlights(min_members: int = 20, min_days: int = 3, timezone: str = "Europe/Berlin") -> KeyedGrouper:
    tz = ZoneInfo(timezone)

    def month_key(item: MediaItem) -> Optional[str]:
        local = item.local_time(tz)
        return local.strftime("%Y-%m") if local is not None else None

    def params(key: str, members: List[MediaItem]) -> Optional[ClusterParams]:
        days = {m.local_date(tz) for m in members}
        if len(members) < min_members or len(days) < min_days:
            return None
        year, month = key.split("-")
        return {"year": int(year), "month": int(month), "days": len(days)}

    return KeyedGrouper(algorithm="monthly_highlights", key=month_key, params=params)


def significant_place_visits(config: Optional[GeoConfig] = None, timezone: str = "Europe/Berlin") -> GeoTemporalBucketer:
    config = config or GeoConfig()
    return GeoTemporalBucketer(
        radius_m=config.radius_km * 1000.0,
        min_members=config.min_members,
        window_seconds=config.window_seconds,
        timezone=ZoneInfo(timezone),
        algorithm="significant_place",
    )


def default_strategies(config: Optional[GeoConfig] = None, timezone: str = "Europe/Berlin") -> List[Clusterer]:
    return [
        burst_strategy(),
        weekend_getaways_over_years(timezone=timezone),
        monthly_highlights(timezone=timezone),
        significant_place_visits(config, timezone=timezone),
    ]
