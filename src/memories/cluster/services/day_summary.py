import logging
from typing import List, Optional

from timezonefinder import TimezoneFinder

from memories.cluster.clusters.density import GeoDensityClusterer
from memories.cluster.schema import HomeDescriptor
from memories.cluster.services.stages import (
    AwayFlagStage,
    CohortPresenceStage,
    DayMap,
    DaySummaryStage,
    GpsMetricsStage,
    InitializationStage,
    StaypointStage,
    TransportSpeedStage,
)
from memories.cluster.services.staypoint_detector import StaypointDetector
from memories.cluster.services.timezone_resolver import TimezoneResolver
from memories.common.models import MediaItem
from memories.config import DaySummaryConfig

logger = logging.getLogger(__name__)


class DaySummaryBuilder:
    """
    Turns a media stream into one summary per calendar day.

    The initialization stage builds the day map, then each stage refines it
    in order. Once a stage returns no days the remaining stages are skipped.
    """

    def __init__(self, initialization: InitializationStage, stages: List[DaySummaryStage]):
        self.initialization = initialization
        self.stages = stages

    @classmethod
    def from_config(
        cls, config: DaySummaryConfig, finder: Optional[TimezoneFinder] = None
    ) -> "DaySummaryBuilder":
        resolver = TimezoneResolver(config.timezone, finder=finder)
        stages: List[DaySummaryStage] = [
            GpsMetricsStage(
                outlier_clusterer=GeoDensityClusterer(
                    config.gps_outlier_radius_km, config.gps_outlier_min_samples
                ),
                staypoint_detector=StaypointDetector(
                    radius_km=config.staypoint_radius_km,
                    min_dwell_seconds=config.staypoint_min_dwell_seconds,
                    fallback=GeoDensityClusterer(config.staypoint_radius_km, config.spot_min_samples),
                ),
                spot_clusterer=GeoDensityClusterer(config.spot_radius_km, config.spot_min_samples),
                min_items_per_day=config.min_items_per_day,
            ),
            StaypointStage(limit=config.dominant_staypoint_limit),
            TransportSpeedStage(
                min_leg_seconds=config.min_leg_seconds,
                min_leg_km=config.min_leg_km,
                high_speed_kmh=config.high_speed_kmh,
                high_speed_travel_km=config.high_speed_travel_km,
            ),
            CohortPresenceStage(config.important_persons),
            AwayFlagStage(min_away_distance_km=config.min_away_distance_km),
        ]
        return cls(InitializationStage(config.timezone, resolver), stages)

    def build(self, items: List[MediaItem], home: HomeDescriptor) -> DayMap:
        days = self.initialization.build(items, home)
        for stage in self.stages:
            if not days:
                break
            days = stage.process(days, home)
            logger.debug(f"{stage.__class__.__name__}: {len(days)} days")
        logger.info(f"Built {len(days)} day summaries from {len(items)} media")
        return days
