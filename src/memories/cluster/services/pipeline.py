import logging
from typing import List, Optional

from timezonefinder import TimezoneFinder

from memories.cluster.clusters.base import Clusterer
from memories.cluster.clusters.strategies import default_strategies
from memories.cluster.schema import ClusterDraft
from memories.cluster.services.context import Context
from memories.cluster.services.day_summary import DaySummaryBuilder
from memories.cluster.services.home_locator import HomeLocator
from memories.cluster.services.run_detector import VacationRunDetector
from memories.cluster.services.vacation import CoreDayScorer, VacationSegmentAssembler
from memories.cluster.services.vacation_score import VacationScoreCalculator
from memories.common.models import MediaItem
from memories.config import ClusteringConfig, DaySummaryConfig, HomeConfig
from memories.core.config import Settings
from memories.utils.performance import PerformanceMonitor

logger = logging.getLogger(__name__)


class ClusterRunner:
    """Runs clusterers over one media scope and overlays the scope context on every draft."""

    def __init__(self, clusterers: List[Clusterer]):
        self.clusterers = clusterers

    def process(self, items: List[MediaItem]) -> List[ClusterDraft]:
        context = Context.from_items(items)
        drafts: List[ClusterDraft] = []

        for clusterer in self.clusterers:
            if not clusterer.condition(items):
                logger.debug(f"Skipping clusterer: {clusterer.__class__.__name__}")
                continue
            logger.info(f"Applying clusterer: {clusterer.__class__.__name__} ({clusterer.algorithm})")
            with PerformanceMonitor(clusterer.algorithm) as monitor:
                produced = clusterer.cluster(items)
            monitor.report(count=len(items))
            drafts.extend(produced)
            logger.info(f"Resulted in {len(produced)} drafts.")

        for draft in drafts:
            context.apply_to_draft(draft)
        return drafts


class VacationPipeline(Clusterer):
    """home -> day summaries -> away runs -> scored vacation drafts."""

    algorithm = "vacation"

    def __init__(
        self,
        home_locator: HomeLocator,
        day_builder: DaySummaryBuilder,
        run_detector: VacationRunDetector,
        assembler: VacationSegmentAssembler,
    ):
        self.home_locator = home_locator
        self.day_builder = day_builder
        self.run_detector = run_detector
        self.assembler = assembler

    @classmethod
    def from_config(cls, config: ClusteringConfig, finder: Optional[TimezoneFinder] = None) -> "VacationPipeline":
        if finder is None and config.use_timezone_finder:
            finder = TimezoneFinder()
        return cls(
            home_locator=HomeLocator(config.home),
            day_builder=DaySummaryBuilder.from_config(config.days, finder=finder),
            run_detector=VacationRunDetector(config.runs),
            assembler=VacationSegmentAssembler(
                calculator=VacationScoreCalculator(config.vacation),
                scorer=CoreDayScorer(config.core_days),
            ),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "VacationPipeline":
        config = ClusteringConfig(
            home=HomeConfig(
                lat=settings.HOME_LAT,
                lon=settings.HOME_LON,
                radius_km=settings.HOME_RADIUS_KM,
                timezone=settings.TIMEZONE,
            ),
            days=DaySummaryConfig(timezone=settings.TIMEZONE),
            use_timezone_finder=settings.USE_TIMEZONE_FINDER,
        )
        return cls.from_config(config)

    def cluster(self, items: List[MediaItem]) -> List[ClusterDraft]:
        home = self.home_locator.locate(items)
        if home is None:
            logger.info("Vacation detection skipped: no home location.")
            return []

        days = self.day_builder.build(items, home)
        if not days:
            return []
        runs = self.run_detector.detect(days, home)
        return self.assembler.assemble(runs, days, home)


def create_runner(config: ClusteringConfig, finder: Optional[TimezoneFinder] = None) -> ClusterRunner:
    """Default strategy set plus vacation detection for one media scope."""
    clusterers: List[Clusterer] = default_strategies(config.geo, timezone=config.days.timezone)
    clusterers.append(VacationPipeline.from_config(config, finder=finder))
    logger.debug(f"Runner created with {len(clusterers)} clusterers.")
    return ClusterRunner(clusterers)
