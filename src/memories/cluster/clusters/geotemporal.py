import logging
from collections import defaultdict
from datetime import tzinfo
from typing import Dict, List, Optional

from memories.cluster.clusters.base import Clusterer, build_cluster_draft
from memories.cluster.clusters.density import GeoDensityClusterer
from memories.cluster.schema import ClusterDraft
from memories.common.models import MediaItem
from memories.utils.geo import item_distance_km

logger = logging.getLogger(__name__)


class GeoTemporalBucketer(Clusterer):
    """
    Per-day visit buckets built from a density pass followed by a sliding
    time-window pass.

    Density clusters are only split by time. Density noise goes through the
    same window pass with an extra radius check against the previous item of
    the window, so a sparse trail of shots still groups when it is close in
    both time and space.
    """

    algorithm = "geo_temporal_visit"

    def __init__(
        self,
        radius_m: float,
        min_members: int,
        window_seconds: int,
        timezone: Optional[tzinfo] = None,
        algorithm: Optional[str] = None,
    ):
        if radius_m <= 0:
            raise ValueError(f"radius_m must be > 0, got {radius_m}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be > 0, got {window_seconds}")
        self.radius_m = radius_m
        self.min_members = max(1, min_members)
        self.window_seconds = window_seconds
        self.timezone = timezone
        if algorithm:
            self.algorithm = algorithm
        self.density = GeoDensityClusterer(radius_km=radius_m / 1000.0, min_samples=self.min_members)

    def bucket(self, items: List[MediaItem]) -> List[List[MediaItem]]:
        days: Dict[str, List[MediaItem]] = defaultdict(list)
        for item in items:
            if item.taken_at is None or not item.has_gps:
                continue
            days[item.local_date(self.timezone).isoformat()].append(item)

        buckets: List[List[MediaItem]] = []
        for day in sorted(days):
            result = self.density.cluster(days[day])
            for cluster in result.clusters:
                buckets.extend(self._window_buckets(cluster, enforce_distance=False))
            buckets.extend(self._window_buckets(result.noise, enforce_distance=True))

        buckets = [b for b in buckets if len(b) >= self.min_members]
        buckets.sort(key=lambda b: b[0].timestamp)
        logger.debug(f"{len(buckets)} visit buckets over {len(days)} days")
        return buckets

    def cluster(self, items: List[MediaItem]) -> List[ClusterDraft]:
        return [build_cluster_draft(self.algorithm, bucket) for bucket in self.bucket(items)]

    def _window_buckets(self, items: List[MediaItem], enforce_distance: bool) -> List[List[MediaItem]]:
        ordered = sorted(items, key=lambda item: item.timestamp)
        buckets = []
        current: List[MediaItem] = []
        for item in ordered:
            if current:
                too_late = item.timestamp - current[0].timestamp > self.window_seconds
                too_far = enforce_distance and item_distance_km(current[-1], item) * 1000.0 > self.radius_m
                if too_late or too_far:
                    buckets.append(current)
                    current = []
            current.append(item)
        if current:
            buckets.append(current)
        return buckets
