import logging
from typing import List, Optional

from memories.cluster.clusters.density import GeoDensityClusterer
from memories.cluster.schema import Staypoint
from memories.common.models import MediaItem
from memories.utils.geo import centroid, item_distance_km

logger = logging.getLogger(__name__)


class StaypointDetector:
    """
    Finds places where the user dwelled.

    Walks the day chronologically and grows a window while shots stay within
    `radius_km` of the window's first shot; windows spanning at least
    `min_dwell_seconds` become staypoints. When the walk finds nothing, the
    density clusters of the day are used instead.
    """

    def __init__(
        self,
        radius_km: float = 0.25,
        min_dwell_seconds: int = 20 * 60,
        fallback: Optional[GeoDensityClusterer] = None,
    ):
        if radius_km <= 0:
            raise ValueError(f"radius_km must be > 0, got {radius_km}")
        self.radius_km = radius_km
        self.min_dwell_seconds = min_dwell_seconds
        self.fallback = fallback

    def detect(self, items: List[MediaItem]) -> List[Staypoint]:
        ordered = sorted(
            (item for item in items if item.has_gps and item.taken_at is not None),
            key=lambda item: item.timestamp,
        )
        staypoints = []
        i = 0
        while i < len(ordered):
            j = i + 1
            while j < len(ordered) and item_distance_km(ordered[i], ordered[j]) <= self.radius_km:
                j += 1
            window = ordered[i:j]
            if window[-1].timestamp - window[0].timestamp >= self.min_dwell_seconds:
                staypoints.append(self._staypoint(window))
                i = j
            else:
                i += 1

        if not staypoints and self.fallback is not None and len(ordered) > 1:
            staypoints = [self._staypoint(cluster) for cluster in self.fallback.cluster(ordered).clusters]
            if staypoints:
                logger.debug(f"Staypoints from density fallback: {len(staypoints)}")
        return staypoints

    @staticmethod
    def _staypoint(members: List[MediaItem]) -> Staypoint:
        center = centroid(members)
        start = int(min(m.timestamp for m in members))
        end = int(max(m.timestamp for m in members))
        return Staypoint(
            lat=center.lat,
            lon=center.lon,
            start=start,
            end=end,
            dwell_seconds=end - start,
            member_ids=tuple(m.id for m in members),
        )
