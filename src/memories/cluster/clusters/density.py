import logging
from typing import Dict, Iterable, List, NamedTuple

import numpy as np
from sklearn.cluster import DBSCAN

from memories.common.models import MediaItem
from memories.utils.geo import EARTH_RADIUS_KM

logger = logging.getLogger(__name__)


class DensityResult(NamedTuple):
    clusters: List[List[MediaItem]]
    noise: List[MediaItem]


class GeoDensityClusterer:
    """
    DBSCAN over great-circle distance.

    A point is core when at least `min_samples` points (itself included) lie
    within `radius_km`. Clusters are numbered in the order their first core
    point appears in the input, and members keep input order. Items without
    GPS are ignored entirely.
    """

    def __init__(self, radius_km: float, min_samples: int):
        if radius_km <= 0:
            raise ValueError(f"radius_km must be > 0, got {radius_km}")
        if min_samples < 1:
            raise ValueError(f"min_samples must be >= 1, got {min_samples}")
        self.radius_km = radius_km
        self.min_samples = min_samples

    def cluster(self, items: Iterable[MediaItem]) -> DensityResult:
        points = [item for item in items if item.has_gps]
        if not points:
            return DensityResult([], [])

        coords = np.radians([[p.lat, p.lon] for p in points])
        labels = DBSCAN(
            eps=self.radius_km / EARTH_RADIUS_KM,
            min_samples=self.min_samples,
            metric="haversine",
            algorithm="ball_tree",
        ).fit_predict(coords)

        result = self._group_by_labels(points, labels)
        logger.debug(
            f"Density pass: {len(points)} points -> {len(result.clusters)} clusters, {len(result.noise)} noise"
        )
        return result

    def _group_by_labels(self, points: List[MediaItem], labels: np.ndarray) -> DensityResult:
        clusters: Dict[int, List[MediaItem]] = {}
        noise = []
        for p, label in zip(points, labels):
            if label == -1:
                noise.append(p)
            else:
                clusters.setdefault(int(label), []).append(p)

        ordered = [clusters[label] for label in sorted(clusters)]
        return DensityResult(ordered, noise)
