import logging
from typing import Callable, Dict, List, Optional

from memories.cluster.clusters.base import Clusterer, build_cluster_draft
from memories.cluster.schema import ClusterDraft, ClusterParams
from memories.common.models import MediaItem
from memories.utils.geo import centroid, gps_items, haversine_m, item_distance_km, timestamped

logger = logging.getLogger(__name__)

DEFAULT_GROUP = "__default__"

ItemPredicate = Callable[[MediaItem], bool]
GroupKey = Callable[[MediaItem], Optional[str]]
SplitPredicate = Callable[[MediaItem, MediaItem], bool]
SessionPredicate = Callable[[List[MediaItem]], bool]
SessionParams = Callable[[List[MediaItem]], ClusterParams]


def within_radius(radius_m: float) -> SessionPredicate:
    """Session is valid when every GPS member lies within `radius_m` of the GPS centroid."""
    if radius_m <= 0:
        raise ValueError(f"radius_m must be > 0, got {radius_m}")

    def check(members: List[MediaItem]) -> bool:
        located = gps_items(members)
        if not located:
            return True
        center = centroid(located)
        return all(haversine_m(center.lat, center.lon, m.lat, m.lon) <= radius_m for m in located)

    return check


def moved_more_than(meters: float) -> SplitPredicate:
    """Split when two consecutive GPS-tagged shots are more than `meters` apart."""

    def split(previous: MediaItem, current: MediaItem) -> bool:
        if not previous.has_gps or not current.has_gps:
            return False
        return item_distance_km(previous, current) * 1000.0 > meters

    return split


class TimeGapSessionBuilder(Clusterer):
    """
    Splits a chronological stream into sessions separated by time gaps.

    Items are grouped by `group_key` first; inside every group a new session
    starts when the gap to the previous item exceeds `session_gap_seconds` or
    `should_split(previous, current)` is true.
    """

    def __init__(
        self,
        algorithm: str,
        session_gap_seconds: float,
        min_items: int,
        include: Optional[ItemPredicate] = None,
        group_key: Optional[GroupKey] = None,
        should_split: Optional[SplitPredicate] = None,
        is_valid: Optional[SessionPredicate] = None,
        params: Optional[SessionParams] = None,
    ):
        if session_gap_seconds <= 0:
            raise ValueError(f"session_gap_seconds must be > 0, got {session_gap_seconds}")
        if min_items < 1:
            raise ValueError(f"min_items must be >= 1, got {min_items}")
        self.algorithm = algorithm
        self.session_gap_seconds = session_gap_seconds
        self.min_items = min_items
        self.include = include
        self.group_key = group_key or (lambda item: DEFAULT_GROUP)
        self.should_split = should_split
        self.is_valid = is_valid
        self.params = params

    def sessions(self, items: List[MediaItem]) -> List[List[MediaItem]]:
        groups: Dict[str, List[MediaItem]] = {}
        for item in timestamped(items):
            if self.include is not None and not self.include(item):
                continue
            key = self.group_key(item)
            if key is None:
                continue
            groups.setdefault(key, []).append(item)

        sessions = []
        for key, members in groups.items():
            if len(members) < self.min_items:
                continue
            sessions.extend(self._split(members))
        return sessions

    def cluster(self, items: List[MediaItem]) -> List[ClusterDraft]:
        drafts = []
        for session in self.sessions(items):
            params = self.params(session) if self.params is not None else {}
            drafts.append(build_cluster_draft(self.algorithm, session, params))
        logger.debug(f"{self.algorithm}: {len(drafts)} sessions")
        return drafts

    def _split(self, members: List[MediaItem]) -> List[List[MediaItem]]:
        result = []
        current = [members[0]]
        for previous, item in zip(members, members[1:]):
            gap = item.timestamp - previous.timestamp
            if gap > self.session_gap_seconds or (self.should_split is not None and self.should_split(previous, item)):
                self._flush(current, result)
                current = []
            current.append(item)
        self._flush(current, result)
        return result

    def _flush(self, session: List[MediaItem], into: List[List[MediaItem]]) -> None:
        if len(session) < self.min_items:
            return
        if self.is_valid is not None and not self.is_valid(session):
            return
        into.append(session)
