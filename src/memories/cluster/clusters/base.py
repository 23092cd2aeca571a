from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from memories.cluster.schema import ClusterDraft, ClusterParams
from memories.common.models import MediaItem
from memories.utils.geo import centroid, time_range


class Clusterer(ABC):
    """Abstract base class for a clustering strategy."""

    algorithm: str = "base"

    @abstractmethod
    def cluster(self, items: List[MediaItem]) -> List[ClusterDraft]:
        """
        Applies a clustering strategy to a media scope.

        Args:
            items: The media of one clustering scope, in any order.

        Returns:
            A list of drafts; empty when nothing qualifies.
        """
        raise NotImplementedError()

    @staticmethod
    def condition(items: Iterable[MediaItem]) -> bool:
        """ Determines whether the strategy should be applied to the given media. """
        return True


def build_cluster_draft(
    algorithm: str,
    members: List[MediaItem],
    params: Optional[ClusterParams] = None,
) -> ClusterDraft:
    """Shared draft construction: GPS centroid plus a `time_range` param when members are dated."""
    merged = dict(params or {})
    if "time_range" not in merged:
        window = time_range(members)
        if window is not None:
            merged["time_range"] = window
    return ClusterDraft(
        algorithm=algorithm,
        params=merged,
        centroid=centroid(members),
        members=[item.id for item in members],
    )
