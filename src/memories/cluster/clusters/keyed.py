from typing import Callable, Dict, List, Optional

from memories.cluster.clusters.base import Clusterer, build_cluster_draft
from memories.cluster.schema import ClusterDraft, ClusterParams
from memories.common.models import MediaItem

KeyFunction = Callable[[MediaItem], Optional[str]]
GroupParams = Callable[[str, List[MediaItem]], Optional[ClusterParams]]


class KeyedGrouper(Clusterer):
    """
    One draft per derived key.

    `params` doubles as the eligibility gate: returning None drops the group.
    Groups are emitted in key order.
    """

    def __init__(
        self,
        algorithm: str,
        key: KeyFunction,
        params: Optional[GroupParams] = None,
        include: Optional[Callable[[MediaItem], bool]] = None,
    ):
        self.algorithm = algorithm
        self.key = key
        self.params = params or (lambda group_key, members: {})
        self.include = include

    def groups(self, items: List[MediaItem]) -> Dict[str, List[MediaItem]]:
        groups: Dict[str, List[MediaItem]] = {}
        for item in items:
            if self.include is not None and not self.include(item):
                continue
            key = self.key(item)
            if key is None:
                continue
            groups.setdefault(key, []).append(item)
        return groups

    def cluster(self, items: List[MediaItem]) -> List[ClusterDraft]:
        drafts = []
        groups = self.groups(items)
        for key in sorted(groups):
            params = self.params(key, groups[key])
            if params is None:
                continue
            drafts.append(build_cluster_draft(self.algorithm, groups[key], params))
        return drafts
