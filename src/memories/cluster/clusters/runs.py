import logging
from datetime import date, timedelta, tzinfo
from typing import Callable, Dict, Iterable, List, Optional

from memories.cluster.clusters.base import Clusterer, build_cluster_draft
from memories.cluster.schema import ClusterDraft, ClusterParams, Run
from memories.common.models import MediaItem
from memories.utils.geo import timestamped

logger = logging.getLogger(__name__)

ItemPredicate = Callable[[MediaItem], bool]
RunPredicate = Callable[[Run], bool]
RunParams = Callable[[Run], ClusterParams]


def build_consecutive_runs(day_keys: Iterable[str]) -> List[List[str]]:
    """Group ISO day keys into runs of literally adjacent calendar dates."""
    runs: List[List[str]] = []
    previous: Optional[date] = None
    for key in sorted(set(day_keys)):
        current = date.fromisoformat(key)
        if previous is not None and current - previous == timedelta(days=1):
            runs[-1].append(key)
        else:
            runs.append([key])
        previous = current
    return runs


def contains_weekend_day(run: Run) -> bool:
    return any(date.fromisoformat(day).isoweekday() >= 6 for day in run.days)


class ConsecutiveRunBuilder(Clusterer):
    """Multi-day runs of adjacent eligible days within one pass over the media."""

    def __init__(
        self,
        algorithm: str,
        min_nights: int,
        max_nights: int,
        min_items_per_day: int = 1,
        min_items_total: int = 1,
        include: Optional[ItemPredicate] = None,
        is_valid: Optional[RunPredicate] = None,
        params: Optional[RunParams] = None,
        timezone: Optional[tzinfo] = None,
    ):
        if min_nights < 0:
            raise ValueError(f"min_nights must be >= 0, got {min_nights}")
        if max_nights < min_nights:
            raise ValueError(f"max_nights ({max_nights}) must be >= min_nights ({min_nights})")
        self.algorithm = algorithm
        self.min_nights = min_nights
        self.max_nights = max_nights
        self.min_items_per_day = max(1, min_items_per_day)
        self.min_items_total = max(1, min_items_total)
        self.include = include
        self.is_valid = is_valid
        self.params = params
        self.timezone = timezone

    def days(self, items: Iterable[MediaItem]) -> Dict[str, List[MediaItem]]:
        days: Dict[str, List[MediaItem]] = {}
        for item in timestamped(items):
            if self.include is not None and not self.include(item):
                continue
            days.setdefault(item.local_date(self.timezone).isoformat(), []).append(item)
        return days

    def runs(self, items: Iterable[MediaItem]) -> List[Run]:
        return self._runs_from_days(self.days(items))

    def cluster(self, items: List[MediaItem]) -> List[ClusterDraft]:
        drafts = []
        for run in self.runs(items):
            params: ClusterParams = {"nights": run.nights}
            if self.params is not None:
                params.update(self.params(run))
            drafts.append(build_cluster_draft(self.algorithm, run.members, params))
        return drafts

    def _runs_from_days(self, days: Dict[str, List[MediaItem]], check_total: bool = True) -> List[Run]:
        eligible = [key for key, members in days.items() if len(members) >= self.min_items_per_day]
        result = []
        for keys in build_consecutive_runs(eligible):
            run = Run(days=keys, members=[m for key in keys for m in days[key]])
            if not self.min_nights <= run.nights <= self.max_nights:
                continue
            if check_total and len(run.members) < self.min_items_total:
                continue
            if self.is_valid is not None and not self.is_valid(run):
                continue
            result.append(run)
        return result


class ConsecutiveRunOverYearsBuilder(ConsecutiveRunBuilder):
    """
    Picks the best consecutive run of every year and merges them into one draft.

    Best run: more members, then more days, then the earliest start date.
    """

    def __init__(self, algorithm: str, min_nights: int, max_nights: int, min_years: int = 2, **kwargs):
        super().__init__(algorithm, min_nights, max_nights, **kwargs)
        if min_years < 1:
            raise ValueError(f"min_years must be >= 1, got {min_years}")
        self.min_years = min_years

    def best_runs(self, items: Iterable[MediaItem]) -> Dict[int, Run]:
        by_year: Dict[int, Dict[str, List[MediaItem]]] = {}
        for key, members in self.days(items).items():
            by_year.setdefault(int(key[:4]), {})[key] = members

        best = {}
        for year in sorted(by_year):
            candidates = self._runs_from_days(by_year[year], check_total=False)
            if candidates:
                best[year] = min(candidates, key=self.run_rank)
        return best

    @staticmethod
    def run_rank(run: Run):
        return (-len(run.members), -len(run.days), run.start)

    def cluster(self, items: List[MediaItem]) -> List[ClusterDraft]:
        best = self.best_runs(items)
        if len(best) < self.min_years:
            return []
        members = [m for year in sorted(best) for m in best[year].members]
        if len(members) < self.min_items_total:
            return []
        params: ClusterParams = {"years": sorted(best)}
        logger.debug(f"{self.algorithm}: merged best runs of {len(best)} years")
        return [build_cluster_draft(self.algorithm, members, params)]
