import logging
from datetime import date
from typing import Dict, List

from memories.cluster.schema import DaySummary, HomeDescriptor
from memories.config import RunDetectionConfig

logger = logging.getLogger(__name__)


def _adjacent(a: str, b: str) -> bool:
    return (date.fromisoformat(b) - date.fromisoformat(a)).days == 1


class VacationRunDetector:
    """
    Finds runs of away days.

    Low-sample days squeezed between two away days are bridged, transit-heavy
    days next to an away day are promoted, and a run may be extended by an
    airport day on either side. Runs made only of synthetic days are dropped.
    """

    def __init__(self, config: RunDetectionConfig):
        self.config = config

    def detect(self, days: Dict[str, DaySummary], home: HomeDescriptor) -> List[List[str]]:
        keys = sorted(days)
        if not keys:
            return []

        flags = [days[k].is_away_candidate for k in keys]
        if self.config.bridge_low_sample_days:
            self._bridge_low_samples(days, keys, flags)
        self._promote_transit(days, keys, flags)

        runs: List[List[str]] = []
        current: List[str] = []
        for i, key in enumerate(keys):
            contiguous = current and _adjacent(current[-1], key)
            if flags[i] and (not current or contiguous):
                current.append(key)
                continue
            if current:
                runs.append(current)
            current = [key] if flags[i] else []
        if current:
            runs.append(current)

        runs = [run for run in runs if any(not days[k].is_synthetic for k in run)]
        if self.config.extend_airport_days:
            runs = [self._extend_airport(run, days, flags, keys) for run in runs]

        logger.info(f"Detected {len(runs)} away runs over {len(keys)} days")
        return runs

    @staticmethod
    def _bridge_low_samples(days: Dict[str, DaySummary], keys: List[str], flags: List[bool]) -> None:
        before = list(flags)
        for i in range(1, len(keys) - 1):
            day = days[keys[i]]
            if before[i] or day.sufficient_samples:
                continue
            if before[i - 1] and before[i + 1]:
                flags[i] = True

    def _promote_transit(self, days: Dict[str, DaySummary], keys: List[str], flags: List[bool]) -> None:
        before = list(flags)
        for i, key in enumerate(keys):
            day = days[key]
            if before[i] or day.is_synthetic:
                continue
            transit = day.has_high_speed_transit or day.transit_ratio >= self.config.transit_ratio_threshold
            if not transit or not day.gps_members:
                continue
            left = i > 0 and before[i - 1]
            right = i < len(keys) - 1 and before[i + 1]
            if left or right:
                flags[i] = True

    @staticmethod
    def _extend_airport(
        run: List[str], days: Dict[str, DaySummary], flags: List[bool], keys: List[str]
    ) -> List[str]:
        index = {k: i for i, k in enumerate(keys)}
        start, end = index[run[0]], index[run[-1]]
        extended = list(run)
        if start > 0 and not flags[start - 1] and days[keys[start - 1]].has_airport_poi:
            extended.insert(0, keys[start - 1])
        if end < len(keys) - 1 and not flags[end + 1] and days[keys[end + 1]].has_airport_poi:
            extended.append(keys[end + 1])
        return extended
