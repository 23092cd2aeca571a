import logging
import math
from typing import Dict, List

from memories.cluster.schema import ClassifiedDay, ClusterDraft, DaySummary, HomeDescriptor
from memories.cluster.services.vacation_score import VacationScoreCalculator
from memories.config import CoreDayPolicy
from memories.utils.geo import clamp01, median

logger = logging.getLogger(__name__)

CORE = "core"
PERIPHERAL = "peripheral"

_EPS = 1e-9


class CoreDayScorer:
    """
    Scores the days of a trip and labels the best ~65% of them as core.

    score = w_div * diversity + w_face * face_share + w_poi * poi_boost + w_q * quality_median
    """

    def __init__(self, policy: CoreDayPolicy):
        self.policy = policy

    def score(self, day: DaySummary) -> float:
        p = self.policy
        diversity = min(1.0, (day.staypoint_count + day.spot_count) / p.diversity_normalizer)

        face_share = 0.0
        if day.members:
            face_share = sum(1 for m in day.members if m.has_faces) / len(day.members)
        if face_share == 0.0:
            face_share = day.cohort_presence_ratio

        quality = median([m.quality_score for m in day.members if m.quality_score is not None])
        if quality is None:
            quality = p.default_quality

        poi_boost = clamp01(day.tourism_ratio + min(p.poi_density_cap, day.poi_density * p.poi_density_factor))

        score = (
            p.diversity_weight * diversity
            + p.face_weight * clamp01(face_share)
            + p.poi_weight * poi_boost
            + p.quality_weight * clamp01(quality)
        )
        if day.is_synthetic:
            score *= p.synthetic_multiplier
        return round(clamp01(score), 3)

    def core_bounds(self, total_days: int):
        """(min_core, target_core, max_core) for a trip of `total_days` days."""
        p = self.policy
        min_core = math.ceil(p.min_core_ratio * total_days - _EPS)
        max_core = max(1, math.floor(p.max_core_ratio * total_days + _EPS))
        max_core = min(total_days, max(max_core, min_core))
        target = math.floor(p.target_core_ratio * total_days + 0.5 + _EPS)
        target = min(max(target, min_core), max_core)
        return min_core, target, max_core

    def classify(self, summaries: List[DaySummary]) -> List[ClassifiedDay]:
        if not summaries:
            return []
        scores = [self.score(day) for day in summaries]
        _, target, _ = self.core_bounds(len(summaries))

        ranked = sorted(range(len(summaries)), key=lambda i: -scores[i])
        core = set(ranked[:target])
        return [
            ClassifiedDay(
                summary=day,
                score=scores[i],
                label=CORE if i in core else PERIPHERAL,
                duration_seconds=self._duration(day),
            )
            for i, day in enumerate(summaries)
        ]

    @staticmethod
    def _duration(day: DaySummary) -> int:
        stamps = [m.timestamp for m in day.members if m.taken_at is not None]
        if not stamps:
            return 0
        return max(0, int(max(stamps) - min(stamps)))


class VacationSegmentAssembler:
    """Classifies the days of every away run and hands them to the score calculator."""

    def __init__(self, calculator: VacationScoreCalculator, scorer: CoreDayScorer):
        self.calculator = calculator
        self.scorer = scorer

    def assemble(
        self,
        runs: List[List[str]],
        days: Dict[str, DaySummary],
        home: HomeDescriptor,
    ) -> List[ClusterDraft]:
        drafts = []
        for run in runs:
            summaries = [days[key] for key in run if key in days]
            if not summaries:
                continue
            classified = self.scorer.classify(summaries)
            draft = self.calculator.build_draft(run, classified, home)
            if draft is None:
                logger.debug(f"Run {run[0]}..{run[-1]} rejected by score calculator")
                continue
            drafts.append(draft)
        logger.info(f"Assembled {len(drafts)} vacation drafts from {len(runs)} runs")
        return drafts
