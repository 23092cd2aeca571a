import logging
import math
from datetime import date
from typing import List, Optional

from memories.cluster.clusters.base import build_cluster_draft
from memories.cluster.schema import ClassifiedDay, ClusterDraft, ClusterParams, HomeDescriptor
from memories.config import VacationConfig
from memories.utils.geo import clamp01, median

logger = logging.getLogger(__name__)

ALGORITHM = "vacation"

SCORE_WEIGHTS = {
    "quality": 0.28,
    "tourism": 0.18,
    "away_days": 0.16,
    "distance": 0.14,
    "people": 0.10,
    "poi_diversity": 0.08,
}


class VacationScoreCalculator:
    """
    Aggregates a classified away run into a `vacation` draft.

    Returns None for runs that are not worth a memory: no reliable day, no
    GPS at all, too few away days, too few members, or a score below the
    threshold of every classification the run could fall back to.
    """

    def __init__(self, config: VacationConfig):
        self.config = config

    def build_draft(
        self, run: List[str], days: List[ClassifiedDay], home: HomeDescriptor
    ) -> Optional[ClusterDraft]:
        if not days:
            return None
        summaries = [d.summary for d in days]

        seen = set()
        members = []
        for summary in summaries:
            for item in summary.members:
                if item.id not in seen:
                    seen.add(item.id)
                    members.append(item)
        members.sort(key=lambda m: m.timestamp)

        if not any(s.gps_members for s in summaries):
            return None
        reliable_days = sum(1 for s in summaries if s.sufficient_samples)
        if reliable_days == 0:
            return None

        away_days = self.count_bridged_away_days(days)
        if away_days < self.config.min_away_days:
            return None
        floor = self.minimum_member_floor(away_days)
        if len(members) < floor:
            logger.debug(f"Run {run[0]}: {len(members)} members below floor {floor}")
            return None

        gps_days = [s for s in summaries if s.gps_members]
        max_distance = max(s.max_distance_km for s in gps_days)
        avg_distance = sum(s.avg_distance_km for s in gps_days) / len(gps_days)
        countries = sorted({c for s in summaries for c in s.country_codes})
        timezones = sorted({s.local_timezone_offset for s in summaries if s.local_timezone_offset is not None})
        poi_samples = sum(s.poi_samples for s in summaries)
        tourism_hits = sum(s.tourism_hits for s in summaries)
        tourism_ratio = tourism_hits / poi_samples if poi_samples else 0.0
        spot_total = sum(s.spot_count for s in summaries)
        move_days = sum(1 for s in summaries if s.travel_km > self.config.move_day_min_km)

        quality = median([m.quality_score for m in members if m.quality_score is not None])
        people = sum(1 for m in members if m.has_faces) / len(members)
        if people == 0.0:
            people = sum(s.cohort_presence_ratio for s in summaries) / len(summaries)
        categories = {c for s in summaries for c in s.poi_categories}

        components = {
            "quality": clamp01(quality if quality is not None else 0.5),
            "tourism": clamp01(tourism_ratio + min(0.2, spot_total * 0.02)),
            "away_days": min(1.0, away_days / 5.0),
            "distance": self.normalize_distance(max_distance),
            "people": clamp01(people),
            "poi_diversity": min(1.0, len(categories) / 6.0),
        }
        weighted = sum(SCORE_WEIGHTS[k] * v for k, v in components.items())

        transit_days = sum(1 for s in summaries if s.transit_ratio > self.config.transit_day_ratio)
        if transit_days / len(summaries) > self.config.transit_penalty_ratio:
            weighted -= self.config.transit_penalty
        work_days = sum(
            1 for s in summaries
            if 1 <= s.weekday <= 5 and not s.is_synthetic and s.tourism_ratio < self.config.work_day_tourism_ratio
        )
        if work_days == len(summaries):
            weighted -= self.config.work_day_penalty
        score = round(clamp01(weighted) * 10.0, 2)

        nights = len(run) - 1
        classification = self.classify_trip(nights, away_days, len(summaries), max_distance)
        classification = self.apply_score_thresholds(classification, score, run)
        if classification is None:
            logger.debug(f"Run {run[0]}: score {score} below thresholds")
            return None

        core = [d for d in days if d.is_core]
        params: ClusterParams = {
            "classification": classification,
            "score": score,
            "score_components": {k: round(v, 3) for k, v in components.items()},
            "nights": nights,
            "away_days": away_days,
            "total_days": len(summaries),
            "max_distance_km": round(max_distance, 3),
            "avg_distance_km": round(avg_distance, 3),
            "distance_km": round(max_distance, 3),
            "countries": countries,
            "timezones": timezones,
            "country_change": len(countries) > 1 or bool(home.country and any(c != home.country for c in countries)),
            "timezone_change": len(timezones) > 1 or (
                home.timezone_offset is not None and any(t != home.timezone_offset for t in timezones)
            ),
            "tourism_ratio": round(tourism_ratio, 3),
            "move_days": move_days,
            "airport_transfer": any(s.has_airport_poi for s in summaries),
            "high_speed_transit": any(s.has_high_speed_transit for s in summaries),
            "spot_clusters_total": spot_total,
            "core_day_count": len(core),
            "peripheral_day_count": len(days) - len(core),
            "core_day_ratio": round(len(core) / len(days), 3),
            "day_segments": {
                d.date: {
                    "score": d.score,
                    "category": d.label,
                    "duration": d.duration_seconds,
                    "is_synthetic": d.summary.is_synthetic,
                    "members": d.summary.photo_count,
                }
                for d in days
            },
        }
        return build_cluster_draft(ALGORITHM, members, params)

    @staticmethod
    def count_bridged_away_days(days: List[ClassifiedDay]) -> int:
        """Away days, counting synthetic gap days enclosed by away days."""
        flags = [d.summary.is_away_candidate and not d.summary.is_synthetic for d in days]
        count = sum(flags)
        for i, d in enumerate(days):
            if not d.summary.is_synthetic:
                continue
            if any(flags[:i]) and any(flags[i + 1:]):
                count += 1
        return count

    def minimum_member_floor(self, away_days: int) -> int:
        scaled = away_days * self.config.min_members_per_day
        return min(self.config.max_member_floor, max(self.config.min_members, scaled))

    def normalize_distance(self, distance_km: float) -> float:
        return 1.0 - math.exp(-max(0.0, distance_km) / self.config.distance_scale_km)

    @staticmethod
    def classify_trip(nights: int, raw_days: int, effective_days: int, max_distance_km: float) -> str:
        if effective_days <= 1 or nights == 0:
            return "day_trip"
        if raw_days <= 2 and effective_days <= 3:
            return "short_trip"
        if nights >= 4 or effective_days >= 5 or (max_distance_km >= 1500.0 and nights >= 2):
            return "vacation"
        return "short_trip" if nights <= 3 else "vacation"

    def apply_score_thresholds(self, classification: str, score: float, run: List[str]) -> Optional[str]:
        c = self.config
        if classification == "vacation":
            if score >= c.vacation_min_score:
                return "vacation"
            classification = "short_trip"
        if classification == "short_trip":
            if score >= c.short_trip_min_score:
                return "short_trip"
            touches_weekend = any(date.fromisoformat(k).isoweekday() >= 6 for k in run)
            if touches_weekend and len(run) <= 3 and score >= c.weekend_getaway_min_score:
                return "weekend_getaway"
            return None
        if classification == "day_trip" and score >= c.day_trip_min_score:
            return "day_trip"
        return None
