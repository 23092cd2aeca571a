from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from memories.cluster.schema import ClusterDraft, TimeRange
from memories.common.models import MediaItem
from memories.utils.geo import clamp01, geocell, time_range

PARAM_PREFIX = "context_"


class PeopleAggregator:
    """Weighted people signal: coverage 0.4, unique-person richness 0.35, mention density 0.25."""

    def __init__(self, coverage_weight=0.4, richness_weight=0.35, mention_weight=0.25, richness_target=4):
        self.coverage_weight = coverage_weight
        self.richness_weight = richness_weight
        self.mention_weight = mention_weight
        self.richness_target = richness_target

    def aggregate(self, items: List[MediaItem]) -> Dict[str, Any]:
        if not items:
            return {}
        total = len(items)
        with_people = sum(1 for m in items if m.persons)
        mentions = sum(len(m.persons) for m in items)
        unique = sorted({p for m in items for p in m.persons})
        with_faces = sum(1 for m in items if m.has_faces)

        coverage = clamp01(with_people / total)
        richness = clamp01(len(unique) / self.richness_target)
        mention_density = clamp01(mentions / total)
        score = (
            self.coverage_weight * coverage
            + self.richness_weight * richness
            + self.mention_weight * mention_density
        )
        return {
            "people": round(clamp01(score), 4),
            "people_count": mentions,
            "people_unique": len(unique),
            "people_coverage": round(coverage, 4),
            "people_face_coverage": round(with_faces / total, 4),
        }


class DeviceAggregator:
    @staticmethod
    def descriptor(item: MediaItem) -> Optional[str]:
        parts = [item.camera_make, item.camera_model, item.camera_owner, item.camera_serial]
        if not any(parts):
            return None
        return "|".join((p or "").strip().lower() for p in parts)

    def diversity(self, items: List[MediaItem]) -> Optional[float]:
        """1 - share of the dominant device; None with fewer than two device variants."""
        counts = Counter(d for d in (self.descriptor(m) for m in items) if d is not None)
        if len(counts) <= 1:
            return None
        primary = counts.most_common(1)[0][1]
        return round(1.0 - primary / sum(counts.values()), 4)


@dataclass
class Context:
    """Scope-level metadata merged into every draft of a clustering scope."""
    time_window: Optional[TimeRange] = None
    location_cell: Optional[str] = None
    people: Dict[str, Any] = field(default_factory=dict)
    device_diversity: Optional[float] = None

    @classmethod
    def from_items(
        cls,
        items: List[MediaItem],
        people: Optional[PeopleAggregator] = None,
        devices: Optional[DeviceAggregator] = None,
        cell_precision: int = 5,
    ) -> "Context":
        people = people or PeopleAggregator()
        devices = devices or DeviceAggregator()
        return cls(
            time_window=time_range(items),
            location_cell=cls._majority_cell(items, cell_precision),
            people=people.aggregate(items),
            device_diversity=devices.diversity(items),
        )

    @staticmethod
    def _majority_cell(items: List[MediaItem], precision: int) -> Optional[str]:
        cells = Counter()
        for item in items:
            if item.cell:
                cells[item.cell] += 1
            elif item.has_gps:
                cells[geocell(item.lat, item.lon, precision)] += 1
        if not cells:
            return None
        return min(cells.items(), key=lambda kv: (-kv[1], kv[0]))[0]

    def to_params(self) -> Dict[str, Any]:
        values: Dict[str, Any] = {
            "time_window": self.time_window,
            "location_cell": self.location_cell,
            "device_diversity": self.device_diversity,
        }
        values.update(self.people)
        return {f"{PARAM_PREFIX}{k}": v for k, v in values.items() if v is not None}

    def apply_to_draft(self, draft: ClusterDraft) -> None:
        for key, value in self.to_params().items():
            if key in draft.params:
                continue
            draft.set_param(key, value)
