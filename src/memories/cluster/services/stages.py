import logging
from abc import ABC, abstractmethod
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

import numpy as np

from memories.cluster.clusters.density import GeoDensityClusterer
from memories.cluster.schema import Centroid, DaySummary, HomeDescriptor
from memories.cluster.services.poi_classifier import PoiClassifier
from memories.cluster.services.staypoint_detector import StaypointDetector
from memories.cluster.services.timezone_resolver import TimezoneResolver
from memories.common.models import MediaItem
from memories.utils.geo import centroid, clamp01, geodesic_m, haversine_km, path_length_km, timestamped

logger = logging.getLogger(__name__)

DayMap = Dict[str, DaySummary]


def home_distance_km(home: HomeDescriptor, lat: float, lon: float) -> float:
    """Distance to the nearest home centre."""
    distances = [haversine_km(home.lat, home.lon, lat, lon)]
    distances.extend(haversine_km(c.lat, c.lon, lat, lon) for c in home.centers)
    return min(distances)


class DaySummaryStage(ABC):
    """One step of the day-summary pipeline."""

    @abstractmethod
    def process(self, days: DayMap, home: HomeDescriptor) -> DayMap:
        raise NotImplementedError()


class InitializationStage:
    """
    Buckets media into home-timezone calendar days.

    Every date between the first and the last photo gets a summary; dates
    without photos are marked synthetic.
    """

    def __init__(
        self,
        timezone: str,
        resolver: TimezoneResolver,
        poi_classifier: Optional[PoiClassifier] = None,
    ):
        self.timezone = ZoneInfo(timezone)
        self.resolver = resolver
        self.poi_classifier = poi_classifier or PoiClassifier()

    def build(self, items: List[MediaItem], home: HomeDescriptor) -> DayMap:
        dated = timestamped(items)
        if not dated:
            return {}

        grouped: Dict[str, List[MediaItem]] = {}
        for item in dated:
            grouped.setdefault(item.local_date(self.timezone).isoformat(), []).append(item)

        first = date.fromisoformat(min(grouped))
        last = date.fromisoformat(max(grouped))
        days: DayMap = {}
        current = first
        while current <= last:
            key = current.isoformat()
            members = grouped.get(key, [])
            days[key] = self._summary(key, current.isoweekday(), members, home)
            current += timedelta(days=1)

        self._density_scores(days)
        synthetic = sum(1 for d in days.values() if d.is_synthetic)
        logger.debug(f"Initialized {len(days)} days ({synthetic} synthetic)")
        return days

    def _summary(self, key: str, weekday: int, members: List[MediaItem], home: HomeDescriptor) -> DaySummary:
        summary = DaySummary(date=key, weekday=weekday, members=members, photo_count=len(members))
        if not members:
            summary.is_synthetic = True
            return summary

        summary.gps_members = [m for m in members if m.has_gps]
        summary.country_codes = {m.country_code for m in members if m.country_code}
        offsets, offset, zone = self.resolver.resolve_day(members, home.timezone_offset)
        summary.timezone_offsets = offsets
        summary.local_timezone_offset = offset
        summary.local_timezone_identifier = zone

        for member in members:
            location = member.location
            if not self.poi_classifier.is_poi_sample(location):
                continue
            summary.poi_samples += 1
            summary.poi_categories.update(self.poi_classifier.categories(location))
            if self.poi_classifier.is_tourism(location):
                summary.tourism_hits += 1
            if self.poi_classifier.is_transport(location):
                summary.has_airport_poi = True
        if summary.poi_samples:
            summary.tourism_ratio = summary.tourism_hits / summary.poi_samples

        if summary.gps_members:
            summary.first_gps_media = summary.gps_members[0]
            summary.last_gps_media = summary.gps_members[-1]
        return summary

    @staticmethod
    def _density_scores(days: DayMap) -> None:
        counts = np.array([d.photo_count for d in days.values() if not d.is_synthetic], dtype=float)
        mean = float(np.mean(counts))
        std = float(np.std(counts))
        for day in days.values():
            if day.is_synthetic or std < 1e-6:
                continue
            day.density_z = (day.photo_count - mean) / std


class GpsMetricsStage(DaySummaryStage):
    """Outlier filtering, distances from home, travel length, staypoints and spots."""

    def __init__(
        self,
        outlier_clusterer: GeoDensityClusterer,
        staypoint_detector: StaypointDetector,
        spot_clusterer: GeoDensityClusterer,
        min_items_per_day: int = 3,
    ):
        self.outlier_clusterer = outlier_clusterer
        self.staypoint_detector = staypoint_detector
        self.spot_clusterer = spot_clusterer
        self.min_items_per_day = min_items_per_day

    def process(self, days: DayMap, home: HomeDescriptor) -> DayMap:
        for day in days.values():
            if day.is_synthetic:
                continue
            day.sufficient_samples = day.photo_count >= self.min_items_per_day
            if not day.gps_members:
                continue
            gps = self._filter_outliers(day.gps_members)
            day.gps_members = gps
            day.first_gps_media = gps[0]
            day.last_gps_media = gps[-1]

            distances = [home_distance_km(home, m.lat, m.lon) for m in gps]
            day.max_distance_km = max(distances)
            day.avg_distance_km = sum(distances) / len(distances)
            day.travel_km = path_length_km(gps)

            day.staypoints = self.staypoint_detector.detect(gps)
            spots = self.spot_clusterer.cluster(gps)
            day.spot_clusters = spots.clusters
            day.spot_noise = spots.noise
            day.spot_dwell_seconds = sum(
                int(max(m.timestamp for m in c) - min(m.timestamp for m in c)) for c in spots.clusters
            )
        return days

    def _filter_outliers(self, gps: List[MediaItem]) -> List[MediaItem]:
        if len(gps) < self.outlier_clusterer.min_samples:
            return gps
        result = self.outlier_clusterer.cluster(gps)
        if not result.clusters:
            return gps
        kept = {m.id for cluster in result.clusters for m in cluster}
        if len(kept) < len(gps):
            logger.debug(f"Dropped {len(gps) - len(kept)} GPS outliers")
        return [m for m in gps if m.id in kept]


class StaypointStage(DaySummaryStage):
    def __init__(self, limit: int = 3):
        self.limit = limit

    def process(self, days: DayMap, home: HomeDescriptor) -> DayMap:
        for day in days.values():
            day.dominant_staypoints = sorted(
                day.staypoints, key=lambda s: (-s.dwell_seconds, -len(s.member_ids), s.key)
            )[: self.limit]

            if day.gps_members:
                dwelling = {mid for s in day.staypoints for mid in s.member_ids}
                moving = sum(1 for m in day.gps_members if m.id not in dwelling)
                day.transit_ratio = moving / len(day.gps_members)

            if day.staypoints:
                day.poi_density = clamp01(day.poi_samples / len(day.staypoints))
            elif day.photo_count:
                day.poi_density = clamp01(day.poi_samples / day.photo_count)
        return days


class TransportSpeedStage(DaySummaryStage):
    """Leg speeds between consecutive GPS shots; flags high-speed travel days."""

    def __init__(
        self,
        min_leg_seconds: int = 300,
        min_leg_km: float = 10.0,
        high_speed_kmh: float = 100.0,
        high_speed_travel_km: float = 150.0,
    ):
        self.min_leg_seconds = min_leg_seconds
        self.min_leg_km = min_leg_km
        self.high_speed_kmh = high_speed_kmh
        self.high_speed_travel_km = high_speed_travel_km

    def process(self, days: DayMap, home: HomeDescriptor) -> DayMap:
        for day in days.values():
            speeds = []
            for prev, curr in zip(day.gps_members, day.gps_members[1:]):
                dt = curr.timestamp - prev.timestamp
                if dt < self.min_leg_seconds:
                    continue
                km = geodesic_m(prev.lat, prev.lon, curr.lat, curr.lon) / 1000.0
                if km < self.min_leg_km:
                    continue
                speeds.append(km / (dt / 3600.0))
            if speeds:
                day.max_speed_kmh = max(speeds)
                day.avg_speed_kmh = sum(speeds) / len(speeds)
            day.has_high_speed_transit = (
                day.max_speed_kmh >= self.high_speed_kmh or day.travel_km > self.high_speed_travel_km
            )
        return days


class CohortPresenceStage(DaySummaryStage):
    def __init__(self, important_persons: Sequence[str] = ()):
        self.important_persons = sorted(set(important_persons))

    def process(self, days: DayMap, home: HomeDescriptor) -> DayMap:
        if not self.important_persons:
            return days
        wanted = set(self.important_persons)
        for day in days.values():
            seen = {p for m in day.members for p in m.persons} & wanted
            day.cohort_members = sorted(seen)
            day.cohort_presence_ratio = len(seen) / len(wanted)
        return days


class AwayFlagStage(DaySummaryStage):
    """
    Marks days spent away from home.

    A day is away when its base location (longest staypoint, else the GPS
    centroid) lies outside the home radius, or when any shot is farther than
    `min_away_distance_km`. Single non-away days between two away days are
    closed, and synthetic days take the flag of their surrounding days.
    """

    def __init__(self, min_away_distance_km: float = 140.0):
        self.min_away_distance_km = min_away_distance_km

    def process(self, days: DayMap, home: HomeDescriptor) -> DayMap:
        for day in days.values():
            if not day.gps_members:
                continue
            if day.dominant_staypoints:
                top = day.dominant_staypoints[0]
                day.base_location = Centroid(top.lat, top.lon)
            else:
                day.base_location = centroid(day.gps_members)
            base_distance = home_distance_km(home, day.base_location.lat, day.base_location.lon)
            day.base_away = base_distance > home.radius_km
            day.away_by_distance = day.max_distance_km >= self.min_away_distance_km
            day.is_away_candidate = day.base_away or day.away_by_distance

        keys = sorted(days)
        flags = [days[k].is_away_candidate for k in keys]
        for i in range(1, len(keys) - 1):
            if not flags[i] and flags[i - 1] and flags[i + 1]:
                days[keys[i]].is_away_candidate = True

        self._fill_synthetic(days, keys)
        return days

    @staticmethod
    def _fill_synthetic(days: DayMap, keys: List[str]) -> None:
        for i, key in enumerate(keys):
            if not days[key].is_synthetic:
                continue
            before = next((days[k] for k in reversed(keys[:i]) if not days[k].is_synthetic), None)
            after = next((days[k] for k in keys[i + 1:] if not days[k].is_synthetic), None)
            if before is not None and after is not None:
                days[key].is_away_candidate = before.is_away_candidate and after.is_away_candidate
