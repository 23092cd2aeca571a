from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from memories.cluster.schema import DaySummary, HomeDescriptor, Staypoint
from memories.cluster.services.day_summary import DaySummaryBuilder
from memories.cluster.services.poi_classifier import PoiClassifier
from memories.cluster.services.stages import (
    AwayFlagStage,
    CohortPresenceStage,
    StaypointStage,
    TransportSpeedStage,
)
from memories.cluster.services.staypoint_detector import StaypointDetector
from memories.cluster.services.timezone_resolver import TimezoneResolver
from memories.common.models import Location, Poi
from memories.config import DaySummaryConfig

BERLIN = ZoneInfo("Europe/Berlin")
HOME = HomeDescriptor(lat=52.52, lon=13.405, radius_km=15.0, timezone_offset=120)
MUNICH = (48.137, 11.575)
HAMBURG = (53.5511, 9.9937)


def _at(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 6, day, hour, minute, tzinfo=BERLIN)


@pytest.fixture
def builder():
    return DaySummaryBuilder.from_config(DaySummaryConfig(timezone="Europe/Berlin"))


def test_gap_days_are_synthetic(builder, make_item):
    items = [make_item(_at(1, 10, m), 52.52, 13.405) for m in (0, 10, 20)]
    items += [make_item(_at(3, 10, m), *MUNICH) for m in (0, 10, 20)]

    days = builder.build(items, HOME)

    assert list(days) == ["2024-06-01", "2024-06-02", "2024-06-03"]
    assert days["2024-06-02"].is_synthetic
    assert days["2024-06-01"].weekday == 6
    assert days["2024-06-03"].max_distance_km == pytest.approx(504, abs=5)
    assert days["2024-06-03"].is_away_candidate
    assert not days["2024-06-01"].is_away_candidate
    assert not days["2024-06-02"].is_away_candidate
    assert days["2024-06-03"].sufficient_samples


def test_empty_input_gives_no_days(builder, make_item):
    assert builder.build([make_item(None, 52.52, 13.405)], HOME) == {}


def test_poi_counters_and_timezone(builder, make_item):
    items = [
        make_item(_at(5, 9), location=Location(category="tourism", type="museum")),
        make_item(_at(5, 10), location=Location(pois=[Poi(category_key="aeroway", category_value="aerodrome")])),
        make_item(_at(5, 11)),
    ]
    day = builder.build(items, HOME)["2024-06-05"]

    assert day.poi_samples == 2
    assert day.tourism_hits == 1
    assert day.tourism_ratio == pytest.approx(0.5)
    assert day.has_airport_poi
    assert day.local_timezone_offset == 120
    assert day.local_timezone_identifier == "Europe/Berlin"
    assert day.gps_members == []
    assert day.sufficient_samples


def test_density_z_scores(builder, make_item):
    items = [make_item(_at(1, 10)), make_item(_at(2, 10)), make_item(_at(2, 11)), make_item(_at(2, 12))]
    days = builder.build(items, HOME)
    assert days["2024-06-01"].density_z == pytest.approx(-1.0)
    assert days["2024-06-02"].density_z == pytest.approx(1.0)


def test_away_flag_closes_single_day_gaps(make_item):
    days = {}
    for day, where in ((1, MUNICH), (2, (52.52, 13.405)), (3, MUNICH)):
        key = f"2024-06-{day:02d}"
        gps = [make_item(_at(day, 12), *where)]
        days[key] = DaySummary(date=key, weekday=day, members=gps, gps_members=gps, photo_count=1)
        days[key].max_distance_km = 504.0 if where == MUNICH else 0.0

    days = AwayFlagStage(min_away_distance_km=140.0).process(days, HOME)

    assert [d.is_away_candidate for d in days.values()] == [True, True, True]
    assert not days["2024-06-02"].base_away


def test_transport_speed_flags_fast_legs(make_item):
    gps = [make_item(_at(1, 8), 52.52, 13.405), make_item(_at(1, 9), *HAMBURG)]
    days = {"2024-06-01": DaySummary(date="2024-06-01", weekday=6, members=gps, gps_members=gps)}

    day = TransportSpeedStage().process(days, HOME)["2024-06-01"]

    assert day.max_speed_kmh == pytest.approx(255, abs=5)
    assert day.has_high_speed_transit


def test_staypoint_stage_ranks_and_measures_transit(make_item):
    gps = [make_item(i, 52.52, 13.405, id=i) for i in range(1, 5)]
    short = Staypoint(lat=1.0, lon=1.0, start=0, end=600, dwell_seconds=600, member_ids=(1,))
    long = Staypoint(lat=2.0, lon=2.0, start=0, end=3600, dwell_seconds=3600, member_ids=(2, 3))
    day = DaySummary(
        date="2024-06-01", weekday=6, members=gps, gps_members=gps, photo_count=4,
        staypoints=[short, long], poi_samples=1,
    )

    StaypointStage(limit=1).process({day.date: day}, HOME)

    assert day.dominant_staypoints == [long]
    assert day.transit_ratio == pytest.approx(0.25)
    assert day.poi_density == pytest.approx(0.5)


def test_cohort_presence(make_item):
    day = DaySummary(
        date="2024-06-01", weekday=6,
        members=[make_item(0, persons=["anna", "tom"]), make_item(1, persons=["ben"])],
    )
    CohortPresenceStage(["anna", "ben", "carla", "dora"]).process({day.date: day}, HOME)
    assert day.cohort_members == ["anna", "ben"]
    assert day.cohort_presence_ratio == pytest.approx(0.5)


def test_staypoint_detector_needs_dwell(make_item):
    detector = StaypointDetector(radius_km=0.25, min_dwell_seconds=20 * 60)
    dwell = [make_item(_at(1, 10, m), 52.52, 13.405) for m in (0, 15, 30)]
    rushed = [make_item(_at(1, 10, m), 52.52, 13.405) for m in (0, 5)]

    staypoints = detector.detect(dwell)
    assert len(staypoints) == 1
    assert staypoints[0].dwell_seconds == 1800
    assert detector.detect(rushed) == []


def test_poi_classifier_keywords():
    classifier = PoiClassifier()
    assert classifier.is_tourism(Location(category="leisure", type="beach_resort"))
    assert classifier.is_transport(Location(pois=[Poi(tags={"railway": "train_station"})]))
    assert not classifier.is_poi_sample(Location())
    assert not classifier.is_tourism(None)


def test_timezone_resolver_prefers_recorded_offset(make_item):
    resolver = TimezoneResolver("Europe/Berlin")
    item = make_item(_at(1, 12) + timedelta(days=200), timezone_offset_min=-300)
    assert resolver.offset_minutes(item) == -300
    assert resolver.offset_minutes(make_item(_at(1, 12) + timedelta(days=200))) == 60


def test_timezone_resolver_uses_finder(make_item):
    class FixedFinder:
        def timezone_at(self, lat, lng):
            return "Asia/Tokyo"

    resolver = TimezoneResolver("Europe/Berlin", finder=FixedFinder())
    item = make_item(_at(1, 12), 35.68, 139.69)
    assert resolver.zone_name(item) == "Asia/Tokyo"
    assert resolver.offset_minutes(item) == 540


def test_spots_use_the_outlier_radius(builder, make_item):
    items = [make_item(_at(4, 10) + timedelta(minutes=20 * i), 52.52 + 0.002 * i, 13.405) for i in range(4)]
    day = builder.build(items, HOME)["2024-06-04"]

    assert len(day.spot_clusters) == 1
    assert day.spot_noise == []
    assert day.spot_dwell_seconds == 3600


def test_sparse_gps_day_keeps_sample_flag(builder, make_item):
    items = [make_item(_at(7, 9 + i)) for i in range(5)]
    items.append(make_item(_at(7, 15), *MUNICH))
    day = builder.build(items, HOME)["2024-06-07"]

    assert len(day.gps_members) == 1
    assert day.sufficient_samples
    assert day.is_away_candidate
