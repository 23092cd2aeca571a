from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from memories.cluster.services.pipeline import ClusterRunner, VacationPipeline, create_runner
from memories.config import ClusteringConfig
from memories.core.config import Settings

BERLIN = ZoneInfo("Europe/Berlin")
ROME = ZoneInfo("Europe/Rome")
HOME = (52.52, 13.405)


@pytest.fixture
def config():
    return ClusteringConfig(use_timezone_finder=False)


@pytest.fixture
def holiday(make_item, tourism_location):
    """Five nights at home, five days in Rome, two nights at home again."""
    home_nights = []
    for day in (1, 2, 3, 4, 5, 11, 12):
        start = datetime(2024, 6, day, 23, 0, tzinfo=BERLIN)
        home_nights += [make_item(start + timedelta(minutes=10 * i), *HOME) for i in range(4)]

    trip = []
    for day in range(6, 11):
        start = datetime(2024, 6, day, 9, 0, tzinfo=ROME)
        trip += [
            make_item(
                start + timedelta(hours=i),
                41.9028 + 0.001 * i,
                12.4964,
                has_faces=True,
                quality_score=0.8,
                location=tourism_location,
                camera_make="Apple",
            )
            for i in range(8)
        ]
    return home_nights, trip


def test_trip_becomes_a_vacation_draft(config, holiday):
    home_nights, trip = holiday
    drafts = VacationPipeline.from_config(config).cluster(home_nights + trip)

    assert len(drafts) == 1
    draft = drafts[0]
    assert draft.algorithm == "vacation"
    assert set(draft.members) == {item.id for item in trip}
    assert draft.params["classification"] == "vacation"
    assert draft.params["nights"] == 4
    assert draft.params["away_days"] == 5
    assert draft.params["core_day_count"] == 3
    assert draft.params["peripheral_day_count"] == 2
    assert draft.params["countries"] == ["it"]
    assert draft.params["max_distance_km"] == pytest.approx(1180, abs=30)
    assert list(draft.params["day_segments"]) == [f"2024-06-{d:02d}" for d in range(6, 11)]
    assert draft.centroid.lat == pytest.approx(41.9063, abs=1e-3)


def test_pipeline_is_deterministic(config, holiday):
    home_nights, trip = holiday
    first = VacationPipeline.from_config(config).cluster(home_nights + trip)
    second = VacationPipeline.from_config(config).cluster(list(reversed(trip + home_nights)))
    assert [d.to_dict() for d in first] == [d.to_dict() for d in second]


def test_without_home_nothing_is_detected(config, holiday):
    _, trip = holiday
    assert VacationPipeline.from_config(config).cluster(trip) == []


def test_short_stay_is_rejected(config, holiday):
    home_nights, trip = holiday
    assert VacationPipeline.from_config(config).cluster(home_nights + trip[:8]) == []


def test_from_settings_uses_explicit_home(holiday):
    home_nights, trip = holiday
    settings = Settings(HOME_LAT=52.52, HOME_LON=13.405, USE_TIMEZONE_FINDER=False)
    pipeline = VacationPipeline.from_settings(settings)

    drafts = pipeline.cluster(trip)
    assert len(drafts) == 1
    assert drafts[0].params["timezone_change"] is False


def test_runner_overlays_context(config, holiday):
    home_nights, trip = holiday
    drafts = create_runner(config).process(home_nights + trip)

    vacation = [d for d in drafts if d.algorithm == "vacation"]
    assert len(vacation) == 1
    assert "context_location_cell" in vacation[0].params
    assert vacation[0].params["context_people_face_coverage"] == pytest.approx(40 / 68, abs=1e-4)
    assert vacation[0].params["time_range"] != vacation[0].params["context_time_window"]


def test_runner_respects_clusterer_condition(make_item):
    class Never(VacationPipeline):
        algorithm = "never"

        def __init__(self):
            pass

        @staticmethod
        def condition(items):
            return False

    assert ClusterRunner([Never()]).process([make_item(0)]) == []


def test_trip_with_sparse_gps_is_kept(config, holiday, make_item, tourism_location):
    home_nights, _ = holiday
    trip = []
    for day in range(6, 11):
        start = datetime(2024, 6, day, 9, 0, tzinfo=ROME)
        for i in range(10):
            coords = (41.9028 + 0.001 * i, 12.4964) if i < 2 else (None, None)
            trip.append(
                make_item(
                    start + timedelta(hours=i),
                    *coords,
                    has_faces=True,
                    quality_score=0.8,
                    location=tourism_location,
                )
            )

    drafts = VacationPipeline.from_config(config).cluster(home_nights + trip)

    assert len(drafts) == 1
    assert set(drafts[0].members) == {item.id for item in trip}
    assert drafts[0].params["classification"] == "vacation"
    assert drafts[0].params["away_days"] == 5
