from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from memories.cluster.clusters.strategies import (
    burst_strategy,
    default_strategies,
    monthly_highlights,
    significant_place_visits,
    weekend_getaways_over_years,
)

BERLIN = ZoneInfo("Europe/Berlin")


def test_burst_groups_rapid_shots(make_item):
    start = datetime(2024, 6, 1, 12, tzinfo=BERLIN)
    items = [make_item(start + timedelta(seconds=20 * i), 52.52, 13.405) for i in range(4)]
    items.append(make_item(start + timedelta(hours=1), 52.52, 13.405))

    drafts = burst_strategy().cluster(items)
    assert len(drafts) == 1
    assert len(drafts[0].members) == 4


def test_weekend_getaways_need_a_weekend_in_every_year(make_item):
    items = []
    # 2022-07-09 and 2023-07-08 are Saturdays
    for day in ("2022-07-09", "2023-07-08", "2024-07-06"):
        start = datetime.fromisoformat(day).replace(hour=10, tzinfo=BERLIN)
        for offset in range(2):
            items += [make_item(start + timedelta(days=offset, minutes=i)) for i in range(3)]

    drafts = weekend_getaways_over_years(min_years=3).cluster(items)
    assert len(drafts) == 1
    assert drafts[0].params["years"] == [2022, 2023, 2024]


def test_monthly_highlights_gate(make_item):
    start = datetime(2024, 5, 1, 12, tzinfo=BERLIN)
    items = [make_item(start + timedelta(days=i % 4, minutes=i)) for i in range(20)]

    drafts = monthly_highlights(min_members=20, min_days=3).cluster(items)
    assert [(d.params["year"], d.params["month"], d.params["days"]) for d in drafts] == [(2024, 5, 4)]
    assert monthly_highlights(min_members=21).cluster(items) == []


def test_significant_place_visits(make_item):
    start = datetime(2024, 6, 1, 12, tzinfo=BERLIN)
    items = [make_item(start + timedelta(minutes=i), 52.52, 13.405) for i in range(3)]
    assert len(significant_place_visits().cluster(items)) == 1


def test_default_strategies():
    assert [s.algorithm for s in default_strategies()] == [
        "burst",
        "weekend_getaways_over_years",
        "monthly_highlights",
        "significant_place",
    ]
