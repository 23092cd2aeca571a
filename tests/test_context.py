import pytest

from memories.cluster.schema import Centroid, ClusterDraft
from memories.cluster.services.context import Context, DeviceAggregator, PeopleAggregator
from memories.common.models import Location


def test_apply_to_draft_never_overwrites_existing_keys(make_item):
    items = [make_item(0, 52.52, 13.405), make_item(600, 52.52, 13.405)]
    draft = ClusterDraft("test", {"context_location_cell": "mine"}, Centroid(0.0, 0.0), [1])

    Context.from_items(items).apply_to_draft(draft)

    assert draft.params["context_location_cell"] == "mine"
    assert draft.params["context_time_window"]["to"] - draft.params["context_time_window"]["from"] == 600


def test_empty_scope_adds_nothing():
    draft = ClusterDraft("test", {"nights": 1}, Centroid(0.0, 0.0), [1])
    Context.from_items([]).apply_to_draft(draft)
    assert dict(draft.params) == {"nights": 1}


def test_location_cell_prefers_precomputed_cells(make_item):
    items = [
        make_item(0, 52.52, 13.405, location=Location(cell="abc")),
        make_item(1, 52.52, 13.405, location=Location(cell="abc")),
        make_item(2, 41.90, 12.49),
    ]
    assert Context.from_items(items).location_cell == "abc"


def test_location_cell_falls_back_to_geohash(make_item):
    context = Context.from_items([make_item(0, 52.52, 13.405)])
    assert context.location_cell == "u33dc"


def test_people_metrics(make_item):
    items = [
        make_item(0, persons=["anna", "ben"], has_faces=True),
        make_item(1, persons=["anna"]),
        make_item(2),
        make_item(3),
    ]
    people = PeopleAggregator().aggregate(items)

    assert people["people_count"] == 3
    assert people["people_unique"] == 2
    assert people["people_coverage"] == pytest.approx(0.5)
    assert people["people_face_coverage"] == pytest.approx(0.25)
    # 0.4 * 0.5 + 0.35 * 0.5 + 0.25 * 0.75
    assert people["people"] == pytest.approx(0.5625)


def test_device_diversity(make_item):
    aggregator = DeviceAggregator()
    same = [make_item(0, camera_make="Apple", camera_model="iPhone 15") for _ in range(3)]
    assert aggregator.diversity(same) is None

    mixed = same + [make_item(0, camera_make="Sony", camera_model="A7")]
    assert aggregator.diversity(mixed) == pytest.approx(0.25)
