import pytest
from pydantic import ValidationError

from memories.cluster.clusters.base import build_cluster_draft
from memories.cluster.schema import Centroid, ClusterDraft, ClusterParams, HomeDescriptor
from memories.utils.geo import centroid, haversine_km, median, time_range


def test_centroid_is_origin_without_gps(make_item):
    items = [make_item(0), make_item(60)]
    draft = build_cluster_draft("test", items)
    assert draft.centroid == Centroid(0.0, 0.0)


def test_centroid_is_mean_of_gps_members(make_item):
    items = [make_item(0, 52.0, 13.0), make_item(60, 54.0, 15.0), make_item(120)]
    draft = build_cluster_draft("test", items)
    assert draft.centroid.lat == pytest.approx(53.0)
    assert draft.centroid.lon == pytest.approx(14.0)


def test_draft_members_are_unique_and_ordered():
    draft = ClusterDraft("test", {}, Centroid(0.0, 0.0), [3, 1, 3, 2, 1])
    assert draft.members == (3, 1, 2)


def test_draft_params_only_change_through_set_param():
    draft = ClusterDraft("test", {"nights": 2}, Centroid(0.0, 0.0), [1])
    with pytest.raises(TypeError):
        draft.params["nights"] = 3
    draft.set_param("nights", 3)
    assert draft.params["nights"] == 3


def test_draft_requires_algorithm():
    with pytest.raises(ValueError):
        ClusterDraft("", {}, Centroid(0.0, 0.0), [])


def test_build_cluster_draft_adds_time_range(make_item):
    items = [make_item(100), make_item(0), make_item(None)]
    draft = build_cluster_draft("test", items)
    window = time_range(items)
    assert draft.params["time_range"] == window
    assert window["to"] - window["from"] == 100


def test_build_cluster_draft_keeps_given_time_range(make_item):
    draft = build_cluster_draft("test", [make_item(0)], {"time_range": {"from": 1, "to": 2}})
    assert draft.params["time_range"] == {"from": 1, "to": 2}


def test_home_descriptor_rejects_invalid_values():
    with pytest.raises(ValidationError):
        HomeDescriptor(lat=95.0, lon=0.0, radius_km=1.0)
    with pytest.raises(ValidationError):
        HomeDescriptor(lat=0.0, lon=0.0, radius_km=0.0)


def test_haversine_known_distance():
    # Berlin -> Munich is roughly 504 km
    assert haversine_km(52.52, 13.405, 48.137, 11.575) == pytest.approx(504, abs=5)


def test_geo_centroid_helper_ignores_items_without_gps(make_item):
    assert centroid([make_item(0, 10.0, 20.0), make_item(0)]) == Centroid(10.0, 20.0)


def test_median_helper():
    assert median([]) is None
    assert median([0.9, 0.1, 0.5]) == 0.5
    assert median([4, 1, 3, 2]) == 2.5
    assert isinstance(median([1, 2]), float)


def test_build_cluster_draft_accepts_well_known_params(make_item):
    params: ClusterParams = {"nights": 2, "years": [2022, 2023]}
    draft = build_cluster_draft("test", [make_item(0)], params)
    assert draft.params["nights"] == 2
    assert draft.params["years"] == [2022, 2023]
    assert "time_range" not in params
