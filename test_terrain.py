#!/usr/bin/env python3
"""
Tests for terrain classification and the Overpass API client.

No test touches the network: the client is either replaced by a fake or
requests.post is monkeypatched.
"""

import os
import sys

import pytest
import requests

# Add the project root to the path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from ridemetrics.config.config import TerrainConfig
from ridemetrics.processing import overpass_client
from ridemetrics.processing.models import TerrainType, TrackPoint
from ridemetrics.processing.overpass_client import (
    OSMElement,
    OSMTags,
    OverpassClient,
    RetryState,
    build_bbox_query,
)
from ridemetrics.processing.terrain import (
    NO_DATA_CONFIDENCE,
    SERVICE_CONFIDENCE,
    UNMATCHED_TAGS_CONFIDENCE,
    TerrainClassifier,
    classify_by_elevation,
    classify_from_osm_tags,
    sample_points,
)


def route(count, elevation=None):
    return [TrackPoint(lat=47.0 + i * 0.0005, lon=8.0, elevation=elevation) for i in range(count)]


def element(**tags):
    return OSMElement.from_dict({'type': 'way', 'tags': tags})


class FakeClient:
    """Stands in for OverpassClient.query_with_retry."""

    def __init__(self, responses=None, error=None):
        self.responses = list(responses or [])
        self.error = error
        self.calls = []

    def query_with_retry(self, points, url, sleep=None):
        self.calls.append((len(points), url))
        if self.error is not None:
            raise self.error
        return self.responses.pop(0) if self.responses else None


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code
        self.ok = status_code < 400

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


@pytest.mark.parametrize("tags,expected", [
    ({'surface': 'asphalt'}, TerrainType.URBAN),
    ({'surface': 'gravel', 'landuse': 'forest'}, TerrainType.RURAL),
    ({'landuse': 'forest'}, TerrainType.FOREST),
    ({'landuse': 'residential'}, TerrainType.SUBURBAN),
    ({'landuse': 'industrial'}, TerrainType.INDUSTRIAL),
    ({'natural': 'water'}, TerrainType.WATER),
    ({'natural': 'beach'}, TerrainType.COASTAL),
    ({'natural': 'wetland'}, TerrainType.WETLAND),
    ({'leisure': 'park'}, TerrainType.PARK),
    ({'place': 'village'}, TerrainType.RURAL),
    ({'highway': 'primary'}, TerrainType.SUBURBAN),
    ({'highway': 'service'}, TerrainType.RURAL),
    ({'amenity': 'cafe'}, TerrainType.UNKNOWN),
    ({}, TerrainType.UNKNOWN),
])
def test_classify_from_osm_tags(tags, expected):
    assert classify_from_osm_tags(OSMTags.from_dict(tags)) == expected


def test_unrecognized_tags_are_kept_aside():
    tags = OSMTags.from_dict({'amenity': 'cafe', 'surface': 'gravel'})
    assert tags.surface == 'gravel'
    assert tags.unrecognized == {'amenity': 'cafe'}


@pytest.mark.parametrize("elevation,expected", [
    (2500.0, (TerrainType.MOUNTAIN, 0.7)),
    (1500.0, (TerrainType.MOUNTAIN, 0.6)),
    (700.0, (TerrainType.RURAL, 0.5)),
    (200.0, (TerrainType.RURAL, 0.4)),
    (10.0, (TerrainType.COASTAL, 0.4)),
    (None, (TerrainType.UNKNOWN, NO_DATA_CONFIDENCE)),
])
def test_classify_by_elevation(elevation, expected):
    assert classify_by_elevation(TrackPoint(lat=47.0, lon=8.0, elevation=elevation)) == expected


def test_sample_points_always_ends_on_last_point():
    assert [index for index, _ in sample_points(route(25), 10)] == [0, 10, 20, 24]
    assert [index for index, _ in sample_points(route(21), 10)] == [0, 10, 20]
    assert sample_points([], 10) == []


def test_retry_schedule():
    state = RetryState(max_retries=3)
    delays = []
    while state.can_retry:
        delays.append(state.next_delay)
        state.advance()
    assert delays == [2, 4, 8]


def test_bbox_query():
    points = route(3)
    query = build_bbox_query(points, 100, 13)
    assert query.startswith(f"[bbox:47.0,8.0,{points[-1].lat},8.0][out:json][timeout:13];")
    assert 'way(around:100,47.0,8.0)["landuse"];' in query
    assert query.endswith("out geom;")


def test_timeouts_are_retried_with_backoff(monkeypatch):
    calls = []

    def fake_post(*args, **kwargs):
        calls.append(kwargs['timeout'])
        raise requests.exceptions.Timeout("slow")

    monkeypatch.setattr(overpass_client.requests, 'post', fake_post)
    sleeps = []
    result = OverpassClient(TerrainConfig()).query_with_retry(route(2), "https://example.invalid", sleep=sleeps.append)

    assert result is None
    assert len(calls) == 4
    assert sleeps == [2, 4, 8]


def test_other_request_errors_are_not_retried(monkeypatch):
    calls = []

    def fake_post(*args, **kwargs):
        calls.append(args)
        raise requests.exceptions.ConnectionError("refused")

    monkeypatch.setattr(overpass_client.requests, 'post', fake_post)
    sleeps = []
    result = OverpassClient().query_with_retry(route(2), "https://example.invalid", sleep=sleeps.append)

    assert result is None
    assert len(calls) == 1
    assert sleeps == []


def test_successful_response_is_parsed(monkeypatch):
    payload = {'elements': [{'type': 'way', 'tags': {'landuse': 'forest', 'name': 'Sihlwald'}}]}
    monkeypatch.setattr(overpass_client.requests, 'post', lambda *a, **k: FakeResponse(payload))

    elements = OverpassClient().query_bbox(route(2), "https://example.invalid")
    assert len(elements) == 1
    assert elements[0].tags.landuse == 'forest'
    assert elements[0].tags.unrecognized == {'name': 'Sihlwald'}


@pytest.mark.parametrize("response", [
    FakeResponse({'elements': []}),
    FakeResponse({'remark': 'runtime error'}),
    FakeResponse(ValueError("not json")),
    FakeResponse({'elements': [{'tags': {}}]}, status_code=429),
])
def test_unusable_responses_give_no_result(monkeypatch, response):
    monkeypatch.setattr(overpass_client.requests, 'post', lambda *a, **k: response)
    assert OverpassClient().query_bbox(route(2), "https://example.invalid") is None


def test_batches_alternate_endpoints_and_map_by_position():
    config = TerrainConfig(sample_interval=10, batch_size=2, api_delay_seconds=1.5)
    client = FakeClient(responses=[[element(landuse='forest'), element(natural='water')]])
    sleeps = []
    analysis = TerrainClassifier(config, client=client, sleep=sleeps.append).analyze_route(route(21, 400.0))

    assert client.calls == [(2, config.overpass_api_url), (1, config.overpass_api_url_secondary)]
    assert sleeps == [1.5]
    assert analysis.source == 'overpass'

    forest, water, unknown = analysis.segments
    assert (forest.terrain_type, forest.start_index, forest.end_index) == (TerrainType.FOREST, 0, 10)
    assert forest.confidence == SERVICE_CONFIDENCE
    assert (water.terrain_type, water.start_index, water.end_index) == (TerrainType.WATER, 10, 20)
    assert (unknown.terrain_type, unknown.start_index, unknown.end_index) == (TerrainType.UNKNOWN, 20, 20)
    assert unknown.confidence == NO_DATA_CONFIDENCE
    assert forest.distance_m > 0
    assert unknown.distance_m == 0


def test_same_terrain_segments_are_merged():
    config = TerrainConfig(sample_interval=10, batch_size=5)
    client = FakeClient(responses=[[element(landuse='forest'), element(natural='wood'), element(amenity='bench')]])
    analysis = TerrainClassifier(config, client=client, sleep=lambda s: None).analyze_route(route(21))

    forest, unknown = analysis.segments
    assert (forest.start_index, forest.end_index) == (0, 20)
    assert unknown.terrain_type == TerrainType.UNKNOWN
    assert unknown.confidence == UNMATCHED_TAGS_CONFIDENCE
    assert analysis.dominant_terrain == TerrainType.FOREST
    assert analysis.terrain_percentages[TerrainType.FOREST] == pytest.approx(100.0)


def test_all_service_failures_give_unknown(monkeypatch):
    def fake_post(*args, **kwargs):
        raise requests.exceptions.ConnectionError("offline")

    monkeypatch.setattr(overpass_client.requests, 'post', fake_post)
    config = TerrainConfig(sample_interval=10, batch_size=5)
    analysis = TerrainClassifier(config, sleep=lambda s: None).analyze_route(route(21))

    assert analysis.source == 'overpass'
    assert len(analysis.segments) == 1
    assert analysis.segments[0].terrain_type == TerrainType.UNKNOWN
    assert analysis.segments[0].confidence == pytest.approx(NO_DATA_CONFIDENCE)
    assert analysis.dominant_terrain == TerrainType.UNKNOWN


def test_disabled_api_uses_elevation_fallback():
    points = route(5, 30.0) + [TrackPoint(lat=47.01 + i * 0.0005, lon=8.0, elevation=700.0) for i in range(5)]
    client = FakeClient()
    classifier = TerrainClassifier(TerrainConfig(enable_api_calls=False), client=client)
    analysis = classifier.analyze_route(points)

    assert client.calls == []
    assert analysis.source == 'elevation'
    assert analysis.to_dict() == classifier.fallback_elevation_analysis(points).to_dict()

    coastal, rural = analysis.segments
    assert (coastal.terrain_type, coastal.start_index, coastal.end_index) == (TerrainType.COASTAL, 0, 4)
    assert coastal.confidence == pytest.approx(0.4)
    assert (rural.terrain_type, rural.start_index, rural.end_index) == (TerrainType.RURAL, 5, 9)
    assert rural.confidence == pytest.approx(0.5)
    assert analysis.elevation_profile.min == 30.0
    assert analysis.elevation_profile.max == 700.0


def test_unexpected_client_error_falls_back():
    points = route(30, 1200.0)
    classifier = TerrainClassifier(TerrainConfig(), client=FakeClient(error=RuntimeError("boom")),
                                   sleep=lambda s: None)
    analysis = classifier.analyze_route(points)

    assert analysis.source == 'elevation'
    assert analysis.to_dict() == classifier.fallback_elevation_analysis(points).to_dict()
    assert analysis.dominant_terrain == TerrainType.MOUNTAIN


def test_empty_and_invalid_routes():
    classifier = TerrainClassifier(TerrainConfig(enable_api_calls=False))
    for points in ([], [object()], [(47.0, 8.0)], None, 42, "47.0,8.0"):
        analysis = classifier.analyze_route(points)
        assert analysis.segments == []
        assert analysis.dominant_terrain == TerrainType.UNKNOWN
        assert analysis.source == 'none'


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
