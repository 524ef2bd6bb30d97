#!/usr/bin/env python3
"""
End-to-end tests for RouteProcessor.

Verifies that route analysis is a pure function of its input: same route in,
same metrics out, with no network access unless terrain is requested.
"""

import json
import os
import sys
from datetime import datetime, timezone

import numpy as np
import pytest

# Add the project root to the path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from ridemetrics.config.config import EngineConfig, TerrainConfig
from ridemetrics.errors import InvalidTrackPointError
from ridemetrics.processing.calories import RideAnalyzer
from ridemetrics.processing.elevation import ElevationProfiler
from ridemetrics.processing.kinematics import KinematicsCalculator
from ridemetrics.processing.models import SegmentType, Summary, TerrainType, Track, TrackPoint
from ridemetrics.processing.route_processor import RouteProcessor, calculate_bounds
from ridemetrics.processing.segments import SegmentDetector


@pytest.fixture
def processor():
    return RouteProcessor(EngineConfig(terrain=TerrainConfig(enable_api_calls=False)))


def test_gpx_ride_summary(processor, climb_gpx):
    result = processor.analyze_gpx(climb_gpx)
    summary = result.summary

    assert result.total_points == 30
    assert summary.distance_km == pytest.approx(1.45, rel=1e-3)
    assert summary.total_time_s == 290
    assert summary.moving_time_s == 290
    assert summary.avg_speed_kmh == pytest.approx(18.0, rel=1e-3)
    assert summary.max_speed_kmh == pytest.approx(18.0, rel=1e-3)
    assert summary.min_elevation_m == 300
    assert summary.max_elevation_m == 370
    assert 0 < summary.elevation_gain_m <= 70
    assert summary.elevation_loss_m == 0
    assert summary.start_time < summary.end_time


def test_gpx_ride_analysis(processor, climb_gpx):
    result = processor.analyze_gpx(climb_gpx, rider_weight_kg=72.5)
    analysis = result.analysis

    assert result.rider_weight_kg == 72.5
    assert analysis.average_heart_rate == pytest.approx(140)
    assert analysis.average_power == pytest.approx(200)
    assert analysis.power_zones.normalized_power == pytest.approx(200)
    assert analysis.calories.method == 'power'
    assert analysis.calories.estimated == 209
    assert analysis.heart_rate_zones['Zone 3 (70-80%)'] == 100
    assert analysis.speed_zones['Endurance (15-25 km/h)'] == 100
    assert analysis.filtered_elevation_gain_m > 0

    assert result.segments
    assert result.segments[0].type == SegmentType.CLIMB
    assert result.summary.distance_climb_m >= result.segments[0].distance
    assert result.terrain is None


def test_metric_invariants(processor, gpx_builder):
    elevations = [200, 230, 215, 260, 250, 300, 280, 240, 260, 220, 205, 250]
    result = processor.analyze_gpx(gpx_builder(elevations * 3, step_m=80, step_s=12))
    summary = result.summary

    assert summary.moving_time_s <= summary.total_time_s
    assert summary.max_speed_kmh >= summary.avg_speed_kmh
    assert summary.min_elevation_m <= summary.max_elevation_m
    assert summary.elevation_gain_m >= 0
    assert summary.elevation_loss_m >= 0
    for segment in result.segments:
        assert 0 <= segment.start_index <= segment.end_index < result.total_points
        assert segment.type in (SegmentType.CLIMB, SegmentType.DESCENT, SegmentType.FLAT)


def test_analysis_is_repeatable(processor, climb_gpx):
    first = processor.analyze_gpx(climb_gpx).to_dict()
    second = processor.analyze_gpx(climb_gpx).to_dict()
    assert first == second


def test_to_dict_is_json_serializable(processor, climb_gpx):
    result = processor.analyze_gpx(climb_gpx, include_terrain=True)
    payload = json.loads(json.dumps(result.to_dict(), default=str))

    assert payload['total_points'] == 30
    assert payload['summary']['start_time'].startswith('2024-07-14T06:45:00')
    assert payload['segments'][0]['type'] == 'climb'
    assert payload['terrain']['source'] == 'elevation'
    assert payload['terrain']['summary']['dominant_terrain'] == 'rural'


def test_terrain_runs_only_when_requested(processor, climb_gpx):
    result = processor.analyze_gpx(climb_gpx, include_terrain=True)
    assert result.terrain is not None
    assert result.terrain.dominant_terrain == TerrainType.RURAL


def test_bounds():
    points = [TrackPoint(lat=45.1, lon=6.2), TrackPoint(lat=44.9, lon=6.4), TrackPoint(lat=45.0, lon=6.3)]
    assert calculate_bounds(points) == {'min_lat': 44.9, 'max_lat': 45.1, 'min_lon': 6.2, 'max_lon': 6.4}
    assert calculate_bounds([]) is None


def test_empty_route(processor):
    result = processor.analyze([])

    assert result.total_points == 0
    assert result.summary.distance_km == 0
    assert result.summary.max_elevation_m is None
    assert result.segments == []
    assert result.bounds is None
    assert result.analysis.calories.method == 'none'
    assert result.analysis.heart_rate_zones == {}


def test_single_point_route(processor):
    when = datetime(2024, 7, 14, 6, 45, tzinfo=timezone.utc)
    result = processor.analyze([TrackPoint(lat=45.0, lon=6.0, elevation=1200.0, time=when)])

    assert result.summary.distance_km == 0
    assert result.summary.max_elevation_m == 1200.0
    assert result.summary.end_time == when
    assert result.analysis.calories.estimated == 0


def test_invalid_points_are_rejected(processor):
    with pytest.raises(InvalidTrackPointError):
        processor.analyze([TrackPoint(lat=45.0, lon=6.0), {'lat': 45.1, 'lon': 6.0}])
    with pytest.raises(InvalidTrackPointError):
        TrackPoint(lat=91.0, lon=6.0)
    with pytest.raises(InvalidTrackPointError):
        TrackPoint(lat=45.0, lon=float('nan'))
    with pytest.raises(InvalidTrackPointError):
        TrackPoint(lat=45.0, lon=6.0, time="2024-07-14T06:45:00Z")


@pytest.mark.parametrize("field,value", [
    ("elevation", "100"),
    ("elevation", float("inf")),
    ("heart_rate", float("nan")),
    ("cadence", "85"),
    ("power", True),
    ("speed", "5.0"),
    ("temperature", float("-inf")),
])
def test_malformed_sensor_values_are_rejected(field, value):
    with pytest.raises(InvalidTrackPointError):
        TrackPoint(lat=45.0, lon=6.0, **{field: value})


def test_pipeline_entry_points_reject_foreign_points():
    foreign = [{'lat': 45.0, 'lon': 6.0}, {'lat': 45.1, 'lon': 6.0}]
    calls = [
        lambda: KinematicsCalculator().calculate(foreign),
        lambda: ElevationProfiler().summary_gain_loss(foreign),
        lambda: ElevationProfiler().noise_filtered_gain_loss(foreign),
        lambda: SegmentDetector().detect(foreign),
        lambda: RideAnalyzer().analyze(foreign, Summary()),
        lambda: RideAnalyzer().estimate_calories(foreign, Summary(distance_km=1.0, moving_time_s=60)),
        lambda: RouteProcessor().analyze(None),
    ]
    for call in calls:
        with pytest.raises(InvalidTrackPointError):
            call()


def test_track_input_is_accepted(processor):
    points = tuple(TrackPoint(lat=45.0 + i * 0.001, lon=6.0) for i in range(5))
    track = Track(points=points, name="Commute", reported_distance_m=450.0, reported_max_speed_ms=8.0)
    result = processor.analyze(track)

    assert result.total_points == 5
    assert result.summary.distance_km == pytest.approx(0.4448, rel=1e-3)


def test_analysis_dataframe(processor, gpx_builder):
    from ridemetrics.processing.gpx_loader import load_track_from_gpx

    track = load_track_from_gpx(gpx_builder([100, 105, 110, 110], power=180))
    frame = processor.create_analysis_dataframe(track.points)

    assert list(frame.columns) == ['distance_km', 'elevation_m', 'gradient_percent', 'speed_kmh',
                                   'heart_rate', 'power', 'time']
    assert len(frame) == 4
    assert frame['distance_km'].iloc[0] == 0
    assert frame['distance_km'].is_monotonic_increasing
    assert frame['gradient_percent'].iloc[1] == pytest.approx(10.0, rel=1e-3)
    assert np.isnan(frame['speed_kmh'].iloc[0])
    assert frame['speed_kmh'].iloc[1] == pytest.approx(18.0, rel=1e-3)
    assert frame['heart_rate'].isna().all()
    assert processor.create_analysis_dataframe([]).empty
