"""
Route processing module for ridemetrics.
Runs the kinematics, elevation, segment, calorie and terrain stages over a route.
"""

import time
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..config.config import EngineConfig
from ..config.logging_config import (
    get_logger,
    log_execution_time,
    log_function_entry,
    log_function_exit,
    log_performance,
)
from .calories import RideAnalyzer
from .elevation import ElevationProfiler
from .geodesy import calculate_gradient, point_distance
from .gpx_loader import load_track_from_gpx
from .kinematics import KinematicsCalculator, KinematicsResult
from .models import (
    RideAnalysis,
    Segment,
    SegmentType,
    Summary,
    Track,
    TrackPoint,
    ensure_track_points,
)
from .segments import SegmentDetector
from .terrain import TerrainClassifier

logger = get_logger(__name__)


def calculate_bounds(points: Sequence[TrackPoint]) -> Optional[Dict[str, float]]:
    """Bounding box of the route, or None for an empty route."""
    if not points:
        return None
    lats = [p.lat for p in points]
    lons = [p.lon for p in points]
    return {
        'min_lat': min(lats),
        'max_lat': max(lats),
        'min_lon': min(lons),
        'max_lon': max(lons),
    }


class RouteProcessor:
    """Handles route analysis from an ordered point sequence."""

    def __init__(self, config: EngineConfig = None, terrain_classifier: TerrainClassifier = None):
        """Initialize the route processor.

        Args:
            config: Engine configuration, built once by the caller
            terrain_classifier: Optional pre-built classifier (e.g. with a custom client)
        """
        self.config = config or EngineConfig()
        self.kinematics = KinematicsCalculator(self.config.kinematics)
        self.elevation = ElevationProfiler(self.config.elevation)
        self.segment_detector = SegmentDetector(self.config.segments)
        self.ride_analyzer = RideAnalyzer(self.config.calories)
        self.terrain_classifier = terrain_classifier or TerrainClassifier(self.config.terrain)

        logger.info("RouteProcessor initialized")
        logger.debug(f"Terrain API calls enabled: {self.config.terrain.enable_api_calls}")

    def analyze(self, route: Union[Track, Sequence[TrackPoint]], rider_weight_kg: float = None,
                include_terrain: bool = False) -> RideAnalysis:
        """Calculate all ride metrics for a route.

        Args:
            route: Track or ordered sequence of TrackPoint
            rider_weight_kg: Carried through to the result; not used by calorie math yet
            include_terrain: Whether to run terrain classification (network I/O)

        Returns:
            RideAnalysis with summary, analysis, segments and optional terrain

        Raises:
            InvalidTrackPointError: a point is not a valid TrackPoint
        """
        track = route if isinstance(route, Track) else None
        points = ensure_track_points(track.points if track else route)

        log_function_entry(logger, "analyze", points=len(points), include_terrain=include_terrain)
        analysis_start_time = time.time()
        logger.info(f"🚀 Starting route analysis for {len(points)} points")

        # Step 1: kinematics and segments are independent of each other
        kinematics = self.kinematics.calculate(points)
        segments = self.segment_detector.detect(points)

        # Step 2: summary combines kinematics, elevation and segments
        summary = self.build_summary(points, kinematics, segments)

        if track is not None:
            self._log_reported_stats(track, summary)

        # Step 3: calories and zones
        analysis = self.ride_analyzer.analyze(points, summary, self.elevation.noise_filtered_gain_loss(points))

        # Step 4: terrain (best effort)
        terrain = self.terrain_classifier.analyze_route(points) if include_terrain else None

        result = RideAnalysis(
            summary=summary,
            analysis=analysis,
            segments=segments,
            total_points=len(points),
            bounds=calculate_bounds(points),
            terrain=terrain,
            rider_weight_kg=rider_weight_kg,
        )

        log_performance(logger, "route analysis", time.time() - analysis_start_time,
                        f"distance={summary.distance_km:.2f}km, segments={len(segments)}")
        log_function_exit(logger, "analyze", result)
        return result

    @log_execution_time()
    def analyze_gpx(self, gpx_content: str, rider_weight_kg: float = None,
                    include_terrain: bool = False) -> RideAnalysis:
        """Parse GPX content and analyze it."""
        track = load_track_from_gpx(gpx_content)
        return self.analyze(track, rider_weight_kg=rider_weight_kg, include_terrain=include_terrain)

    def build_summary(self, points: Sequence[TrackPoint], kinematics: KinematicsResult,
                      segments: List[Segment]) -> Summary:
        """Aggregate ride metrics. Gain/loss come from the summary elevation variant."""
        if not points:
            return Summary()

        if len(points) == 1:
            point = points[0]
            return Summary(
                max_elevation_m=point.elevation,
                min_elevation_m=point.elevation,
                start_time=point.time,
                end_time=point.time,
            )

        min_elevation, max_elevation = self.elevation.elevation_range(points)
        totals = self.elevation.summary_gain_loss(points)
        distance_climb = sum(s.distance for s in segments if s.type == SegmentType.CLIMB)
        distance_descent = sum(s.distance for s in segments if s.type == SegmentType.DESCENT)

        return Summary(
            distance_km=kinematics.distance_km,
            total_time_s=kinematics.total_time_s,
            moving_time_s=kinematics.moving_time_s,
            avg_speed_kmh=kinematics.avg_speed_kmh,
            max_speed_kmh=kinematics.max_speed_kmh,
            elevation_gain_m=totals.gain,
            elevation_loss_m=totals.loss,
            distance_climb_m=distance_climb,
            distance_descent_m=distance_descent,
            max_elevation_m=max_elevation,
            min_elevation_m=min_elevation,
            start_time=points[0].time,
            end_time=points[-1].time,
        )

    def _log_reported_stats(self, track: Track, summary: Summary):
        """Log device-reported totals next to computed ones; computed values always win."""
        reported = track.reported_stats()
        if not reported:
            return
        if 'distance_m' in reported:
            logger.info(f"Reported distance {reported['distance_m'] / 1000:.2f}km, "
                        f"computed {summary.distance_km:.2f}km")
        if 'moving_time_s' in reported:
            logger.info(f"Reported moving time {reported['moving_time_s']:.0f}s, "
                        f"computed {summary.moving_time_s:.0f}s")
        if 'max_speed_ms' in reported:
            logger.info(f"Reported max speed {reported['max_speed_ms'] * 3.6:.1f}km/h, "
                        f"computed {summary.max_speed_kmh:.1f}km/h")

    def create_analysis_dataframe(self, points: Sequence[TrackPoint]) -> pd.DataFrame:
        """Per-point frame for charts: cumulative distance, elevation, gradient and speed."""
        points = ensure_track_points(points)
        columns = ['distance_km', 'elevation_m', 'gradient_percent', 'speed_kmh',
                   'heart_rate', 'power', 'time']
        if not points:
            return pd.DataFrame(columns=columns)

        step_distances = [0.0] + [point_distance(points[i - 1], points[i]) for i in range(1, len(points))]

        gradients = [0.0]
        speeds = [np.nan]
        for i in range(1, len(points)):
            prev, curr = points[i - 1], points[i]
            if prev.elevation is not None and curr.elevation is not None:
                gradients.append(calculate_gradient(step_distances[i], curr.elevation - prev.elevation))
            else:
                gradients.append(np.nan)

            if prev.time is not None and curr.time is not None and curr.time > prev.time:
                time_diff = (curr.time - prev.time).total_seconds()
                speeds.append(self.kinematics.step_speed(prev, curr, step_distances[i], time_diff) * 3.6)
            else:
                speeds.append(np.nan)

        return pd.DataFrame({
            'distance_km': np.cumsum(step_distances) / 1000,
            'elevation_m': [p.elevation if p.elevation is not None else np.nan for p in points],
            'gradient_percent': gradients,
            'speed_kmh': speeds,
            'heart_rate': [p.heart_rate if p.heart_rate is not None else np.nan for p in points],
            'power': [p.power if p.power is not None else np.nan for p in points],
            'time': [p.time for p in points],
        }, columns=columns)
