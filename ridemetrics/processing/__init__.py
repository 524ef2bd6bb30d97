"""
Route analytics pipelines for ridemetrics

This package provides:
- Geodesy primitives (haversine distance, bearing, gradient)
- Kinematics: distance, moving time and speed
- Elevation gain/loss with noise filtering
- Climb/descent segment detection
- Calorie estimation and zone analysis
- Terrain classification from OpenStreetMap with an elevation fallback
"""

from .calories import RideAnalyzer
from .elevation import ElevationProfiler
from .geodesy import haversine_distance, point_distance
from .kinematics import KinematicsCalculator
from .route_processor import RouteProcessor
from .segments import SegmentDetector
from .terrain import TerrainClassifier

__all__ = [
    'ElevationProfiler', 'KinematicsCalculator', 'RideAnalyzer', 'RouteProcessor',
    'SegmentDetector', 'TerrainClassifier', 'haversine_distance', 'point_distance',
]
