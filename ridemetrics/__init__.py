"""
ridemetrics - route analytics engine for recorded cycling rides.
"""

from .config.config import EngineConfig
from .errors import InvalidTrackPointError, RouteAnalysisError
from .processing.models import RideAnalysis, Track, TrackPoint
from .processing.route_processor import RouteProcessor

__version__ = "0.1.0"

__all__ = [
    'EngineConfig', 'InvalidTrackPointError', 'RideAnalysis', 'RouteAnalysisError',
    'RouteProcessor', 'Track', 'TrackPoint',
]
