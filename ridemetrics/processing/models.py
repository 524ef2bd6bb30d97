"""
Data model for route analysis.

TrackPoint and Track are the immutable inputs handed over by the parsing layer;
every other type is derived fresh for each analysis run.
"""

import math
import numbers
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..errors import InvalidTrackPointError

# Sensor and elevation fields that must be finite numbers when present
OPTIONAL_NUMERIC_FIELDS = ('elevation', 'heart_rate', 'cadence', 'power', 'speed', 'temperature')


@dataclass(frozen=True)
class TrackPoint:
    """A single recorded fix with optional elevation, time and sensor readings."""
    lat: float
    lon: float
    elevation: Optional[float] = None
    time: Optional[datetime] = None
    heart_rate: Optional[float] = None
    cadence: Optional[float] = None
    power: Optional[float] = None
    speed: Optional[float] = None          # sensor-reported speed in m/s
    temperature: Optional[float] = None

    def __post_init__(self):
        for name, lower, upper in (('lat', -90.0, 90.0), ('lon', -180.0, 180.0)):
            value = _checked_number(name, getattr(self, name))
            if not lower <= value <= upper:
                raise InvalidTrackPointError(f"{name} out of range: {value!r}")
        for name in OPTIONAL_NUMERIC_FIELDS:
            value = getattr(self, name)
            if value is not None:
                _checked_number(name, value)
        if self.time is not None and not isinstance(self.time, datetime):
            raise InvalidTrackPointError(f"time must be a datetime, got {type(self.time).__name__}")


def _checked_number(name: str, value: Any) -> float:
    """Finite real number, booleans excluded."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidTrackPointError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise InvalidTrackPointError(f"{name} must be finite, got {value!r}")
    return value


def ensure_track_points(points: Iterable[Any]) -> List[TrackPoint]:
    """Return points as a list, raising InvalidTrackPointError on any non-TrackPoint entry."""
    if isinstance(points, (str, bytes)):
        raise InvalidTrackPointError(f"Expected a sequence of TrackPoint, got {type(points).__name__}")
    try:
        checked = list(points)
    except TypeError as e:
        raise InvalidTrackPointError(
            f"Expected a sequence of TrackPoint, got {type(points).__name__}"
        ) from e
    for index, point in enumerate(checked):
        if not isinstance(point, TrackPoint):
            raise InvalidTrackPointError(
                f"Point {index} is {type(point).__name__}, expected TrackPoint"
            )
    return checked


@dataclass(frozen=True)
class Track:
    """Ordered points plus the aggregate stats the recording device reported.

    Reported stats are logged next to computed values but never trusted over them.
    """
    points: Tuple[TrackPoint, ...]
    name: str = "Unnamed Track"
    reported_distance_m: Optional[float] = None
    reported_timer_time_s: Optional[float] = None
    reported_moving_time_s: Optional[float] = None
    reported_stopped_time_s: Optional[float] = None
    reported_max_speed_ms: Optional[float] = None

    def reported_stats(self) -> Dict[str, float]:
        stats = {
            'distance_m': self.reported_distance_m,
            'timer_time_s': self.reported_timer_time_s,
            'moving_time_s': self.reported_moving_time_s,
            'stopped_time_s': self.reported_stopped_time_s,
            'max_speed_ms': self.reported_max_speed_ms,
        }
        return {key: value for key, value in stats.items() if value is not None}


class SegmentType(str, Enum):
    CLIMB = 'climb'
    DESCENT = 'descent'
    FLAT = 'flat'


@dataclass
class Segment:
    """A contiguous stretch sharing one gradient classification."""
    type: SegmentType
    distance: float              # meters
    elevation_change: float      # meters, signed
    avg_gradient: float          # percent
    max_gradient: float          # percent
    start_index: int
    end_index: int
    duration: Optional[float] = None  # seconds

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['type'] = self.type.value
        return data


@dataclass
class Summary:
    """Aggregate ride metrics."""
    distance_km: float = 0.0
    total_time_s: float = 0.0
    moving_time_s: float = 0.0
    avg_speed_kmh: float = 0.0
    max_speed_kmh: float = 0.0
    elevation_gain_m: float = 0.0
    elevation_loss_m: float = 0.0
    distance_climb_m: float = 0.0
    distance_descent_m: float = 0.0
    max_elevation_m: Optional[float] = None
    min_elevation_m: Optional[float] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['start_time'] = self.start_time.isoformat() if self.start_time else None
        data['end_time'] = self.end_time.isoformat() if self.end_time else None
        return data


@dataclass
class CalorieEstimate:
    estimated: int = 0
    method: str = 'none'
    breakdown: Dict[str, int] = field(default_factory=dict)


@dataclass
class PowerZones:
    average: float
    maximum: float
    normalized_power: Optional[float] = None


@dataclass
class Analysis:
    """Calorie estimate, sensor averages and zone distributions."""
    calories: CalorieEstimate = field(default_factory=CalorieEstimate)
    average_heart_rate: Optional[float] = None
    average_power: Optional[float] = None
    speed_zones: Dict[str, int] = field(default_factory=dict)
    heart_rate_zones: Dict[str, int] = field(default_factory=dict)
    power_zones: Optional[PowerZones] = None
    filtered_elevation_gain_m: float = 0.0
    filtered_elevation_loss_m: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class TerrainType(str, Enum):
    URBAN = 'urban'
    SUBURBAN = 'suburban'
    RURAL = 'rural'
    FOREST = 'forest'
    MOUNTAIN = 'mountain'
    COASTAL = 'coastal'
    DESERT = 'desert'
    GRASSLAND = 'grassland'
    WETLAND = 'wetland'
    INDUSTRIAL = 'industrial'
    PARK = 'park'
    WATER = 'water'
    UNKNOWN = 'unknown'


@dataclass
class TerrainSegment:
    start_index: int
    end_index: int
    distance_m: float
    terrain_type: TerrainType
    elevation_m: float
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['terrain_type'] = self.terrain_type.value
        return data


@dataclass
class ElevationProfile:
    min: float = 0.0
    max: float = 0.0
    range: float = 0.0
    avg_slope: float = 0.0


@dataclass
class TerrainAnalysis:
    segments: List[TerrainSegment] = field(default_factory=list)
    dominant_terrain: TerrainType = TerrainType.UNKNOWN
    terrain_distribution: Dict[TerrainType, float] = field(default_factory=dict)
    terrain_percentages: Dict[TerrainType, float] = field(default_factory=dict)
    elevation_profile: ElevationProfile = field(default_factory=ElevationProfile)
    source: str = 'none'   # 'overpass', 'elevation' or 'none'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'segments': [segment.to_dict() for segment in self.segments],
            'summary': {
                'dominant_terrain': self.dominant_terrain.value,
                'terrain_distribution': {t.value: d for t, d in self.terrain_distribution.items()},
                'terrain_percentages': {t.value: p for t, p in self.terrain_percentages.items()},
            },
            'elevation_profile': asdict(self.elevation_profile),
            'source': self.source,
        }


@dataclass
class RideAnalysis:
    """Everything the engine derives for one route."""
    summary: Summary
    analysis: Analysis
    segments: List[Segment]
    total_points: int = 0
    bounds: Optional[Dict[str, float]] = None
    terrain: Optional[TerrainAnalysis] = None
    rider_weight_kg: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'summary': self.summary.to_dict(),
            'analysis': self.analysis.to_dict(),
            'segments': [segment.to_dict() for segment in self.segments],
            'total_points': self.total_points,
            'bounds': self.bounds,
            'terrain': self.terrain.to_dict() if self.terrain else None,
            'rider_weight_kg': self.rider_weight_kg,
        }


def elevation_points(points: Sequence[TrackPoint]) -> List[Tuple[int, TrackPoint]]:
    """Pairs of (route index, point) for points that carry elevation."""
    return [(index, point) for index, point in enumerate(points) if point.elevation is not None]
