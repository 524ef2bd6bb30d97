"""
Kinematics pipeline: distance, elapsed/moving time and speed for a route.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..config.config import KinematicsConfig
from ..config.logging_config import get_logger
from .geodesy import point_distance
from .models import TrackPoint, ensure_track_points

logger = get_logger(__name__)


@dataclass
class SpeedMetrics:
    avg_speed_ms: float = 0.0
    max_speed_ms: float = 0.0
    speeds: List[float] = field(default_factory=list)


@dataclass
class KinematicsResult:
    """Raw (SI unit) kinematics of a route."""
    distance_m: float = 0.0
    total_time_s: float = 0.0
    moving_time_s: float = 0.0
    avg_speed_ms: float = 0.0
    max_speed_ms: float = 0.0
    speeds: List[float] = field(default_factory=list)

    @property
    def distance_km(self) -> float:
        return round(self.distance_m / 1000, 6)

    @property
    def avg_speed_kmh(self) -> float:
        return round(self.avg_speed_ms * 3.6, 3)

    @property
    def max_speed_kmh(self) -> float:
        return round(self.max_speed_ms * 3.6, 3)


def _seconds_between(prev: TrackPoint, curr: TrackPoint) -> Optional[float]:
    if prev.time is None or curr.time is None:
        return None
    return (curr.time - prev.time).total_seconds()


class KinematicsCalculator:
    """Computes distance, time and speed metrics over an ordered point sequence."""

    def __init__(self, config: KinematicsConfig = None):
        self.config = config or KinematicsConfig()

    def calculate(self, points: Sequence[TrackPoint]) -> KinematicsResult:
        """Run the full kinematics pass.

        Missing timestamps degrade time and speed metrics to 0; this never raises
        for degraded input.
        """
        points = ensure_track_points(points)
        if len(points) < 2:
            return KinematicsResult()

        distance = self.total_distance(points)
        total_time = self.total_time(points)
        moving_time = min(self.moving_time(points), total_time) if total_time else 0.0
        speed = self.speed_metrics(points)

        avg_speed = speed.avg_speed_ms
        if avg_speed == 0 and moving_time > 0:
            # Every step was below the moving-speed threshold, e.g. a slow push
            avg_speed = distance / moving_time

        logger.debug(f"Kinematics: distance={distance:.1f}m total={total_time:.0f}s "
                     f"moving={moving_time:.0f}s avg={avg_speed:.3f}m/s max={speed.max_speed_ms:.3f}m/s")

        return KinematicsResult(
            distance_m=distance,
            total_time_s=total_time,
            moving_time_s=moving_time,
            avg_speed_ms=avg_speed,
            max_speed_ms=speed.max_speed_ms,
            speeds=speed.speeds,
        )

    @staticmethod
    def total_distance(points: Sequence[TrackPoint]) -> float:
        """Sum of haversine step distances in meters."""
        return sum(point_distance(points[i - 1], points[i]) for i in range(1, len(points)))

    @staticmethod
    def total_time(points: Sequence[TrackPoint]) -> float:
        """Seconds between first and last timestamp, 0 when either is missing."""
        if not points:
            return 0.0
        elapsed = _seconds_between(points[0], points[-1])
        return max(0.0, elapsed) if elapsed is not None else 0.0

    def moving_time(self, points: Sequence[TrackPoint]) -> float:
        """Total time of steps that actually moved (GPS jitter while stopped excluded)."""
        moving = 0.0
        for i in range(1, len(points)):
            step_time = _seconds_between(points[i - 1], points[i])
            if step_time is None or step_time <= 0:
                continue
            if point_distance(points[i - 1], points[i]) > self.config.min_moving_distance_m:
                moving += step_time
        return moving

    def step_speed(self, prev: TrackPoint, curr: TrackPoint, distance: float, time_diff: float) -> float:
        """Speed for one step; a plausible sensor speed wins over GPS-derived speed."""
        sensor_speed = curr.speed
        if sensor_speed is not None and 0 <= sensor_speed < self.config.max_sensor_speed_ms:
            return sensor_speed
        return distance / time_diff

    def speed_metrics(self, points: Sequence[TrackPoint]) -> SpeedMetrics:
        """Average speed is moving distance / moving time, not the mean of step speeds."""
        max_speed = 0.0
        moving_distance = 0.0
        moving_time = 0.0
        running_step = 0.0
        speeds: List[float] = []

        for i in range(1, len(points)):
            prev, curr = points[i - 1], points[i]
            time_diff = _seconds_between(prev, curr)
            if time_diff is None or time_diff <= 0:
                continue

            distance = point_distance(prev, curr)

            # Reject position spikes far beyond the running step distance
            if running_step == 0:
                running_step = distance
            elif abs((running_step + distance) / 2 - distance) > self.config.spike_factor * running_step:
                logger.debug(f"Skipping spike at point {i}: {distance:.1f}m vs running {running_step:.1f}m")
                continue
            else:
                running_step = (running_step + distance) / 2

            speed = self.step_speed(prev, curr, distance, time_diff)
            speeds.append(speed)
            max_speed = max(max_speed, speed)

            if speed >= self.config.min_moving_speed_ms:
                moving_distance += distance
                moving_time += time_diff

        avg_speed = moving_distance / moving_time if moving_time > 0 else 0.0
        return SpeedMetrics(avg_speed_ms=avg_speed, max_speed_ms=max_speed, speeds=speeds)
