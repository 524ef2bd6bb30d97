"""
Calorie estimation and speed / heart-rate / power zone analysis.
"""

from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..config.config import CalorieConfig
from ..config.logging_config import get_logger
from .elevation import ElevationTotals
from .geodesy import point_distance
from .models import Analysis, CalorieEstimate, PowerZones, Summary, TrackPoint, ensure_track_points

logger = get_logger(__name__)

SPEED_ZONES = [
    'Recovery (0-15 km/h)',
    'Endurance (15-25 km/h)',
    'Tempo (25-35 km/h)',
    'Threshold (35-45 km/h)',
    'VO2 Max (45+ km/h)',
]
SPEED_ZONE_EDGES_KMH = [15, 25, 35, 45]

HEART_RATE_ZONES = [
    'Zone 1 (50-60%)',
    'Zone 2 (60-70%)',
    'Zone 3 (70-80%)',
    'Zone 4 (80-90%)',
    'Zone 5 (90-100%)',
]
HEART_RATE_ZONE_EDGES_PCT = [60, 70, 80, 90]


def _zone_percentages(values: Sequence[float], edges: Sequence[float], labels: Sequence[str]) -> Dict[str, int]:
    """Share of values per zone, as whole percentages."""
    if len(values) == 0:
        return {label: 0 for label in labels}
    buckets = np.digitize(np.asarray(values, dtype=float), edges)
    counts = np.bincount(buckets, minlength=len(labels))
    return {label: int(round(count / len(values) * 100)) for label, count in zip(labels, counts)}


class RideAnalyzer:
    """Combines kinematics, elevation and sensor streams into the ride Analysis."""

    def __init__(self, config: CalorieConfig = None):
        self.config = config or CalorieConfig()

    def analyze(self, points: Sequence[TrackPoint], summary: Summary,
                filtered_elevation: ElevationTotals = None) -> Analysis:
        """Perform detailed analysis of the ride data."""
        points = ensure_track_points(points)
        heart_rate_zones = self.analyze_heart_rate_zones(points)
        power_zones = self.analyze_power_zones(points)

        heart_rates = [p.heart_rate for p in points if p.heart_rate]
        analysis = Analysis(
            speed_zones=self.analyze_speed_zones(points),
            heart_rate_zones=heart_rate_zones,
            power_zones=power_zones,
            average_heart_rate=float(np.mean(heart_rates)) if heart_rates else None,
            average_power=power_zones.average if power_zones else None,
        )
        if filtered_elevation is not None:
            analysis.filtered_elevation_gain_m = filtered_elevation.gain
            analysis.filtered_elevation_loss_m = filtered_elevation.loss

        analysis.calories = self.estimate_calories(points, summary, heart_rate_zones, power_zones)
        return analysis

    def estimate_calories(self, points: Sequence[TrackPoint], summary: Summary,
                          heart_rate_zones: Dict[str, int] = None,
                          power_zones: Optional[PowerZones] = None) -> CalorieEstimate:
        """
        Estimate calories burned, using the most accurate method available.

        Priority: power > heart rate > distance/elevation. Rider weight is not
        part of any method yet.

        Args:
            points: Route points
            summary: Ride summary (distance, moving time, descent distance, gain)
            heart_rate_zones: Output of analyze_heart_rate_zones
            power_zones: Output of analyze_power_zones

        Returns:
            CalorieEstimate with the method used and its component breakdown
        """
        points = ensure_track_points(points)
        if not points or summary.distance_km <= 0 or summary.moving_time_s <= 0:
            return CalorieEstimate(estimated=0, method='none', breakdown={})

        net_climbing_km = max(0.0, summary.distance_km * 1000 - summary.distance_descent_m) / 1000
        base_calories = net_climbing_km * self.config.kcal_per_km
        elevation_calories = summary.elevation_gain_m * self.config.kcal_per_meter_gain

        hr_calories = None
        if heart_rate_zones:
            # Flat placeholder rate per moving minute
            hr_calories = summary.moving_time_s / 60 * self.config.heart_rate_kcal_per_min

        power_calories = None
        if power_zones and power_zones.average:
            kilojoules = power_zones.average * summary.moving_time_s / 1000
            power_calories = kilojoules * self.config.kcal_per_kj

        if power_calories:
            estimated, method = power_calories, 'power'
        elif hr_calories:
            estimated, method = hr_calories, 'heart_rate'
        else:
            estimated, method = base_calories + elevation_calories, 'distance_elevation'

        breakdown = {
            'base': int(round(base_calories)),
            'elevation': int(round(elevation_calories)),
        }
        if hr_calories:
            breakdown['heart_rate'] = int(round(hr_calories))
        if power_calories:
            breakdown['power'] = int(round(power_calories))

        logger.debug(f"Calories: {estimated:.0f} kcal via {method} "
                     f"(net climbing {net_climbing_km:.2f}km, gain {summary.elevation_gain_m:.0f}m)")

        return CalorieEstimate(estimated=int(round(estimated)), method=method, breakdown=breakdown)

    def analyze_speed_zones(self, points: Sequence[TrackPoint]) -> Dict[str, int]:
        """Distribution of realistic step speeds across the speed zones."""
        cfg = self.config
        speeds: List[float] = []

        for i in range(1, len(points)):
            prev, curr = points[i - 1], points[i]
            if prev.time is None or curr.time is None:
                continue

            time_diff = (curr.time - prev.time).total_seconds()
            # Skip GPS stalls and recording gaps
            if time_diff < cfg.zone_min_time_s or time_diff > cfg.zone_max_time_s:
                continue

            distance = point_distance(prev, curr)
            speed_kmh = distance * 3.6 / time_diff
            if cfg.zone_min_speed_kmh <= speed_kmh <= cfg.zone_max_speed_kmh and distance >= cfg.zone_min_distance_m:
                speeds.append(speed_kmh)

        zones = _zone_percentages(speeds, SPEED_ZONE_EDGES_KMH, SPEED_ZONES)
        logger.debug(f"Speed zones from {len(speeds)} steps: {zones}")
        return zones

    def analyze_heart_rate_zones(self, points: Sequence[TrackPoint]) -> Dict[str, int]:
        """Share of heart-rate samples per zone; empty when no heart-rate data."""
        heart_rates = [p.heart_rate for p in points if p.heart_rate]
        if not heart_rates:
            return {}

        percentages = [hr / self.config.max_heart_rate * 100 for hr in heart_rates]
        return _zone_percentages(percentages, HEART_RATE_ZONE_EDGES_PCT, HEART_RATE_ZONES)

    def analyze_power_zones(self, points: Sequence[TrackPoint]) -> Optional[PowerZones]:
        power_values = [p.power for p in points if p.power is not None and p.power > 0]
        if not power_values:
            return None

        return PowerZones(
            average=float(np.mean(power_values)),
            maximum=float(np.max(power_values)),
            normalized_power=self.calculate_normalized_power(power_values),
        )

    def calculate_normalized_power(self, power_values: Sequence[float]) -> Optional[float]:
        """Fourth root of the mean of the rolling-average power to the fourth."""
        window = self.config.normalized_power_window
        if len(power_values) < window:
            return None

        rolling = pd.Series(power_values, dtype=float).rolling(window=window).mean().dropna()
        return float(np.power(np.mean(np.power(rolling.to_numpy(), 4)), 0.25))
