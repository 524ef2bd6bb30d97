"""
Elevation pipeline: smoothing, outlier rejection and gain/loss accumulation.

Raw barometric/GPS elevation is noisy enough that naive point-to-point
differencing overstates gain by 2-5x, so nothing here accumulates raw deltas.

Two call sites use different smoothing on purpose:

* ``ElevationProfiler.summary_gain_loss`` - light exponential smoothing
  (factor 0.4, 1 m threshold). This is the gain/loss reported in the Summary.
* ``segments.SegmentDetector`` - exponential smoothing with its own factor
  (0.3) tuned for finding segment boundaries, not for absolute totals.

``ElevationProfiler.noise_filtered_gain_loss`` is the full three-stage filter
(moving average, outlier clamp, 3 m threshold); it is reported separately in
the Analysis so the two totals are never confused.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..config.config import ElevationConfig
from ..config.logging_config import get_logger
from .models import TrackPoint, ensure_track_points

logger = get_logger(__name__)


@dataclass
class ElevationTotals:
    gain: float = 0.0
    loss: float = 0.0


def apply_smoothing_filter(elevations: Sequence[float], window_size: int) -> List[float]:
    """Centered moving average; windows are truncated at the ends of the series."""
    if window_size <= 1 or len(elevations) == 0:
        return [float(e) for e in elevations]

    half_window = window_size // 2
    series = pd.Series(elevations, dtype=float)
    smoothed = series.rolling(window=2 * half_window + 1, center=True, min_periods=1).mean()
    return smoothed.tolist()


def remove_elevation_outliers(elevations: Sequence[float], max_change: float) -> List[float]:
    """Clamp jumps larger than max_change to the midpoint, keeping index alignment."""
    if len(elevations) == 0:
        return []

    filtered = [float(elevations[0])]
    for current in elevations[1:]:
        previous = filtered[-1]
        if abs(current - previous) <= max_change:
            filtered.append(float(current))
        else:
            filtered.append(previous + (current - previous) * 0.5)
    return filtered


def exponential_smoothing(elevations: Sequence[float], factor: float) -> List[float]:
    """s[0] = e[0]; s[i] = factor * e[i] + (1 - factor) * s[i-1]."""
    if len(elevations) == 0:
        return []
    series = pd.Series(elevations, dtype=float)
    return series.ewm(alpha=factor, adjust=False).mean().tolist()


def accumulate_gain_loss(elevations: Sequence[float], threshold: float) -> ElevationTotals:
    """Sum consecutive deltas whose magnitude reaches the threshold."""
    if len(elevations) < 2:
        return ElevationTotals()

    deltas = np.diff(np.asarray(elevations, dtype=float))
    significant = deltas[np.abs(deltas) >= threshold]
    gain = float(significant[significant > 0].sum())
    loss = float(-significant[significant < 0].sum())
    return ElevationTotals(gain=gain, loss=loss)


class ElevationProfiler:
    """Elevation statistics over the elevation-bearing points of a route."""

    def __init__(self, config: ElevationConfig = None):
        self.config = config or ElevationConfig()

    @staticmethod
    def elevations(points: Sequence[TrackPoint]) -> List[float]:
        return [p.elevation for p in ensure_track_points(points) if p.elevation is not None]

    def noise_filtered_gain_loss(self, points: Sequence[TrackPoint]) -> ElevationTotals:
        """Three-stage filter: smoothing, outlier rejection, threshold accumulation."""
        raw = self.elevations(points)
        if len(raw) < 2:
            return ElevationTotals()

        smoothed = apply_smoothing_filter(raw, self.config.smoothing_window)
        filtered = remove_elevation_outliers(smoothed, self.config.max_change_per_step_m)
        totals = accumulate_gain_loss(filtered, self.config.min_threshold_m)

        logger.debug(f"Noise-filtered elevation: +{totals.gain:.1f}m / -{totals.loss:.1f}m "
                     f"from {len(raw)} samples")
        return totals

    def summary_gain_loss(self, points: Sequence[TrackPoint]) -> ElevationTotals:
        """Gain/loss reported in the ride Summary (light exponential smoothing)."""
        raw = self.elevations(points)
        if len(raw) < 2:
            return ElevationTotals()

        if len(raw) <= 3:
            smoothed = [float(e) for e in raw]
        else:
            smoothed = exponential_smoothing(raw, self.config.summary_smoothing_factor)

        return accumulate_gain_loss(smoothed, self.config.summary_threshold_m)

    def elevation_range(self, points: Sequence[TrackPoint]) -> Tuple[Optional[float], Optional[float]]:
        """(min, max) elevation rounded to centimeters, or (None, None) without data."""
        raw = self.elevations(points)
        if not raw:
            return None, None
        return round(min(raw), 2), round(max(raw), 2)
