"""
Climb/descent segment detection.

Works on the gradient series between consecutive smoothed elevation samples,
not on individual points: a sliding-window average of the gradient decides
where the route switches between climbing, descending and flat riding.
"""

from typing import List, Optional, Sequence

import numpy as np

from ..config.config import SegmentConfig
from ..config.logging_config import get_logger
from .elevation import exponential_smoothing
from .geodesy import calculate_gradient, point_distance
from .models import Segment, SegmentType, TrackPoint, elevation_points, ensure_track_points

logger = get_logger(__name__)


def get_segment_type(gradient: float, threshold: float) -> SegmentType:
    """Classify a gradient (percent) against a symmetric threshold."""
    if gradient > threshold:
        return SegmentType.CLIMB
    if gradient < -threshold:
        return SegmentType.DESCENT
    return SegmentType.FLAT


class SegmentDetector:
    """Splits a route into climb, descent and flat segments."""

    def __init__(self, config: SegmentConfig = None):
        self.config = config or SegmentConfig()

    def detect(self, points: Sequence[TrackPoint]) -> List[Segment]:
        """Identify climbing and descending segments.

        Segment indices refer to positions in ``points``. Routes with fewer
        elevation samples than ``min_elevation_points`` yield no segments, and so
        do routes where no climb or descent survives classification.
        """
        points = ensure_track_points(points)
        indexed = elevation_points(points)
        if len(indexed) < self.config.min_elevation_points:
            logger.debug(f"Only {len(indexed)} elevation points, skipping segment detection")
            return []

        route_indices = [index for index, _ in indexed]
        elevated = [point for _, point in indexed]

        # Step 1: smooth elevation for boundary detection
        smoothed = exponential_smoothing([p.elevation for p in elevated], self.config.smoothing_factor)

        # Step 2: gradients between consecutive points
        distances = [point_distance(elevated[i], elevated[i + 1]) for i in range(len(elevated) - 1)]
        gradients = self.calculate_gradients(smoothed, distances)

        # Step 3: boundaries where the windowed classification changes
        boundaries = self.find_segment_boundaries(gradients, len(elevated))

        # Step 4: build candidate segments, dropping short ones
        segments = []
        for start, end in zip(boundaries, boundaries[1:]):
            if end - start < 1:
                continue
            segment = self.create_segment(elevated, smoothed, distances, start, end, route_indices)
            if segment.distance >= self.config.min_segment_distance_m:
                segments.append(segment)

        # Step 5: merge short neighbours of the same type
        merged = self.merge_adjacent_segments(segments)

        if all(segment.type == SegmentType.FLAT for segment in merged):
            logger.debug("No climbs or descents detected")
            return []

        logger.debug(f"Identified {len(merged)} segments")
        return merged

    @staticmethod
    def calculate_gradients(elevations: Sequence[float], distances: Sequence[float]) -> List[float]:
        return [
            calculate_gradient(distances[i], elevations[i + 1] - elevations[i])
            for i in range(len(distances))
        ]

    def find_segment_boundaries(self, gradients: Sequence[float], point_count: int) -> List[int]:
        """Point indices where a new segment starts, plus the first and last point."""
        boundaries = [0]
        if not gradients:
            boundaries.append(point_count - 1)
            return boundaries

        window = self.config.window_size
        threshold = self.config.gradient_threshold
        current_type = get_segment_type(gradients[0], threshold)

        for i in range(window, len(gradients) - window):
            window_gradients = gradients[max(0, i - window):min(len(gradients), i + window)]
            new_type = get_segment_type(float(np.mean(window_gradients)), threshold)

            if new_type != current_type:
                boundaries.append(i)
                current_type = new_type

        boundaries.append(point_count - 1)
        return boundaries

    def create_segment(self, points: Sequence[TrackPoint], elevations: Sequence[float],
                       distances: Sequence[float], start: int, end: int,
                       route_indices: Sequence[int]) -> Segment:
        """Build a segment over points[start..end] using smoothed elevations."""
        step_distances = distances[start:end]
        total_distance = float(sum(step_distances))

        max_gradient = 0.0
        for offset, distance in enumerate(step_distances):
            change = elevations[start + offset + 1] - elevations[start + offset]
            max_gradient = max(max_gradient, abs(calculate_gradient(distance, change)))

        net_change = elevations[end] - elevations[start]
        net_gradient = calculate_gradient(total_distance, net_change)

        # Stricter re-classification on the segment's own net gradient
        segment_type = get_segment_type(net_gradient, self.config.final_gradient_threshold)

        duration: Optional[float] = None
        if points[start].time is not None and points[end].time is not None:
            duration = (points[end].time - points[start].time).total_seconds()

        return Segment(
            type=segment_type,
            distance=total_distance,
            elevation_change=net_change,
            avg_gradient=abs(net_gradient),
            max_gradient=max_gradient,
            start_index=route_indices[start],
            end_index=route_indices[end],
            duration=duration,
        )

    def merge_adjacent_segments(self, segments: List[Segment]) -> List[Segment]:
        """Merge same-type neighbours when the earlier one is short."""
        if len(segments) <= 1:
            return list(segments)

        merged = []
        current = segments[0]

        for following in segments[1:]:
            if current.type == following.type and current.distance < self.config.merge_distance_m:
                combined_distance = current.distance + following.distance
                if combined_distance > 0:
                    avg_gradient = (current.avg_gradient * current.distance
                                    + following.avg_gradient * following.distance) / combined_distance
                else:
                    avg_gradient = 0.0
                duration = None
                if current.duration is not None and following.duration is not None:
                    duration = current.duration + following.duration

                current = Segment(
                    type=current.type,
                    distance=combined_distance,
                    elevation_change=current.elevation_change + following.elevation_change,
                    avg_gradient=avg_gradient,
                    max_gradient=max(current.max_gradient, following.max_gradient),
                    start_index=current.start_index,
                    end_index=following.end_index,
                    duration=duration,
                )
            else:
                merged.append(current)
                current = following

        merged.append(current)
        return merged
