"""
Terrain classification along a route.

Sampled points are grouped into batches and classified from OpenStreetMap
land-use tags, one Overpass query per batch. When API calls are disabled or a
batch fails with an unexpected error, the whole route falls back to an
elevation-banded heuristic. Both paths end in the same merge step.
"""

import time
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..config.config import TerrainConfig
from ..config.logging_config import get_logger, log_error, log_performance
from ..errors import InvalidTrackPointError
from .geodesy import point_distance
from .models import (
    ElevationProfile,
    TerrainAnalysis,
    TerrainSegment,
    TerrainType,
    TrackPoint,
    ensure_track_points,
)
from .overpass_client import OSMElement, OSMTags, OverpassClient, elements_summary

logger = get_logger(__name__)

SERVICE_CONFIDENCE = 0.8
UNMATCHED_TAGS_CONFIDENCE = 0.3
NO_DATA_CONFIDENCE = 0.2

# Ordered rule table: first tag key with a matching substring wins
TERRAIN_RULES: Tuple[Tuple[str, Tuple[Tuple[Tuple[str, ...], TerrainType], ...]], ...] = (
    ('surface', (
        (('paved', 'asphalt', 'concrete'), TerrainType.URBAN),
        (('gravel', 'dirt', 'ground', 'unpaved'), TerrainType.RURAL),
        (('sand',), TerrainType.DESERT),
    )),
    ('landuse', (
        (('residential',), TerrainType.SUBURBAN),
        (('commercial', 'retail'), TerrainType.URBAN),
        (('industrial',), TerrainType.INDUSTRIAL),
        (('forest', 'wood'), TerrainType.FOREST),
        (('farmland', 'farm'), TerrainType.RURAL),
        (('meadow', 'grass'), TerrainType.GRASSLAND),
    )),
    ('natural', (
        (('wood', 'forest'), TerrainType.FOREST),
        (('water', 'lake'), TerrainType.WATER),
        (('beach', 'coastline'), TerrainType.COASTAL),
        (('grassland', 'heath'), TerrainType.GRASSLAND),
        (('wetland', 'marsh'), TerrainType.WETLAND),
        (('sand', 'dune'), TerrainType.DESERT),
    )),
    ('leisure', (
        (('park', 'garden'), TerrainType.PARK),
    )),
    ('place', (
        (('city', 'town'), TerrainType.URBAN),
        (('village', 'hamlet'), TerrainType.RURAL),
    )),
    ('highway', (
        (('motorway', 'trunk'), TerrainType.URBAN),
        (('primary', 'secondary'), TerrainType.SUBURBAN),
        (('tertiary', 'residential'), TerrainType.SUBURBAN),
        (('unclassified', 'service'), TerrainType.RURAL),
    )),
)


def classify_from_osm_tags(tags: OSMTags) -> TerrainType:
    """Map OSM tags to a terrain type; unrecognized tags never match."""
    for key, rules in TERRAIN_RULES:
        value = getattr(tags, key)
        if not value:
            continue
        value = value.lower()
        for needles, terrain in rules:
            if any(needle in value for needle in needles):
                return terrain
    return TerrainType.UNKNOWN


def classify_by_elevation(point: TrackPoint) -> Tuple[TerrainType, float]:
    """Elevation-banded fallback classification with its confidence."""
    if point.elevation is None:
        return TerrainType.UNKNOWN, NO_DATA_CONFIDENCE

    elevation = point.elevation
    if elevation > 2000:
        return TerrainType.MOUNTAIN, 0.7
    if elevation > 1000:
        return TerrainType.MOUNTAIN, 0.6
    if elevation > 500:
        return TerrainType.RURAL, 0.5
    if elevation < 50:
        return TerrainType.COASTAL, 0.4
    return TerrainType.RURAL, 0.4


def sample_points(points: Sequence[TrackPoint], interval: int) -> List[Tuple[int, TrackPoint]]:
    """Every ``interval``-th point as (route index, point), always ending on the last point."""
    if not points:
        return []
    interval = max(1, interval)
    sampled = [(index, points[index]) for index in range(0, len(points), interval)]
    if sampled[-1][0] != len(points) - 1:
        sampled.append((len(points) - 1, points[-1]))
    return sampled


def segment_distance(points: Sequence[TrackPoint], start: int, end: int) -> float:
    return sum(point_distance(points[i], points[i + 1]) for i in range(start, end))


def merge_adjacent_segments(segments: List[TerrainSegment]) -> List[TerrainSegment]:
    """Running merge of neighbours with the same terrain type."""
    if len(segments) <= 1:
        return list(segments)

    merged = []
    current = segments[0]
    for following in segments[1:]:
        if following.terrain_type == current.terrain_type:
            current = TerrainSegment(
                start_index=current.start_index,
                end_index=following.end_index,
                distance_m=current.distance_m + following.distance_m,
                terrain_type=current.terrain_type,
                elevation_m=(current.elevation_m + following.elevation_m) / 2,
                confidence=(current.confidence + following.confidence) / 2,
            )
        else:
            merged.append(current)
            current = following
    merged.append(current)
    return merged


def calculate_elevation_profile(points: Sequence[TrackPoint]) -> ElevationProfile:
    elevations = [p.elevation for p in points if p.elevation is not None]
    if not elevations:
        return ElevationProfile()

    lowest, highest = min(elevations), max(elevations)

    total_slope = 0.0
    slope_count = 0
    for i in range(1, len(points)):
        prev, curr = points[i - 1], points[i]
        if prev.elevation is None or curr.elevation is None:
            continue
        distance = point_distance(prev, curr)
        if distance > 0:
            total_slope += abs((curr.elevation - prev.elevation) / distance * 100)
            slope_count += 1

    return ElevationProfile(
        min=lowest,
        max=highest,
        range=highest - lowest,
        avg_slope=total_slope / slope_count if slope_count else 0.0,
    )


class TerrainClassifier:
    """Annotates a route with land-use terrain segments.

    Batches are processed strictly one after another with a fixed delay between
    them, alternating between the two configured Overpass endpoints.
    """

    def __init__(self, config: TerrainConfig = None, client: OverpassClient = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config or TerrainConfig()
        self.client = client or OverpassClient(self.config)
        self.sleep = sleep

    def analyze_route(self, points: Sequence[TrackPoint]) -> TerrainAnalysis:
        """Classify terrain along the route. Never raises."""
        try:
            points = ensure_track_points(points)
        except InvalidTrackPointError as e:
            log_error(logger, e, "Terrain analysis received invalid points")
            return TerrainAnalysis()

        if not points:
            return TerrainAnalysis()

        logger.info(f"🗺️ Analyzing terrain for route with {len(points)} points")

        if not self.config.enable_api_calls:
            return self.fallback_elevation_analysis(points)

        start_time = time.time()
        try:
            segments = self._classify_batches(points)
        except Exception as e:
            log_error(logger, e, "Error during terrain analysis, falling back to elevation-based analysis")
            return self.fallback_elevation_analysis(points)

        analysis = self._build_analysis(merge_adjacent_segments(segments), points, source='overpass')
        log_performance(logger, "terrain analysis", time.time() - start_time,
                        f"{len(analysis.segments)} segments, dominant {analysis.dominant_terrain.value}")
        return analysis

    def _classify_batches(self, points: List[TrackPoint]) -> List[TerrainSegment]:
        sampled = sample_points(points, self.config.sample_interval)
        logger.info(f"📍 Sampled {len(sampled)} of {len(points)} points for terrain analysis")

        batch_size = max(1, self.config.batch_size)
        endpoints = self.config.endpoints
        segments: List[TerrainSegment] = []

        for batch_number, start in enumerate(range(0, len(sampled), batch_size)):
            batch = sampled[start:start + batch_size]
            url = endpoints[batch_number % len(endpoints)]
            logger.debug(f"Processing batch {batch_number} (sampled {start}-{start + len(batch) - 1}) via {url}")

            elements = self.client.query_with_retry([point for _, point in batch], url, sleep=self.sleep)
            logger.debug(f"Batch {batch_number} tag counts: {elements_summary(elements)}")
            segments.extend(self._segments_from_batch(points, sampled, start, batch, elements))

            # Rate limiting between batches
            if start + batch_size < len(sampled):
                self.sleep(self.config.api_delay_seconds)

        return segments

    def _segments_from_batch(self, points: Sequence[TrackPoint], sampled: Sequence[Tuple[int, TrackPoint]],
                             start: int, batch: Sequence[Tuple[int, TrackPoint]],
                             elements: Optional[List[OSMElement]]) -> List[TerrainSegment]:
        """One segment per batch point; element i of the response belongs to batch point i."""
        results = []
        for offset, (route_index, point) in enumerate(batch):
            next_position = start + offset + 1
            end_index = sampled[next_position][0] if next_position < len(sampled) else len(points) - 1

            if elements and offset < len(elements):
                terrain = classify_from_osm_tags(elements[offset].tags)
                confidence = SERVICE_CONFIDENCE if terrain != TerrainType.UNKNOWN else UNMATCHED_TAGS_CONFIDENCE
            else:
                terrain, confidence = TerrainType.UNKNOWN, NO_DATA_CONFIDENCE

            results.append(TerrainSegment(
                start_index=route_index,
                end_index=end_index,
                distance_m=segment_distance(points, route_index, end_index),
                terrain_type=terrain,
                elevation_m=point.elevation if point.elevation is not None else 0.0,
                confidence=confidence,
            ))
        return results

    def fallback_elevation_analysis(self, points: Sequence[TrackPoint]) -> TerrainAnalysis:
        """Point-by-point elevation classification, merged like the API path."""
        logger.info("Using elevation-based terrain classification")
        if not points:
            return TerrainAnalysis()

        segments: List[TerrainSegment] = []
        run_start = 0
        run_terrain, run_confidence = classify_by_elevation(points[0])
        confidences = [run_confidence]

        for i in range(1, len(points) + 1):
            terrain = None
            if i < len(points):
                terrain, confidence = classify_by_elevation(points[i])
                if terrain == run_terrain:
                    confidences.append(confidence)
                    continue

            # Close the run [run_start, i - 1]
            end = i - 1
            middle = points[(run_start + end) // 2]
            segments.append(TerrainSegment(
                start_index=run_start,
                end_index=end,
                distance_m=segment_distance(points, run_start, end),
                terrain_type=run_terrain,
                elevation_m=middle.elevation if middle.elevation is not None else 0.0,
                confidence=sum(confidences) / len(confidences),
            ))

            if terrain is not None:
                run_start, run_terrain, confidences = i, terrain, [confidence]

        return self._build_analysis(merge_adjacent_segments(segments), points, source='elevation')

    def _build_analysis(self, segments: List[TerrainSegment], points: Sequence[TrackPoint],
                        source: str) -> TerrainAnalysis:
        distribution, percentages, dominant = self.calculate_summary(segments)
        analysis = TerrainAnalysis(
            segments=segments,
            dominant_terrain=dominant,
            terrain_distribution=distribution,
            terrain_percentages=percentages,
            elevation_profile=calculate_elevation_profile(points),
            source=source,
        )
        logger.info(f"✅ Terrain analysis complete: {len(segments)} segments identified ({source})")
        logger.info(f"📊 Dominant terrain: {dominant.value}")
        return analysis

    @staticmethod
    def calculate_summary(segments: Sequence[TerrainSegment]
                          ) -> Tuple[Dict[TerrainType, float], Dict[TerrainType, float], TerrainType]:
        """Distance and percentage per terrain type plus the dominant type."""
        distribution: Dict[TerrainType, float] = {}
        for segment in segments:
            distribution[segment.terrain_type] = distribution.get(segment.terrain_type, 0.0) + segment.distance_m

        total = sum(distribution.values())
        percentages = {
            terrain: (distance / total * 100 if total > 0 else 0.0)
            for terrain, distance in distribution.items()
        }

        dominant = TerrainType.UNKNOWN
        max_distance = 0.0
        for terrain, distance in distribution.items():
            if distance > max_distance:
                max_distance = distance
                dominant = terrain

        return distribution, percentages, dominant
