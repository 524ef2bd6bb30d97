"""
GPX adapter: turns GPX content into an immutable Track for the engine.

This is plumbing only; no metrics are computed here.
"""

import math
from typing import Dict, Iterable, Optional

import gpxpy
import gpxpy.gpx

from ..config.logging_config import get_logger, log_function_entry, log_function_exit
from ..errors import GPXParseError, InvalidTrackPointError
from .models import Track, TrackPoint

logger = get_logger(__name__)

# TrackPointExtension child element -> TrackPoint field
POINT_EXTENSION_FIELDS = {
    'hr': 'heart_rate',
    'cad': 'cadence',
    'speed': 'speed',
    'power': 'power',
    'atemp': 'temperature',
}

# gpxtrkx:TrackStatsExtension child element -> Track field
TRACK_STATS_FIELDS = {
    'Distance': 'reported_distance_m',
    'TimerTime': 'reported_timer_time_s',
    'MovingTime': 'reported_moving_time_s',
    'StoppedTime': 'reported_stopped_time_s',
    'MaxSpeed': 'reported_max_speed_ms',
}


def _local_name(tag: str) -> str:
    """Strip the XML namespace and prefix from an element tag."""
    if not isinstance(tag, str):
        return ''
    return tag.rsplit('}', 1)[-1].rsplit(':', 1)[-1]


def _to_float(text: Optional[str]) -> Optional[float]:
    if text is None:
        return None
    try:
        value = float(text.strip())
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def parse_extension_values(extensions: Iterable, fields: Dict[str, str]) -> Dict[str, float]:
    """Collect numeric values of known child elements anywhere under the extensions."""
    values = {}
    for extension in extensions or []:
        for element in extension.iter():
            name = fields.get(_local_name(element.tag))
            if name is None or name in values:
                continue
            value = _to_float(element.text)
            if value is not None:
                values[name] = value
    return values


def load_track_from_gpx(gpx_content: str) -> Track:
    """Parse GPX content and return all track points as one Track.

    Args:
        gpx_content: String content of the GPX file

    Returns:
        Track with points from every track and segment in file order

    Raises:
        GPXParseError: the content is not valid GPX or holds no track points
    """
    log_function_entry(logger, "load_track_from_gpx", length=len(gpx_content))

    try:
        gpx = gpxpy.parse(gpx_content)
    except (gpxpy.gpx.GPXException, ValueError) as e:
        raise GPXParseError(f"Error parsing GPX file: {e}") from e

    points = []
    for track in gpx.tracks:
        for segment in track.segments:
            for point in segment.points:
                sensors = parse_extension_values(point.extensions, POINT_EXTENSION_FIELDS)
                try:
                    points.append(TrackPoint(
                        lat=point.latitude,
                        lon=point.longitude,
                        elevation=point.elevation,
                        time=point.time,
                        **sensors,
                    ))
                except InvalidTrackPointError as e:
                    logger.warning(f"Skipping invalid GPX point: {e}")

    if not points:
        raise GPXParseError("No track data found in GPX file")

    first_track = gpx.tracks[0]
    reported = parse_extension_values(first_track.extensions, TRACK_STATS_FIELDS)
    if reported:
        logger.debug(f"Device-reported track stats: {reported}")

    result = Track(
        points=tuple(points),
        name=first_track.name or gpx.name or 'Unnamed Track',
        **reported,
    )
    logger.info(f"Loaded {len(points)} points from GPX track '{result.name}'")
    log_function_exit(logger, "load_track_from_gpx", result)
    return result
