"""
OpenStreetMap Overpass API client used by the terrain classifier.

One bounding-box query is issued per batch of sampled points. Timeouts are
retried with exponential backoff; any other failure is reported as "no result"
straight away.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence

import requests

from ..config.config import TerrainConfig
from ..config.logging_config import get_logger
from ..errors import TerrainServiceTimeout
from .models import TrackPoint

logger = get_logger(__name__)

# Tag keys the classification rules know about
KNOWN_TAG_KEYS = ('surface', 'landuse', 'natural', 'leisure', 'place', 'highway')


@dataclass(frozen=True)
class OSMTags:
    """Closed record of the OSM tags used for terrain classification."""
    surface: Optional[str] = None
    landuse: Optional[str] = None
    natural: Optional[str] = None
    leisure: Optional[str] = None
    place: Optional[str] = None
    highway: Optional[str] = None
    unrecognized: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, tags: Optional[Mapping[str, str]]) -> 'OSMTags':
        tags = tags or {}
        known = {key: str(tags[key]) for key in KNOWN_TAG_KEYS if tags.get(key)}
        extra = {key: str(value) for key, value in tags.items() if key not in KNOWN_TAG_KEYS}
        return cls(unrecognized=extra, **known)


@dataclass(frozen=True)
class OSMElement:
    type: str
    tags: OSMTags

    @classmethod
    def from_dict(cls, element: Mapping) -> 'OSMElement':
        return cls(type=str(element.get('type', 'way')), tags=OSMTags.from_dict(element.get('tags')))


@dataclass
class RetryState:
    """Attempt counter and backoff schedule for one query.

    A query gets ``max_retries + 1`` attempts; the wait after a failed attempt
    ``n`` (0-based) is ``base_delay * 2 ** (n + 1)`` seconds.
    """
    max_retries: int
    base_delay: float = 1.0
    attempt: int = 0

    @property
    def can_retry(self) -> bool:
        return self.attempt < self.max_retries

    @property
    def next_delay(self) -> float:
        return self.base_delay * 2 ** (self.attempt + 1)

    def advance(self) -> None:
        self.attempt += 1


def build_bbox_query(points: Sequence[TrackPoint], radius_m: int, server_timeout_s: int) -> str:
    """Overpass QL for land-use features around each point, bounded by the batch bbox."""
    south = min(p.lat for p in points)
    north = max(p.lat for p in points)
    west = min(p.lon for p in points)
    east = max(p.lon for p in points)

    lines = [f"[bbox:{south},{west},{north},{east}][out:json][timeout:{server_timeout_s}];", "("]
    for point in points:
        around = f"around:{radius_m},{point.lat},{point.lon}"
        for key in KNOWN_TAG_KEYS:
            lines.append(f'  way({around})["{key}"];')
    lines.append(");")
    lines.append("out geom;")
    return "\n".join(lines)


class OverpassClient:
    """Issues bounded land-use queries against an Overpass endpoint."""

    def __init__(self, config: TerrainConfig = None):
        self.config = config or TerrainConfig()
        # Server-side timeout slightly below the client timeout
        self.server_timeout_s = max(1, int(self.config.api_timeout_seconds) - 2)

    def query_bbox(self, points: Sequence[TrackPoint], url: str) -> Optional[List[OSMElement]]:
        """
        Query one endpoint for the features around a batch of points.

        Returns:
            Elements in response order, or None when nothing usable came back

        Raises:
            TerrainServiceTimeout: the request exceeded the configured timeout
        """
        query = build_bbox_query(points, self.config.query_radius_m, self.server_timeout_s)

        start_time = time.time()
        try:
            response = requests.post(
                url,
                data=query,
                headers={'Content-Type': 'text/plain; charset=utf-8'},
                timeout=self.config.api_timeout_seconds,
            )
        except requests.exceptions.Timeout as e:
            logger.warning(f"Overpass API timeout after {time.time() - start_time:.1f}s: {url}")
            raise TerrainServiceTimeout(f"Overpass request to {url} timed out") from e
        except requests.exceptions.RequestException as e:
            logger.warning(f"Overpass API request failed: {e}")
            return None

        logger.debug(f"Overpass API {url} answered in {time.time() - start_time:.2f}s: "
                     f"{response.status_code}")
        if not response.ok:
            return None

        try:
            data = response.json()
        except ValueError as e:
            logger.warning(f"Overpass API returned invalid JSON: {e}")
            return None

        elements = data.get('elements') if isinstance(data, dict) else None
        if not elements:
            return None

        logger.debug(f"Overpass API returned {len(elements)} elements")
        return [OSMElement.from_dict(element) for element in elements]

    def query_with_retry(self, points: Sequence[TrackPoint], url: str,
                         sleep: Callable[[float], None] = time.sleep) -> Optional[List[OSMElement]]:
        """Query with exponential backoff on timeouts.

        Only timeouts are retried. A final failure degrades to None so that one
        bad batch does not abort the route.
        """
        state = RetryState(max_retries=self.config.max_retries)
        last_error: Optional[Exception] = None

        while True:
            try:
                return self.query_bbox(points, url)
            except TerrainServiceTimeout as e:
                last_error = e
                if not state.can_retry:
                    break
                delay = state.next_delay
                logger.debug(f"Overpass API attempt {state.attempt + 1} failed, retrying in {delay:.0f}s...")
                sleep(delay)
                state.advance()

        logger.warning(f"Overpass API failed after {state.attempt + 1} attempts: {last_error}")
        return None


def elements_summary(elements: Optional[Sequence[OSMElement]]) -> Dict[str, int]:
    """Count of elements per known tag key, for debug logging."""
    counts = {key: 0 for key in KNOWN_TAG_KEYS}
    for element in elements or []:
        for key in KNOWN_TAG_KEYS:
            if getattr(element.tags, key):
                counts[key] += 1
    return counts
