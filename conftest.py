import math
from datetime import datetime, timedelta, timezone

import pytest

from ridemetrics.processing.geodesy import EARTH_RADIUS_M

GPX_HEADER = """<?xml version="1.0" encoding="UTF-8"?>
<gpx version="1.1" creator="ridemetrics-tests"
     xmlns="http://www.topografix.com/GPX/1/1"
     xmlns:gpxtpx="http://www.garmin.com/xmlschemas/TrackPointExtension/v1"
     xmlns:gpxtrkx="http://www.garmin.com/xmlschemas/TrackStatsExtension/v1">
"""


def build_gpx(elevations, step_m=50.0, step_s=10, heart_rate=None, power=None, cadence=None,
              track_stats=None, name="Morning Ride"):
    """GPX text for a ride heading due north, one trkpt per elevation value."""
    start = datetime(2024, 7, 14, 6, 45, tzinfo=timezone.utc)
    step_degrees = math.degrees(step_m / EARTH_RADIUS_M)

    trkpts = []
    for i, elevation in enumerate(elevations):
        sensors = []
        if heart_rate is not None:
            sensors.append(f"<gpxtpx:hr>{heart_rate}</gpxtpx:hr>")
        if cadence is not None:
            sensors.append(f"<gpxtpx:cad>{cadence}</gpxtpx:cad>")
        if power is not None:
            sensors.append(f"<gpxtpx:power>{power}</gpxtpx:power>")
        extensions = ""
        if sensors:
            extensions = ("<extensions><gpxtpx:TrackPointExtension>"
                          + "".join(sensors) + "</gpxtpx:TrackPointExtension></extensions>")
        when = (start + timedelta(seconds=i * step_s)).strftime("%Y-%m-%dT%H:%M:%SZ")
        trkpts.append(
            f'<trkpt lat="{45.0 + i * step_degrees:.8f}" lon="6.0">'
            f"<ele>{elevation}</ele><time>{when}</time>{extensions}</trkpt>"
        )

    stats = ""
    if track_stats:
        stats = ("<extensions><gpxtrkx:TrackStatsExtension>"
                 + "".join(f"<gpxtrkx:{key}>{value}</gpxtrkx:{key}>" for key, value in track_stats.items())
                 + "</gpxtrkx:TrackStatsExtension></extensions>")

    return (GPX_HEADER + f"<trk><name>{name}</name>{stats}<trkseg>"
            + "".join(trkpts) + "</trkseg></trk></gpx>")


@pytest.fixture
def climb_gpx() -> str:
    """30 points: a 10% climb over 15 steps, then flat, with HR and power."""
    elevations = [300 + 5 * i for i in range(15)] + [370] * 15
    return build_gpx(elevations, heart_rate=140, power=200, cadence=85)


@pytest.fixture
def gpx_builder():
    return build_gpx
