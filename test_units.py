#!/usr/bin/env python3
"""
Tests for unit conversion and report formatting.
"""

import os
import sys

import pytest

# Add the project root to the path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from ridemetrics.utils.units import UnitConverter


def test_conversions():
    assert UnitConverter.km_to_miles(10) == pytest.approx(6.21371)
    assert UnitConverter.meters_to_feet(100) == pytest.approx(328.084)
    assert UnitConverter.ms_to_kmh(5) == pytest.approx(18.0)
    assert UnitConverter.km_to_miles(None) is None


def test_formatting():
    assert UnitConverter.format_distance(42.2) == "42.20 km"
    assert UnitConverter.format_distance(10, imperial=True) == "6.21 mi"
    assert UnitConverter.format_elevation(1234.4) == "1234 m"
    assert UnitConverter.format_elevation(100, imperial=True) == "328 ft"
    assert UnitConverter.format_speed(27.26) == "27.3 km/h"
    assert UnitConverter.format_speed(None) == "N/A"


def test_format_duration():
    assert UnitConverter.format_duration(0) == "0:00:00"
    assert UnitConverter.format_duration(3725) == "1:02:05"
    assert UnitConverter.format_duration(59.6) == "0:01:00"


def main():
    """Run unit conversion tests."""
    print("=== Unit Conversion Tests ===")
    test_conversions()
    test_formatting()
    test_format_duration()
    print("✅ Unit conversion tests passed")


if __name__ == "__main__":
    main()
