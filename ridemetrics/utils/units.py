"""
Unit conversion and formatting helpers for ridemetrics output.
"""

from typing import Optional


class UnitConverter:
    """Handles unit conversions between metric and imperial systems."""

    KM_TO_MILES = 0.621371
    METERS_TO_FEET = 3.28084
    MS_TO_KMH = 3.6

    @staticmethod
    def km_to_miles(km: Optional[float]) -> Optional[float]:
        return km * UnitConverter.KM_TO_MILES if km is not None else None

    @staticmethod
    def meters_to_feet(meters: Optional[float]) -> Optional[float]:
        return meters * UnitConverter.METERS_TO_FEET if meters is not None else None

    @staticmethod
    def ms_to_kmh(speed_ms: Optional[float]) -> Optional[float]:
        return speed_ms * UnitConverter.MS_TO_KMH if speed_ms is not None else None

    @staticmethod
    def format_distance(distance_km: Optional[float], imperial: bool = False) -> str:
        if distance_km is None:
            return "N/A"
        if imperial:
            return f"{UnitConverter.km_to_miles(distance_km):.2f} mi"
        return f"{distance_km:.2f} km"

    @staticmethod
    def format_elevation(elevation_m: Optional[float], imperial: bool = False) -> str:
        if elevation_m is None:
            return "N/A"
        if imperial:
            return f"{UnitConverter.meters_to_feet(elevation_m):.0f} ft"
        return f"{elevation_m:.0f} m"

    @staticmethod
    def format_speed(speed_kmh: Optional[float], imperial: bool = False) -> str:
        if speed_kmh is None:
            return "N/A"
        if imperial:
            return f"{UnitConverter.km_to_miles(speed_kmh):.1f} mph"
        return f"{speed_kmh:.1f} km/h"

    @staticmethod
    def format_duration(seconds: Optional[float]) -> str:
        """Format seconds as H:MM:SS."""
        if seconds is None:
            return "N/A"
        total = int(round(seconds))
        hours, remainder = divmod(total, 3600)
        minutes, secs = divmod(remainder, 60)
        return f"{hours}:{minutes:02d}:{secs:02d}"
