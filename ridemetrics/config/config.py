"""
Configuration management for the ridemetrics engine.
Centralizes environment variables and analysis thresholds.

Every section is a frozen dataclass: an EngineConfig is built once (by hand or
through ConfigManager) and passed explicitly to each pipeline stage.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

from .logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AppConfig:
    """General application configuration."""
    log_level: str = "INFO"
    log_to_file: bool = False
    log_directory: str = "logs"


@dataclass(frozen=True)
class KinematicsConfig:
    """Moving-time and speed detection thresholds."""
    min_moving_distance_m: float = 0.5    # steps shorter than this are GPS jitter while stopped
    min_moving_speed_ms: float = 0.5      # 1.8 km/h - below this is considered stopped
    max_sensor_speed_ms: float = 200.0    # sensor speeds at or above this are ignored
    spike_factor: float = 2.0             # step distance spike rejection relative to running mean


@dataclass(frozen=True)
class ElevationConfig:
    """Elevation smoothing and gain/loss thresholds."""
    smoothing_window: int = 3
    max_change_per_step_m: float = 50.0
    min_threshold_m: float = 3.0
    summary_smoothing_factor: float = 0.4
    summary_threshold_m: float = 1.0


@dataclass(frozen=True)
class SegmentConfig:
    """Climb/descent segment detection parameters."""
    window_size: int = 5
    gradient_threshold: float = 2.0
    final_gradient_threshold: float = 2.0
    min_segment_distance_m: float = 100.0
    merge_distance_m: float = 200.0
    smoothing_factor: float = 0.3
    min_elevation_points: int = 10


@dataclass(frozen=True)
class CalorieConfig:
    """Calorie estimation and zone constants."""
    kcal_per_km: float = 20.0
    kcal_per_meter_gain: float = 0.1
    heart_rate_kcal_per_min: float = 8.0
    kcal_per_kj: float = 3.6
    max_heart_rate: int = 190
    normalized_power_window: int = 30
    zone_min_time_s: float = 2.0
    zone_max_time_s: float = 300.0
    zone_min_speed_kmh: float = 1.0
    zone_max_speed_kmh: float = 70.0
    zone_min_distance_m: float = 2.0


@dataclass(frozen=True)
class TerrainConfig:
    """Terrain classification and Overpass API configuration."""
    overpass_api_url: str = "https://overpass-api.de/api/interpreter"
    overpass_api_url_secondary: str = "https://overpass.kumi.systems/api/interpreter"
    enable_api_calls: bool = True
    sample_interval: int = 10
    batch_size: int = 5
    api_timeout_seconds: float = 15.0
    api_delay_seconds: float = 1.5
    max_retries: int = 3
    query_radius_m: int = 100

    @property
    def endpoints(self) -> Tuple[str, str]:
        """Endpoints round-robined across batches."""
        return (self.overpass_api_url, self.overpass_api_url_secondary)


@dataclass(frozen=True)
class EngineConfig:
    """Immutable bundle of every configuration section."""
    app: AppConfig = field(default_factory=AppConfig)
    kinematics: KinematicsConfig = field(default_factory=KinematicsConfig)
    elevation: ElevationConfig = field(default_factory=ElevationConfig)
    segments: SegmentConfig = field(default_factory=SegmentConfig)
    calories: CalorieConfig = field(default_factory=CalorieConfig)
    terrain: TerrainConfig = field(default_factory=TerrainConfig)


class ConfigManager:
    """Loads an EngineConfig from environment variables."""

    def __init__(self, environ: Dict[str, str] = None):
        """Initialize configuration manager.

        Args:
            environ: Mapping to read settings from (defaults to os.environ)
        """
        logger.info("Initializing configuration manager")
        self._environ = os.environ if environ is None else environ
        self._config = self._load_configurations()

    def _get(self, name: str, default: Any) -> str:
        return self._environ.get(name, str(default))

    def _get_bool(self, name: str, default: bool) -> bool:
        return self._get(name, default).lower() in ("1", "true", "yes", "on")

    def _load_configurations(self) -> EngineConfig:
        """Load all configuration sections."""
        try:
            config = EngineConfig(
                app=self._load_app_config(),
                kinematics=KinematicsConfig(
                    min_moving_speed_ms=float(self._get("MIN_MOVING_SPEED_MS", 0.5)),
                ),
                elevation=ElevationConfig(
                    smoothing_window=int(self._get("ELEVATION_SMOOTHING_WINDOW", 3)),
                    max_change_per_step_m=float(self._get("ELEVATION_MAX_CHANGE_M", 50.0)),
                    min_threshold_m=float(self._get("ELEVATION_MIN_THRESHOLD_M", 3.0)),
                ),
                segments=SegmentConfig(
                    gradient_threshold=float(self._get("SEGMENT_GRADIENT_THRESHOLD", 2.0)),
                    min_segment_distance_m=float(self._get("SEGMENT_MIN_DISTANCE_M", 100.0)),
                ),
                calories=CalorieConfig(
                    max_heart_rate=int(self._get("MAX_HEART_RATE", 190)),
                    heart_rate_kcal_per_min=float(self._get("HEART_RATE_KCAL_PER_MIN", 8.0)),
                ),
                terrain=self._load_terrain_config(),
            )
            logger.info("All configurations loaded successfully")
            return config

        except ValueError as e:
            logger.error(f"Error loading configurations: {e}")
            raise

    def _load_app_config(self) -> AppConfig:
        """Load general application configuration."""
        config = AppConfig(
            log_level=self._get("LOG_LEVEL", "INFO").upper(),
            log_to_file=self._get_bool("LOG_TO_FILE", False),
            log_directory=self._get("LOG_DIRECTORY", "logs"),
        )
        logger.debug(f"App config loaded - Log level: {config.log_level}")
        return config

    def _load_terrain_config(self) -> TerrainConfig:
        """Load terrain service configuration."""
        defaults = TerrainConfig()
        config = TerrainConfig(
            overpass_api_url=self._get("OVERPASS_API_URL", defaults.overpass_api_url),
            overpass_api_url_secondary=self._get("OVERPASS_API_URL_SECONDARY",
                                                 defaults.overpass_api_url_secondary),
            enable_api_calls=self._get_bool("TERRAIN_ENABLE_API_CALLS", defaults.enable_api_calls),
            sample_interval=int(self._get("TERRAIN_SAMPLE_INTERVAL", defaults.sample_interval)),
            batch_size=int(self._get("TERRAIN_BATCH_SIZE", defaults.batch_size)),
            api_timeout_seconds=float(self._get("TERRAIN_API_TIMEOUT", defaults.api_timeout_seconds)),
            api_delay_seconds=float(self._get("TERRAIN_API_DELAY", defaults.api_delay_seconds)),
            max_retries=int(self._get("TERRAIN_MAX_RETRIES", defaults.max_retries)),
            query_radius_m=int(self._get("TERRAIN_QUERY_RADIUS", defaults.query_radius_m)),
        )
        logger.debug(f"Terrain config loaded - API calls enabled: {config.enable_api_calls}, "
                     f"URL: {config.overpass_api_url}")
        return config

    @property
    def config(self) -> EngineConfig:
        """Get the full engine configuration."""
        return self._config

    @property
    def app(self) -> AppConfig:
        return self._config.app

    @property
    def terrain(self) -> TerrainConfig:
        return self._config.terrain

    def get_environment_info(self) -> Dict[str, Any]:
        """Get environment information for debugging."""
        return {
            "log_level": self._config.app.log_level,
            "terrain_api_enabled": self._config.terrain.enable_api_calls,
            "terrain_endpoints": list(self._config.terrain.endpoints),
            "max_heart_rate": self._config.calories.max_heart_rate,
        }

    def validate_configuration(self) -> Dict[str, bool]:
        """Validate all configuration sections."""
        terrain = self._config.terrain
        validation_results = {
            "valid_log_level": self._config.app.log_level in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            "overpass_urls_valid": all(url.startswith("http") for url in terrain.endpoints),
            "terrain_timeout_valid": terrain.api_timeout_seconds > 0,
            "terrain_sampling_valid": terrain.sample_interval >= 1 and terrain.batch_size >= 1,
            "segment_window_valid": self._config.segments.window_size >= 1,
            "max_heart_rate_valid": self._config.calories.max_heart_rate > 0,
        }

        logger.info(f"Configuration validation completed: "
                    f"{sum(validation_results.values())}/{len(validation_results)} checks passed")

        return validation_results
