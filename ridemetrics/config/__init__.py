"""Configuration and logging setup for ridemetrics."""

from .config import (
    AppConfig,
    CalorieConfig,
    ConfigManager,
    ElevationConfig,
    EngineConfig,
    KinematicsConfig,
    SegmentConfig,
    TerrainConfig,
)
from .logging_config import get_logger, setup_logging

__all__ = [
    'AppConfig', 'CalorieConfig', 'ConfigManager', 'ElevationConfig', 'EngineConfig',
    'KinematicsConfig', 'SegmentConfig', 'TerrainConfig', 'get_logger', 'setup_logging',
]
