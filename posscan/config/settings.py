"""
==============================================================================
Application Settings Module
==============================================================================

Configuration management for the scanner using Pydantic Settings.

A single global configuration instance is shared through the cached
``get_settings()`` accessor.

Features:
---------
- Environment variable loading with type validation
- .env file support for local development
- Camera, sampler and preprocessing tuning knobs
- Optional debug output of the scanned region

Configuration Priority (highest to lowest):
------------------------------------------
1. Environment variables
2. .env file
3. Default values

==============================================================================
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Module logger
logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        app_name: Display name for the application
        app_env: Environment mode (development/staging/production)
        debug: Enable debug mode for verbose logging
        host: Server bind address
        port: Server port number
        camera_index: Default capture device index
        camera_width: Ideal capture width in pixels
        camera_height: Ideal capture height in pixels
        camera_max_probe: Device indices probed when sysfs is unavailable
        frame_interval_ms: Delay between sampling ticks
        debounce_window_ms: Minimum gap between two emitted scans
        preprocess_enabled: Apply contrast and sharpen to the ROI
        contrast_factor: Linear contrast stretch factor
        zoom: Digital zoom applied before ROI extraction (1.0 = off)
        debug_roi_path: File receiving the processed ROI each tick
        cors_origins: Allowed CORS origins (JSON array string)

    Example:
        >>> settings = Settings()
        >>> settings.debounce_window_ms
        1000
    """

    # =========================================================================
    # PYDANTIC SETTINGS CONFIGURATION
    # =========================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    # =========================================================================
    # APPLICATION SETTINGS
    # =========================================================================
    app_name: str = Field(
        default="POS Barcode Scanner",
        description="Display name for the application"
    )

    app_env: str = Field(
        default="development",
        description="Environment mode: development, staging, production"
    )

    debug: bool = Field(
        default=False,
        description="Enable debug mode for verbose logging"
    )

    # =========================================================================
    # SERVER SETTINGS
    # =========================================================================
    host: str = Field(
        default="0.0.0.0",
        description="Server bind address"
    )

    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Server port number"
    )

    # =========================================================================
    # CAMERA SETTINGS
    # =========================================================================
    camera_index: int = Field(
        default=0,
        ge=0,
        description="Default capture device index"
    )

    camera_width: int = Field(
        default=1920,
        ge=1,
        description="Ideal capture width"
    )

    camera_height: int = Field(
        default=1080,
        ge=1,
        description="Ideal capture height"
    )

    camera_max_probe: int = Field(
        default=4,
        ge=1,
        le=16,
        description="Device indices probed when no sysfs listing exists"
    )

    # =========================================================================
    # SAMPLER SETTINGS
    # =========================================================================
    frame_interval_ms: int = Field(
        default=33,
        ge=1,
        le=1000,
        description="Delay between sampling ticks in milliseconds"
    )

    debounce_window_ms: int = Field(
        default=1000,
        ge=0,
        le=60000,
        description="Minimum gap between two emitted scans"
    )

    # =========================================================================
    # PREPROCESSING SETTINGS
    # =========================================================================
    preprocess_enabled: bool = Field(
        default=True,
        description="Apply contrast stretch and sharpening to the ROI"
    )

    contrast_factor: float = Field(
        default=1.5,
        gt=0,
        le=10,
        description="Linear contrast factor around midpoint 128"
    )

    zoom: float = Field(
        default=1.5,
        ge=1.0,
        le=8.0,
        description="Centered digital zoom before ROI extraction"
    )

    # =========================================================================
    # DEBUG SETTINGS
    # =========================================================================
    debug_roi_path: Optional[str] = Field(
        default=None,
        description="Image file receiving the processed ROI"
    )

    # =========================================================================
    # CORS SETTINGS
    # =========================================================================
    cors_origins: str = Field(
        default='["*"]',
        description="Allowed CORS origins as JSON array string"
    )

    # =========================================================================
    # VALIDATORS
    # =========================================================================
    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, value: str) -> str:
        """
        Validate and normalize application environment.

        Args:
            value: Raw environment value

        Returns:
            Lowercase normalized environment name
        """
        valid_envs = {"development", "staging", "production"}
        normalized = value.lower().strip()

        if normalized not in valid_envs:
            logger.warning(
                f"Unknown environment '{value}', defaulting to 'development'"
            )
            return "development"

        return normalized

    @field_validator("debug_roi_path")
    @classmethod
    def empty_path_is_none(cls, value: Optional[str]) -> Optional[str]:
        """Treat an empty path as unset."""
        if value is not None and not value.strip():
            return None
        return value

    # =========================================================================
    # COMPUTED PROPERTIES
    # =========================================================================
    @property
    def frame_interval_seconds(self) -> float:
        """Sampling interval as seconds for the event loop."""
        return self.frame_interval_ms / 1000

    @property
    def debug_roi_file(self) -> Optional[Path]:
        """Debug ROI output as a Path, if configured."""
        if self.debug_roi_path is None:
            return None
        return Path(self.debug_roi_path)

    @property
    def cors_origins_list(self) -> List[str]:
        """
        Parse CORS origins from JSON string to list.

        Returns:
            List of allowed origin strings
        """
        try:
            origins = json.loads(self.cors_origins)
            if isinstance(origins, list):
                return origins
            return ["*"]
        except json.JSONDecodeError:
            logger.warning(
                f"Invalid CORS origins JSON: {self.cors_origins}, "
                "defaulting to ['*']"
            )
            return ["*"]

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"Settings(app_name={self.app_name!r}, "
            f"app_env={self.app_env!r}, "
            f"camera_index={self.camera_index}, "
            f"debug={self.debug})"
        )


# =============================================================================
# SINGLETON INSTANCE MANAGEMENT
# =============================================================================

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get the global Settings instance.

    Returns:
        Global Settings instance
    """
    settings = Settings()

    if settings.debug:
        logger.info(f"Configuration loaded: {settings}")

    return settings
