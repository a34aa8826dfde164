"""
Configuration Schemas - Pydantic models for configuration validation.

This module defines the data structures and validation rules for
sandbox limits, extraction timeouts, network behaviour, subtitle timing
and adaptive quality selection.
"""

import re
from typing import Dict, Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class SandboxSettings(BaseModel):
    """Execution context limits for loaded modules."""

    call_timeout: float = Field(
        default=30.0,
        gt=0,
        le=600,
        description="Default per-call timeout in seconds"
    )
    max_contexts: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum number of live module contexts"
    )
    idle_ttl: float = Field(
        default=600.0,
        gt=0,
        description="Seconds of inactivity before a context is evicted"
    )
    sweep_interval: float = Field(
        default=60.0,
        gt=0,
        description="Seconds between idle sweeps"
    )
    console_buffer_size: int = Field(
        default=200,
        ge=10,
        le=10000,
        description="Console messages kept per context"
    )


class ExtractionSettings(BaseModel):
    """Orchestrator timeouts, caching and post-processing."""

    search_timeout: float = Field(
        default=30.0,
        gt=0,
        le=600,
        description="Timeout for each search strategy in seconds"
    )
    details_timeout: float = Field(
        default=10.0,
        gt=0,
        le=600,
        description="Timeout for each details/episodes strategy in seconds"
    )
    streams_timeout: float = Field(
        default=15.0,
        gt=0,
        le=600,
        description="Timeout for each stream strategy in seconds"
    )
    cache_enabled: bool = Field(
        default=True,
        description="Reuse successful results within the cache TTL"
    )
    cache_ttl: float = Field(
        default=300.0,
        ge=0,
        description="Result cache lifetime in seconds"
    )
    chunk_size: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Items built between cancellation checks"
    )
    max_results: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Maximum search results after filtering"
    )
    min_query_length: int = Field(
        default=1,
        ge=1,
        le=10,
        description="Minimum search query length"
    )


class NetworkSettings(BaseModel):
    """HTTP client configuration."""

    timeout: float = Field(
        default=30.0,
        ge=1,
        le=300,
        description="Network timeout in seconds"
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Maximum number of retry attempts"
    )
    retry_delay: float = Field(
        default=1.0,
        ge=0,
        le=30,
        description="Base delay between retries in seconds"
    )
    rotate_user_agents: bool = Field(
        default=True,
        description="Pick a different browser user agent per request"
    )
    user_agent: str = Field(
        default="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        description="User agent used when rotation is disabled"
    )


class SubtitleSettings(BaseModel):
    """Subtitle parsing configuration."""

    time_offset: float = Field(
        default=-0.5,
        ge=-60,
        le=60,
        description="Seconds added to every parsed timecode"
    )
    strip_markup: bool = Field(
        default=False,
        description="Strip tags and unescape entities in cue text"
    )
    default_language: str = Field(
        default="en",
        min_length=2,
        max_length=8,
        description="Language assumed when none is detected"
    )


class QualitySettings(BaseModel):
    """Adaptive quality selection configuration."""

    auto_quality: bool = Field(
        default=True,
        description="Adjust quality from buffer and bandwidth signals"
    )
    conserve_bandwidth: bool = Field(
        default=False,
        description="Prefer lower qualities and a wider safety margin"
    )
    preferences: Dict[str, int] = Field(
        default_factory=lambda: {"wifi": 1080, "cellular": 720, "ethernet": 1080},
        description="Target quality per connection type"
    )
    buffer_low_water: float = Field(
        default=10.0,
        ge=0,
        description="Buffer seconds below which quality steps down"
    )
    buffer_high_water: float = Field(
        default=30.0,
        ge=0,
        description="Buffer seconds above which quality may step up"
    )
    check_interval: float = Field(
        default=5.0,
        gt=0,
        description="Seconds between buffer health checks"
    )
    debounce: float = Field(
        default=1.0,
        ge=0,
        description="Seconds within which quality changes are coalesced"
    )
    network_change_delay: float = Field(
        default=2.0,
        ge=0,
        description="Seconds to wait before reselecting after a network change"
    )

    @field_validator("preferences")
    @classmethod
    def validate_preferences(cls, v: Dict[str, int]) -> Dict[str, int]:
        """Ensure every preference is a positive resolution."""
        for connection, quality in v.items():
            if quality <= 0:
                raise ValueError(f"Quality preference for {connection} must be positive")
        return v

    @model_validator(mode="after")
    def validate_water_marks(self) -> "QualitySettings":
        if self.buffer_low_water >= self.buffer_high_water:
            raise ValueError("buffer_low_water must be below buffer_high_water")
        return self


class UISettings(BaseModel):
    """User interface configuration settings."""

    color_theme: Literal["default", "dark", "light", "colorful"] = Field(
        default="default",
        description="Color theme for the CLI interface"
    )
    table_style: Literal["rounded", "simple", "grid", "minimal"] = Field(
        default="rounded",
        description="Style for data tables"
    )
    max_description_length: int = Field(
        default=400,
        ge=40,
        le=10000,
        description="Characters of synopsis shown in details panels"
    )


class LoggingSettings(BaseModel):
    """Logging configuration settings."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Logging level"
    )
    file: str = Field(
        default="",
        description="Log file name (empty disables file logging)"
    )
    max_size: str = Field(
        default="10MB",
        description="Maximum log file size"
    )
    backup_count: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Number of backup log files to keep"
    )

    @field_validator("max_size")
    @classmethod
    def validate_max_size(cls, v: str) -> str:
        """Validate log file size format."""
        if not re.match(r"^\d+[KMGT]?B$", v.upper()):
            raise ValueError("Invalid size format. Use format like '10MB', '1GB'")
        return v.upper()

    @property
    def max_bytes(self) -> int:
        """Maximum log size in bytes."""
        match = re.match(r"^(\d+)([KMGT]?)B$", self.max_size)
        number, unit = int(match.group(1)), match.group(2)
        return number * 1024 ** " KMGT".index(unit or " ")


class AppSettings(BaseModel):
    """Main application settings container."""

    sandbox: SandboxSettings = Field(default_factory=SandboxSettings)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    network: NetworkSettings = Field(default_factory=NetworkSettings)
    subtitles: SubtitleSettings = Field(default_factory=SubtitleSettings)
    quality: QualitySettings = Field(default_factory=QualitySettings)
    ui: UISettings = Field(default_factory=UISettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @model_validator(mode="after")
    def validate_settings_consistency(self) -> "AppSettings":
        """Keep the idle sweep from outliving the idle TTL."""
        if self.sandbox.sweep_interval > self.sandbox.idle_ttl:
            self.sandbox.sweep_interval = self.sandbox.idle_ttl
        return self


# Export all configuration models
__all__ = [
    "SandboxSettings",
    "ExtractionSettings",
    "NetworkSettings",
    "SubtitleSettings",
    "QualitySettings",
    "UISettings",
    "LoggingSettings",
    "AppSettings",
]
