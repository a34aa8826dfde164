"""
Core Layer - Sandbox, extraction and result processing.

This module contains the module sandbox, the extraction orchestrator,
result models, stream normalization, subtitle parsing, quality selection
and configuration handling that power MediaScout.
"""

from mediascout.core.config_manager import ConfigManager
from mediascout.core.config_schemas import AppSettings
from mediascout.core.exceptions import (
    ConfigurationError,
    ContextNotFoundError,
    ExtractionCancelledError,
    FunctionMissingError,
    MalformedResultError,
    MediaScoutError,
    ModuleError,
    ModuleLoadError,
    ModuleTimeoutError,
    NetworkError,
    ValidationError,
)
from mediascout.core.models import (
    DetailsResult,
    EpisodeLink,
    MediaItem,
    ModuleMetadata,
    QualityCandidate,
    SearchItem,
    StreamResult,
    StreamSource,
    SubtitleCue,
    SubtitleTrack,
)
from mediascout.core.cancellation import CancellationToken
from mediascout.core.network import HttpClient
from mediascout.core.normalizer import normalize_stream_result
from mediascout.core.sandbox import ModuleSandbox
from mediascout.core.orchestrator import ExtractionOrchestrator, ExtractionOutcome, OutcomeStatus, SearchFilters
from mediascout.core.module_manager import ModuleManager
from mediascout.core.subtitles import SubtitleLoader, SubtitleParser
from mediascout.core.quality import QualitySelector, NetworkConditions

__all__ = [
    # Data Models
    "SearchItem",
    "MediaItem",
    "EpisodeLink",
    "DetailsResult",
    "StreamSource",
    "StreamResult",
    "SubtitleCue",
    "SubtitleTrack",
    "QualityCandidate",
    "ModuleMetadata",
    # Configuration Management
    "ConfigManager",
    "AppSettings",
    # Sandbox and Extraction
    "CancellationToken",
    "HttpClient",
    "ModuleSandbox",
    "ModuleManager",
    "ExtractionOrchestrator",
    "ExtractionOutcome",
    "OutcomeStatus",
    "SearchFilters",
    "normalize_stream_result",
    # Playback Support
    "SubtitleParser",
    "SubtitleLoader",
    "QualitySelector",
    "NetworkConditions",
    # Exceptions
    "MediaScoutError",
    "ConfigurationError",
    "ValidationError",
    "NetworkError",
    "ModuleError",
    "ModuleLoadError",
    "FunctionMissingError",
    "ModuleTimeoutError",
    "ContextNotFoundError",
    "MalformedResultError",
    "ExtractionCancelledError",
]
