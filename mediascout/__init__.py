"""
MediaScout - Sandboxed extraction modules for media metadata and streams.

Loads third-party extraction modules into isolated execution contexts and
turns their loosely-typed output into validated search results, episode
lists, stream sources and subtitle cues.
"""

__version__ = "0.1.0"
__author__ = "MediaScout Team"

# Package metadata
__title__ = "mediascout"
__description__ = "Sandboxed extraction-module runner for media metadata, streams and subtitles"
__license__ = "MIT"

# Version info tuple for programmatic access
VERSION_INFO = tuple(map(int, __version__.split(".")))

from mediascout.core.models import (
    EpisodeLink,
    MediaItem,
    ModuleMetadata,
    SearchItem,
    StreamResult,
    SubtitleCue,
)

__all__ = [
    "__version__",
    "__author__",
    "EpisodeLink",
    "MediaItem",
    "ModuleMetadata",
    "SearchItem",
    "StreamResult",
    "SubtitleCue",
]
