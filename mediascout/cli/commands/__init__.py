"""
CLI Commands - Individual command implementations.

This module contains the extraction commands (search, details, episodes,
streams, subtitles, module) and the config command group.
"""

from mediascout.cli.commands import config, details, module, search, streams, subtitles

__all__ = ["config", "details", "module", "search", "streams", "subtitles"]
