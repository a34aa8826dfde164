"""
Plugin Layer - Extraction module interface and helpers.

This package contains the provider base classes, the capability handles
injected into module scripts, and utilities for writing modules.
"""

from mediascout.plugins.base import ExtractionProvider, FunctionProvider
from mediascout.plugins.capabilities import (
    ModuleConsole,
    ProviderCapabilities,
    build_capabilities,
    generate_token,
)
from mediascout.plugins.common import HTMLParser, TextCleaner

__all__ = [
    # Provider Architecture
    "ExtractionProvider",
    "FunctionProvider",
    # Capabilities
    "ModuleConsole",
    "ProviderCapabilities",
    "build_capabilities",
    "generate_token",
    # Module Development Utilities
    "HTMLParser",
    "TextCleaner",
]
