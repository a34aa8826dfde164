"""
Common utilities for module development.

This package contains shared helpers that extraction module scripts
import to parse pages and clean text.
"""

from .utils import (
    HTMLParser,
    TextCleaner,
    same_site,
)

__all__ = [
    "HTMLParser",
    "TextCleaner",
    "same_site",
]
