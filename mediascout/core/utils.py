"""
Core Utilities - Shared utility functions and helpers.

This module contains URL validation, query normalization and formatting
helpers used by the result models, the orchestrator and the CLI.
"""

import re
from typing import Optional
from urllib.parse import quote, urljoin, urlparse


_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def validate_url(url: str) -> bool:
    """
    Validate if a string is an absolute URL with scheme and host.

    Args:
        url: The URL string to validate

    Returns:
        True if URL is valid, False otherwise
    """
    try:
        result = urlparse(url)
        return all([result.scheme, result.netloc])
    except ValueError:
        return False


def is_valid_href(href: str) -> bool:
    """
    Check whether an href is an absolute URL or a recognizable relative path.

    Accepts absolute URLs, paths starting with ``/``, ``./`` or ``../`` and
    anything carrying a path, query or fragment separator.

    Args:
        href: Candidate link value

    Returns:
        True if the href can be followed
    """
    if not isinstance(href, str):
        return False

    href = href.strip()
    if not href:
        return False

    if href.startswith(("/", "./", "../")):
        return True

    if validate_url(href):
        return True

    return any(sep in href for sep in ("/", "?", "#"))


def resolve_url(base_url: str, href: str) -> str:
    """Resolve a possibly relative href against a base URL."""
    if not base_url or validate_url(href):
        return href
    return urljoin(base_url, href)


def normalize_query(query: str) -> str:
    """
    Collapse internal whitespace and trim a search keyword.

    Args:
        query: Raw user-supplied keyword

    Returns:
        Normalized keyword (may be empty)
    """
    return re.sub(r"\s+", " ", query or "").strip()


def encode_query(query: str) -> str:
    """URL-encode a keyword the way browsers encode URI components."""
    return quote(query, safe="-_.!~*'()")


def parse_leading_int(value: object) -> Optional[int]:
    """
    Parse the leading integer of a value.

    Strings like ``"12 - Finale"`` yield 12; booleans and values without a
    leading integer yield None.

    Args:
        value: Raw value from module output

    Returns:
        Parsed integer or None
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return int(value)
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        if match:
            return int(match.group(1))
    return None


def slugify(name: str) -> str:
    """
    Turn a display name into a stable identifier.

    Args:
        name: Human readable name such as a module's ``sourceName``

    Returns:
        Lower-case identifier made of ``a-z0-9`` and dashes
    """
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "module"


def format_duration(seconds: int) -> str:
    """
    Convert seconds to human-readable duration.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted duration string (e.g., "1:23:45")
    """
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)

    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    else:
        return f"{minutes:02d}:{secs:02d}"


def format_timestamp(seconds: float) -> str:
    """Format a cue time in seconds as ``HH:MM:SS.mmm``."""
    total_ms = int(round(max(seconds, 0.0) * 1000))
    hours, remainder = divmod(total_ms, 3_600_000)
    minutes, remainder = divmod(remainder, 60_000)
    secs, millis = divmod(remainder, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{millis:03d}"


# Export utility functions
__all__ = [
    "validate_url",
    "is_valid_href",
    "resolve_url",
    "normalize_query",
    "encode_query",
    "parse_leading_int",
    "slugify",
    "format_duration",
    "format_timestamp",
]
