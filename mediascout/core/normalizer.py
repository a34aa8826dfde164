"""
Stream Result Normalizer - Decode heterogeneous module output.

Modules return stream information in several shapes: a bare URL string,
a list of URL strings, a list of header-bearing source objects, or an
envelope object carrying ``streams``/``stream`` and ``subtitles`` keys.
This module classifies the raw value once and converts it into a
canonical :class:`StreamResult` so nothing downstream has to care which
shape a module used.
"""

import json
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from mediascout.core.exceptions import MalformedResultError
from mediascout.core.models import StreamResult, StreamSource
from mediascout.core.utils import validate_url


logger = logging.getLogger(__name__)

# JSON strings nested inside JSON strings are unwrapped at most this deep
_MAX_JSON_DEPTH = 3


class StreamShape(str, Enum):
    """Variants of raw stream output."""

    BARE_STRING = "bare_string"
    STRING_ARRAY = "string_array"
    SOURCE_ARRAY = "source_array"
    ENVELOPE = "envelope"
    UNKNOWN = "unknown"


def decode_module_output(value: Any) -> Any:
    """
    Decode a module function's return value into a list or dict.

    JSON strings are parsed; lists and dicts pass through unchanged.

    Args:
        value: Raw value returned by the module

    Returns:
        The decoded list or dict

    Raises:
        MalformedResultError: If the value is not JSON or not a list/dict
    """
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="replace")

    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise MalformedResultError(f"Module returned invalid JSON: {e}", raw_value=value[:200])

    if isinstance(value, tuple):
        value = list(value)

    if not isinstance(value, (list, dict)):
        raise MalformedResultError(
            f"Module returned {type(value).__name__}, expected an array or object",
            raw_value=value,
        )

    return value


def classify_stream_output(value: Any, _depth: int = 0) -> Tuple[StreamShape, Any]:
    """
    Classify raw stream output, unwrapping JSON strings.

    Args:
        value: Raw value returned by ``extractStreamUrl``

    Returns:
        Tuple of the detected shape and the decoded payload
    """
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="replace")

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return StreamShape.UNKNOWN, value
        if _depth < _MAX_JSON_DEPTH:
            try:
                parsed = json.loads(text)
            except json.JSONDecodeError:
                return StreamShape.BARE_STRING, text
            return classify_stream_output(parsed, _depth + 1)
        return StreamShape.BARE_STRING, text

    if isinstance(value, (list, tuple)):
        items = list(value)
        if items and isinstance(items[0], dict):
            return StreamShape.SOURCE_ARRAY, items
        if any(isinstance(item, str) for item in items):
            return StreamShape.STRING_ARRAY, items
        return StreamShape.UNKNOWN, items

    if isinstance(value, dict):
        return StreamShape.ENVELOPE, value

    return StreamShape.UNKNOWN, value


def normalize_stream_result(value: Any) -> StreamResult:
    """
    Convert any raw stream output into a canonical StreamResult.

    Never raises: unrecognized shapes produce an empty result.

    Args:
        value: Raw value returned by ``extractStreamUrl``

    Returns:
        Canonical stream result (possibly empty)
    """
    shape, payload = classify_stream_output(value)
    logger.debug(f"Stream output classified as {shape.value}")

    if shape is StreamShape.BARE_STRING:
        return StreamResult(streams=[payload])

    if shape is StreamShape.STRING_ARRAY:
        return StreamResult(streams=_string_list(payload))

    if shape is StreamShape.SOURCE_ARRAY:
        return StreamResult(sources=_build_sources(payload))

    if shape is StreamShape.ENVELOPE:
        return _normalize_envelope(payload)

    logger.warning(f"Unrecognized stream output of type {type(value).__name__}")
    return StreamResult.empty()


def _normalize_envelope(data: Dict[str, Any]) -> StreamResult:
    """Decode an object carrying ``streams``/``stream`` and ``subtitles``."""
    streams: Optional[List[str]] = None
    sources: Optional[List[StreamSource]] = None

    many = data.get("streams")
    single = data.get("stream")

    if isinstance(many, list) and many:
        if isinstance(many[0], dict):
            sources = _build_sources(many)
        else:
            streams = _string_list(many)
    elif isinstance(single, dict):
        sources = _build_sources([single])
    elif isinstance(single, str):
        streams = _string_list([single])
    elif isinstance(many, str):
        streams = _string_list([many])

    subtitles: Optional[List[str]] = None
    raw_subtitles = data.get("subtitles")
    if isinstance(raw_subtitles, list):
        subtitles = _string_list(raw_subtitles)
    elif isinstance(raw_subtitles, str):
        subtitles = _string_list([raw_subtitles])

    return StreamResult(streams=streams, subtitles=subtitles, sources=sources)


def _string_list(items: List[Any]) -> Optional[List[str]]:
    urls = [item.strip() for item in items if isinstance(item, str) and item.strip()]
    return urls or None


def _build_sources(items: List[Any]) -> Optional[List[StreamSource]]:
    """Build sources, dropping entries that fail validation."""
    sources = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            logger.warning(f"Skipping stream source #{index}: not an object")
            continue
        url = item.get("url") or item.get("streamUrl") or item.get("file")
        try:
            sources.append(StreamSource(
                url=url,
                headers=item.get("headers"),
                quality=item.get("quality"),
                label=item.get("label") or item.get("title"),
            ))
        except PydanticValidationError as e:
            logger.warning(f"Skipping stream source #{index}: {e.errors()[0]['msg']}")
    return sources or None


def validate_stream_urls(result: StreamResult) -> StreamResult:
    """
    Drop entries whose URLs are not absolute.

    Args:
        result: A normalized stream result

    Returns:
        A new result containing only absolute URLs
    """
    streams = [url for url in result.streams or [] if validate_url(url)]
    subtitles = [url for url in result.subtitles or [] if validate_url(url)]
    sources = [source for source in result.sources or [] if validate_url(source.url)]

    dropped = (
        len(result.streams or []) - len(streams)
        + len(result.subtitles or []) - len(subtitles)
        + len(result.sources or []) - len(sources)
    )
    if dropped:
        logger.info(f"Dropped {dropped} invalid stream/subtitle URLs")

    return StreamResult(streams=streams, subtitles=subtitles, sources=sources)


# Export normalizer API
__all__ = [
    "StreamShape",
    "decode_module_output",
    "classify_stream_output",
    "normalize_stream_result",
    "validate_stream_urls",
]
