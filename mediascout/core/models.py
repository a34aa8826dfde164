"""
Core Data Models - Pydantic models for extraction results.

This module defines the value objects handed back across the extraction
boundary: search items, media details, episode links, stream results,
subtitle cues and quality candidates, plus the metadata descriptor that
identifies a module. Every model validates and normalizes its input at
construction time; an instance is never partially valid.
"""

import json
import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from mediascout.core.utils import (
    encode_query,
    format_duration,
    format_timestamp,
    is_valid_href,
    parse_leading_int,
    slugify,
)


# Date layouts tried in order when parsing free-form airdates
_AIRDATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d.%m.%Y",
    "%m/%d/%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%b %d %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%B %Y",
    "%b %Y",
    "%Y",
)


class ExtractionFunction(str, Enum):
    """Functions a module script may export."""

    SEARCH_RESULTS = "searchResults"
    EXTRACT_DETAILS = "extractDetails"
    EXTRACT_EPISODES = "extractEpisodes"
    EXTRACT_STREAM_URL = "extractStreamUrl"
    EXTRACT_CHAPTERS = "extractChapters"
    EXTRACT_TEXT = "extractText"

    @property
    def method_name(self) -> str:
        """Snake-case name used by provider classes (e.g. ``search_results``)."""
        return re.sub(r"(?<!^)(?=[A-Z])", "_", self.value).lower()

    @classmethod
    def from_name(cls, name: str) -> Optional["ExtractionFunction"]:
        """Resolve either the camelCase or snake_case spelling."""
        for function in cls:
            if name in (function.value, function.method_name):
                return function
        return None

    def __str__(self) -> str:
        return self.value


class SubtitleFormat(str, Enum):
    """Subtitle formats understood by the parser."""

    VTT = "vtt"
    SRT = "srt"

    def __str__(self) -> str:
        return self.value


class _ResultModel(BaseModel):
    """Shared configuration and JSON helpers for result models."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_json(self) -> Dict[str, Any]:
        """Serialize using the wire field names."""
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_json(cls, data: Union[str, Dict[str, Any]]):
        """
        Build a model from a wire-format dict or JSON string.

        Raises:
            pydantic.ValidationError: If the data does not validate
            json.JSONDecodeError: If a string payload is not JSON
        """
        if isinstance(data, str):
            data = json.loads(data)
        return cls.model_validate(data)


class SearchItem(_ResultModel):
    """
    One search hit returned by a module.

    All three fields must be non-empty strings and ``href`` must be an
    absolute URL or a recognizable relative path.
    """

    title: str = Field(..., min_length=1, description="Result title")
    image_url: str = Field(..., alias="imageUrl", min_length=1, description="Poster or thumbnail URL")
    href: str = Field(..., min_length=1, description="Link to the media page")

    @field_validator("title", "image_url", "href", mode="before")
    @classmethod
    def validate_text(cls, v: Any) -> Any:
        """Trim string fields; other types are left for type validation."""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("href")
    @classmethod
    def validate_href(cls, v: str) -> str:
        """Reject hrefs that are neither URLs nor path-like."""
        if not is_valid_href(v):
            raise ValueError(f"href is not a URL or path: {v!r}")
        return v

    def __str__(self) -> str:
        return self.title


class MediaItem(_ResultModel):
    """
    Descriptive details for a media page.

    ``airdate`` is kept verbatim; :attr:`parsed_airdate` offers a
    best-effort parse that never rejects the record.
    """

    description: str = Field(default="", description="Synopsis")
    aliases: str = Field(default="", description="Comma-separated alternative titles")
    airdate: str = Field(default="", description="Air date as published by the source")

    @field_validator("description", "aliases", "airdate", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        """Normalize missing values to empty strings and join alias lists."""
        if v is None:
            return ""
        if isinstance(v, (list, tuple)):
            return ", ".join(str(part).strip() for part in v if str(part).strip())
        if isinstance(v, bool) or not isinstance(v, (str, int, float)):
            raise ValueError(f"expected a string, got {type(v).__name__}")
        return str(v).strip()

    @property
    def parsed_airdate(self) -> Optional[date]:
        """Parse the airdate, returning None when no known layout matches."""
        return parse_airdate(self.airdate)

    @property
    def alias_list(self) -> List[str]:
        """Aliases split on commas with blanks removed."""
        return [alias.strip() for alias in self.aliases.split(",") if alias.strip()]

    @property
    def formatted_airdate(self) -> str:
        """Human-friendly airdate, falling back to the raw text."""
        parsed = self.parsed_airdate
        return parsed.strftime("%B %d, %Y") if parsed else self.airdate


class EpisodeLink(_ResultModel):
    """
    A numbered episode with its page link.

    ``number`` accepts integers or strings with a leading integer and must be
    non-negative. ``duration`` silently becomes None on invalid input.
    """

    number: int = Field(..., ge=0, description="Episode number")
    title: str = Field(default="", description="Episode title")
    href: str = Field(..., min_length=1, description="Link to the episode page")
    duration: Optional[int] = Field(default=None, description="Duration in seconds")

    @field_validator("number", mode="before")
    @classmethod
    def validate_number(cls, v: Any) -> int:
        """Parse the leading integer of the episode number."""
        parsed = parse_leading_int(v)
        if parsed is None:
            raise ValueError(f"episode number is not numeric: {v!r}")
        return parsed

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("href", mode="before")
    @classmethod
    def validate_href(cls, v: Any) -> str:
        if not isinstance(v, str) or not is_valid_href(v):
            raise ValueError(f"episode href is missing or invalid: {v!r}")
        return v.strip()

    @field_validator("duration", mode="before")
    @classmethod
    def validate_duration(cls, v: Any) -> Optional[int]:
        """Invalid or negative durations become None."""
        parsed = parse_leading_int(v)
        if parsed is None or parsed < 0:
            return None
        return parsed

    @property
    def display_title(self) -> str:
        """Title for display, defaulting to ``Episode N``."""
        return self.title or f"Episode {self.number}"

    @property
    def formatted_duration(self) -> Optional[str]:
        if self.duration is None:
            return None
        return format_duration(self.duration)

    def __str__(self) -> str:
        return f"Episode {self.number}: {self.display_title}"


class StreamSource(_ResultModel):
    """A playable URL with optional request headers and quality label."""

    url: str = Field(..., min_length=1, description="Playable stream URL")
    headers: Dict[str, str] = Field(default_factory=dict, description="HTTP headers required by the host")
    quality: Optional[str] = Field(default=None, description="Quality label such as 1080p")
    label: Optional[str] = Field(default=None, description="Free-form source label")

    @field_validator("url", mode="before")
    @classmethod
    def validate_url(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("headers", mode="before")
    @classmethod
    def validate_headers(cls, v: Any) -> Dict[str, str]:
        """Keep only mapping headers; values are stringified."""
        if not isinstance(v, dict):
            return {}
        return {str(key): str(value) for key, value in v.items() if value is not None}

    @field_validator("quality", "label", mode="before")
    @classmethod
    def validate_labels(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        text = str(v).strip()
        return text or None


class StreamResult(_ResultModel):
    """
    Canonical stream extraction result.

    Empty lists are stored as None. A result with neither ``streams`` nor
    ``sources`` signals that extraction failed.
    """

    streams: Optional[List[str]] = Field(default=None, description="Bare stream URLs")
    subtitles: Optional[List[str]] = Field(default=None, description="Subtitle track URLs")
    sources: Optional[List[StreamSource]] = Field(default=None, description="Header-bearing sources")

    @field_validator("streams", "subtitles", mode="before")
    @classmethod
    def validate_url_list(cls, v: Any) -> Optional[List[str]]:
        if v is None:
            return None
        if isinstance(v, str):
            v = [v]
        if not isinstance(v, (list, tuple)):
            raise ValueError(f"expected a list of URLs, got {type(v).__name__}")
        urls = [item.strip() for item in v if isinstance(item, str) and item.strip()]
        return urls or None

    @field_validator("sources", mode="before")
    @classmethod
    def validate_sources(cls, v: Any) -> Any:
        if v is None or (isinstance(v, list) and not v):
            return None
        return v

    @classmethod
    def empty(cls) -> "StreamResult":
        """Result signalling that no stream could be extracted."""
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.streams is None and self.sources is None

    @property
    def urls(self) -> List[str]:
        """Every playable URL, sources first."""
        urls = [source.url for source in self.sources or []]
        urls.extend(self.streams or [])
        return urls


class SubtitleCue(_ResultModel):
    """One timed subtitle entry; times are in seconds."""

    id: str = Field(..., description="Cue identifier")
    start_time: float = Field(..., alias="startTime", ge=0.0)
    end_time: float = Field(..., alias="endTime", ge=0.0)
    text: str = Field(..., min_length=1)

    def contains(self, position: float) -> bool:
        """Whether the cue is on screen at ``position`` (inclusive bounds)."""
        return self.start_time <= position <= self.end_time

    @property
    def duration(self) -> float:
        return max(self.end_time - self.start_time, 0.0)

    def __str__(self) -> str:
        return f"{format_timestamp(self.start_time)} --> {format_timestamp(self.end_time)} {self.text}"


class SubtitleTrack(BaseModel):
    """An ordered list of cues with track labelling."""

    cues: List[SubtitleCue] = Field(default_factory=list)
    format: SubtitleFormat = Field(default=SubtitleFormat.VTT)
    url: Optional[str] = Field(default=None, description="Where the track was loaded from")
    label: str = Field(default="Track 1")
    language: str = Field(default="en")

    def active_cue(self, position: float) -> Optional[SubtitleCue]:
        """
        Find the cue on screen at a playback position.

        Args:
            position: Playback position in seconds

        Returns:
            The first cue whose interval contains ``position``, or None in a gap
        """
        for cue in self.cues:
            if cue.contains(position):
                return cue
        return None

    def __len__(self) -> int:
        return len(self.cues)


class QualityCandidate(BaseModel):
    """A stream source ranked by numeric quality."""

    model_config = ConfigDict(frozen=True)

    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    quality_label: str = Field(default="")
    size: int = Field(default=720, ge=0, description="Vertical resolution used for ranking")

    def __str__(self) -> str:
        return self.quality_label or f"{self.size}p"


class DetailsResult(BaseModel):
    """Concurrent details and episodes extraction output."""

    details: List[MediaItem] = Field(default_factory=list)
    episodes: List[EpisodeLink] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.details and not self.episodes

    def to_json(self) -> Dict[str, Any]:
        return {
            "details": [item.to_json() for item in self.details],
            "episodes": [item.to_json() for item in self.episodes],
        }


class ModuleMetadata(BaseModel):
    """
    Descriptor that identifies an extraction module.

    Parsed from the module's JSON metadata file. Unknown keys are ignored
    and the instance is immutable once loaded.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    source_name: str = Field(..., alias="sourceName", min_length=1)
    version: str = Field(..., min_length=1)
    language: str = Field(...)
    author: str = Field(...)
    base_url: str = Field(..., alias="baseUrl")
    script_url: str = Field(..., alias="scriptUrl", min_length=1)
    icon_url: Optional[str] = Field(default=None, alias="iconUrl")
    search_base_url: Optional[str] = Field(default=None, alias="searchBaseUrl")
    async_js: bool = Field(default=False, alias="asyncJS")
    stream_async_js: bool = Field(default=False, alias="streamAsyncJS")
    quality: Optional[str] = Field(default=None)
    stream_type: Optional[str] = Field(default=None, alias="streamType")

    @field_validator("author", mode="before")
    @classmethod
    def validate_author(cls, v: Any) -> str:
        """Accept either a plain name or an ``{"name": ...}`` object."""
        if isinstance(v, dict):
            v = v.get("name", "")
        if v is None:
            return "Unknown"
        return str(v)

    @field_validator("version", mode="before")
    @classmethod
    def validate_version(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("search_base_url", "icon_url", "quality", "stream_type", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def validate_search_template(self) -> "ModuleMetadata":
        """A search template without a placeholder would ignore the query."""
        if self.search_base_url and "%s" not in self.search_base_url:
            raise ValueError("searchBaseUrl must contain a %s placeholder")
        return self

    @property
    def module_id(self) -> str:
        """Stable identifier derived from the source name."""
        return slugify(self.source_name)

    def search_url(self, keyword: str) -> Optional[str]:
        """
        Build the search page URL for a keyword.

        Args:
            keyword: Search keyword, URL-encoded before substitution

        Returns:
            The search URL, or None if the module has no search template
        """
        if not self.search_base_url:
            return None
        return self.search_base_url.replace("%s", encode_query(keyword))

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def __str__(self) -> str:
        return f"{self.source_name} v{self.version}"


def parse_airdate(text: str) -> Optional[date]:
    """
    Best-effort parse of a free-form airdate.

    Ranges such as ``"Apr 3, 2021 to Jun 19, 2021"`` use their first date.

    Args:
        text: Raw airdate text

    Returns:
        Parsed date or None
    """
    if not text:
        return None

    candidate = re.split(r"\s+(?:to|-|–)\s+", text.strip(), maxsplit=1)[0].strip()
    if not candidate:
        return None

    try:
        return datetime.fromisoformat(candidate.replace("Z", "+00:00")).date()
    except ValueError:
        pass

    for layout in _AIRDATE_FORMATS:
        try:
            return datetime.strptime(candidate, layout).date()
        except ValueError:
            continue

    return None


# Export all models
__all__ = [
    "ExtractionFunction",
    "SubtitleFormat",
    "SearchItem",
    "MediaItem",
    "EpisodeLink",
    "StreamSource",
    "StreamResult",
    "SubtitleCue",
    "SubtitleTrack",
    "QualityCandidate",
    "DetailsResult",
    "ModuleMetadata",
    "parse_airdate",
]
