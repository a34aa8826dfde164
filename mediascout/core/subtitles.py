"""
Subtitle Parser - WebVTT and SRT parsing with timing correction.

Both formats are parsed with the same per-block algorithm: find the line
carrying the ``-->`` separator, parse the two timecodes with the format's
granularity, then take the following non-blank lines as the cue text. A
fixed offset (default -0.5s) is added to every timecode to correct the
usual encoder/player skew; results are clamped at zero.
"""

import html
import logging
import re
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from mediascout.core.exceptions import MalformedResultError, NetworkError
from mediascout.core.models import SubtitleCue, SubtitleFormat, SubtitleTrack
from mediascout.core.network import HttpClient


logger = logging.getLogger(__name__)


LANGUAGE_NAMES: Dict[str, str] = {
    "en": "English",
    "es": "Español",
    "fr": "Français",
    "de": "Deutsch",
    "it": "Italiano",
    "pt": "Português",
    "ja": "日本語",
    "ko": "한국어",
    "zh": "中文",
    "ar": "العربية",
    "ru": "Русский",
    "hi": "हिन्दी",
}

_LANGUAGE_PATTERN = re.compile(r"[._\-/](" + "|".join(LANGUAGE_NAMES) + r")[._\-]", re.IGNORECASE)
_TIMECODE_PATTERN = re.compile(r"\d{1,2}:\d{2}:\d{2}")
_SRT_TIMECODE_PATTERN = re.compile(r"\d{1,2}:\d{2}:\d{2},\d{1,3}")
_TAG_PATTERN = re.compile(r"<[^>]*>")
_ASS_OVERRIDE_PATTERN = re.compile(r"\{\\[^}]*\}")

# VTT blocks that never carry cues
_VTT_SKIPPED_BLOCKS = ("NOTE", "STYLE", "REGION")


def parse_vtt_timecode(value: str) -> float:
    """
    Parse ``HH:MM:SS.mmm`` or ``MM:SS.mmm`` into seconds.

    Raises:
        ValueError: If the timecode is malformed
    """
    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid timecode: {value!r}")

    seconds = float(parts[-1].replace(",", "."))
    minutes = int(parts[-2])
    hours = int(parts[0]) if len(parts) == 3 else 0
    return hours * 3600 + minutes * 60 + seconds


def parse_srt_timecode(value: str) -> float:
    """
    Parse ``HH:MM:SS,mmm`` into seconds.

    Raises:
        ValueError: If the timecode is malformed
    """
    parts = value.strip().split(":")
    if len(parts) != 3:
        raise ValueError(f"Invalid SRT timecode: {value!r}")

    secs, _, millis = parts[2].replace(".", ",").partition(",")
    total = int(parts[0]) * 3600 + int(parts[1]) * 60 + int(secs)
    if millis:
        total += int(millis) / 1000
    return total


def clean_cue_text(text: str) -> str:
    """Strip markup tags and unescape HTML entities for display."""
    text = _TAG_PATTERN.sub("", text)
    text = _ASS_OVERRIDE_PATTERN.sub("", text)
    return html.unescape(text).strip()


def detect_language(url: str) -> Optional[str]:
    """Language code embedded in a subtitle URL (e.g. ``.../show.en.vtt``)."""
    match = _LANGUAGE_PATTERN.search(url or "")
    return match.group(1).lower() if match else None


def track_label(url: str, index: int) -> str:
    """Display label for a track: the language name or ``Track N``."""
    language = detect_language(url)
    if language:
        return LANGUAGE_NAMES[language]
    return f"Track {index + 1}"


class SubtitleParser:
    """
    Converts raw WebVTT/SRT text into ordered cue lists.

    Cues appear in source order, which is assumed to be chronological.
    Cues whose text is empty after trimming are dropped.
    """

    def __init__(self, time_offset: float = -0.5, strip_markup: bool = False):
        """
        Initialize the parser.

        Args:
            time_offset: Seconds added to every timecode
            strip_markup: Remove tags and entities from cue text
        """
        self.time_offset = time_offset
        self.strip_markup = strip_markup

    def detect_format(self, content: str, url: Optional[str] = None) -> Optional[SubtitleFormat]:
        """
        Detect the subtitle format from the URL extension, then the content.

        Args:
            content: Raw subtitle text
            url: Where the text came from, if known

        Returns:
            The detected format or None if the content has no timecodes
        """
        if url:
            extension = url.split("?", 1)[0].split("#", 1)[0].rsplit(".", 1)[-1].lower()
            if extension in ("vtt", "webvtt"):
                return SubtitleFormat.VTT
            if extension == "srt":
                return SubtitleFormat.SRT

        text = content.lstrip("\ufeff").strip()
        if text.startswith("WEBVTT"):
            return SubtitleFormat.VTT
        if "-->" in text and _SRT_TIMECODE_PATTERN.search(text):
            return SubtitleFormat.SRT
        if "-->" in text and _TIMECODE_PATTERN.search(text):
            return SubtitleFormat.VTT
        return None

    def parse(
        self,
        content: str,
        url: Optional[str] = None,
        format: Optional[SubtitleFormat] = None,
        index: int = 0,
    ) -> SubtitleTrack:
        """
        Parse subtitle text into a track.

        Args:
            content: Raw subtitle text
            url: Source URL, used for format and language detection
            format: Skip detection and parse as this format
            index: Position of the track among its siblings, for labelling

        Returns:
            Parsed track (possibly without cues)

        Raises:
            MalformedResultError: If the content is not a subtitle file
        """
        detected = format or self.detect_format(content, url)
        if detected is None:
            raise MalformedResultError("Content is neither WebVTT nor SRT", raw_value=content[:200])

        cues = self.parse_vtt(content) if detected is SubtitleFormat.VTT else self.parse_srt(content)
        logger.debug(f"Parsed {len(cues)} {detected.value} cues")

        return SubtitleTrack(
            cues=cues,
            format=detected,
            url=url,
            label=track_label(url or "", index),
            language=detect_language(url or "") or "en",
        )

    def parse_vtt(self, content: str) -> List[SubtitleCue]:
        return self._parse_blocks(content, parse_vtt_timecode, SubtitleFormat.VTT)

    def parse_srt(self, content: str) -> List[SubtitleCue]:
        return self._parse_blocks(content, parse_srt_timecode, SubtitleFormat.SRT)

    def _parse_blocks(
        self,
        content: str,
        parse_timecode: Callable[[str], float],
        subtitle_format: SubtitleFormat,
    ) -> List[SubtitleCue]:
        """Shared block scanner for both formats."""
        lines = content.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n").split("\n")
        cues: List[SubtitleCue] = []
        block: List[str] = []

        for line in lines + [""]:
            if line.strip():
                block.append(line)
                continue
            if block:
                cue = self._parse_block(block, parse_timecode, subtitle_format, len(cues) + 1)
                if cue is not None:
                    cues.append(cue)
                block = []

        return cues

    def _parse_block(
        self,
        block: List[str],
        parse_timecode: Callable[[str], float],
        subtitle_format: SubtitleFormat,
        ordinal: int,
    ) -> Optional[SubtitleCue]:
        if subtitle_format is SubtitleFormat.VTT:
            first = block[0].strip()
            if first.split(" ", 1)[0] in _VTT_SKIPPED_BLOCKS:
                return None
            if first.startswith("WEBVTT"):
                # Header glued to the first cue
                block = block[1:]

        timing_index = next((i for i, line in enumerate(block) if "-->" in line), None)
        if timing_index is None:
            return None

        start_text, _, end_text = block[timing_index].partition("-->")
        # VTT cue settings follow the end timecode
        end_parts = end_text.split()
        try:
            start = parse_timecode(start_text)
            end = parse_timecode(end_parts[0] if end_parts else "")
        except (ValueError, IndexError) as e:
            logger.warning(f"Skipping cue with unreadable timing {block[timing_index]!r}: {e}")
            return None

        text = "\n".join(line.rstrip() for line in block[timing_index + 1:]).strip()
        if self.strip_markup:
            text = clean_cue_text(text)
        if not text:
            return None

        identifier = block[timing_index - 1].strip() if timing_index > 0 else str(ordinal)

        try:
            return SubtitleCue(
                id=identifier,
                start_time=max(start + self.time_offset, 0.0),
                end_time=max(end + self.time_offset, 0.0),
                text=text,
            )
        except PydanticValidationError as e:
            logger.warning(f"Skipping invalid cue {identifier}: {e}")
            return None


class SubtitleLoader:
    """Fetches subtitle tracks over HTTP and parses them."""

    def __init__(self, http_client: HttpClient, parser: Optional[SubtitleParser] = None, default_language: str = "en"):
        self.http_client = http_client
        self.parser = parser or SubtitleParser()
        self.default_language = default_language

    async def load(self, url: str, index: int = 0, headers: Optional[Dict[str, str]] = None) -> SubtitleTrack:
        """
        Fetch and parse one track.

        Raises:
            NetworkError: If the fetch fails
            MalformedResultError: If the body is not a subtitle file
        """
        content = await self.http_client.fetch_text(url, headers=headers)
        track = self.parser.parse(content, url=url, index=index)
        if detect_language(url) is None:
            track.language = self.default_language
        logger.info(f"Loaded subtitle track {track.label} with {len(track)} cues from {url}")
        return track

    async def load_all(self, urls: List[str], headers: Optional[Dict[str, str]] = None) -> List[SubtitleTrack]:
        """
        Load several tracks; failures are logged and skipped.

        The first successfully loaded track is the default selection.
        """
        tracks = []
        for index, url in enumerate(urls):
            try:
                tracks.append(await self.load(url, index=index, headers=headers))
            except (MalformedResultError, NetworkError) as e:
                logger.warning(f"Failed to load subtitle track {index} ({url}): {e}")
        return tracks


# Export subtitle API
__all__ = [
    "LANGUAGE_NAMES",
    "SubtitleParser",
    "SubtitleLoader",
    "parse_vtt_timecode",
    "parse_srt_timecode",
    "clean_cue_text",
    "detect_language",
    "track_label",
]
