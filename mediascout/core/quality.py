"""
Quality Selector - Stream ranking and adaptive quality selection.

Stream sources are ranked by a numeric quality score parsed from their
labels. The selector picks an initial quality from the connection type,
then steps down on a starving buffer and up on a healthy one when the
estimated bandwidth allows it. Changes are debounced so transient signal
noise does not cause oscillation.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Union

from mediascout.core.config_schemas import QualitySettings
from mediascout.core.models import QualityCandidate, StreamResult


logger = logging.getLogger(__name__)


DEFAULT_QUALITY = 720

# Minimum bitrate (kbps) needed to play each resolution smoothly
REQUIRED_BANDWIDTH_KBPS: Dict[int, int] = {
    240: 500,
    360: 800,
    480: 1200,
    720: 2500,
    1080: 5000,
    1440: 10000,
    2160: 20000,
}
DEFAULT_REQUIRED_KBPS = 1000

_RESOLUTION_PATTERN = re.compile(r"(\d{3,4})\s*p\b", re.IGNORECASE)
_INTEGER_PATTERN = re.compile(r"(?<!\d)(\d{3,4})(?!\d)")
_KEYWORD_SIZES = (
    (re.compile(r"\b(?:4k|uhd)\b", re.IGNORECASE), 2160),
    (re.compile(r"\b(?:qhd|2k)\b", re.IGNORECASE), 1440),
    (re.compile(r"\b(?:fhd|full\s*hd)\b", re.IGNORECASE), 1080),
    (re.compile(r"\bhd\b", re.IGNORECASE), 720),
    (re.compile(r"\bsd\b", re.IGNORECASE), 480),
)

_CELLULAR_TYPES = {"cellular", "2g", "3g", "4g", "5g"}
_SLOW_EFFECTIVE_TYPES = {"slow-2g", "2g", "3g"}


def parse_quality_size(label: Optional[str], default: int = DEFAULT_QUALITY) -> int:
    """
    Parse a numeric quality from a label.

    ``"1080p"`` and ``"Full HD (1080p)"`` give 1080, ``"4K"`` gives 2160,
    ``"HD"`` gives 720. A bare three or four digit number is taken as the
    resolution; short numbers such as ``"Server 2"`` and labels without a
    recognizable quality give ``default``.

    Args:
        label: Quality label or URL fragment
        default: Value used when nothing can be parsed

    Returns:
        Vertical resolution in pixels
    """
    if not label:
        return default

    match = _RESOLUTION_PATTERN.search(label)
    if match:
        return int(match.group(1))

    for pattern, size in _KEYWORD_SIZES:
        if pattern.search(label):
            return size

    match = _INTEGER_PATTERN.search(label)
    if match and int(match.group(1)) > 0:
        return int(match.group(1))

    return default


def build_candidates(result: StreamResult) -> List[QualityCandidate]:
    """
    Derive quality candidates from a stream result.

    Sources take their label from ``quality`` then ``label``; bare stream
    URLs are sized from a ``NNNp`` fragment in the URL when present.
    """
    candidates = []
    for source in result.sources or []:
        label = source.quality or source.label or ""
        if label:
            size = parse_quality_size(label)
        else:
            size = _size_from_url(source.url)
        candidates.append(QualityCandidate(
            url=source.url,
            headers=source.headers,
            quality_label=label,
            size=size,
        ))

    for url in result.streams or []:
        size = _size_from_url(url)
        candidates.append(QualityCandidate(url=url, quality_label="", size=size))

    return candidates


def _size_from_url(url: str) -> int:
    match = _RESOLUTION_PATTERN.search(url)
    return int(match.group(1)) if match else DEFAULT_QUALITY


def sort_streams_by_quality(candidates: List[QualityCandidate]) -> List[QualityCandidate]:
    """Sort candidates by descending quality; ties keep their original order."""
    return sorted(candidates, key=lambda candidate: candidate.size, reverse=True)


def select_best_quality(candidates: List[QualityCandidate]) -> Optional[QualityCandidate]:
    """Head of :func:`sort_streams_by_quality`, or None when empty."""
    ranked = sort_streams_by_quality(candidates)
    return ranked[0] if ranked else None


def find_best_quality(target: int, available: List[int]) -> Optional[int]:
    """
    Choose the quality closest to ``target`` without exceeding it.

    Exact match first, then the highest quality below the target, then the
    lowest available.
    """
    if not available:
        return None
    if target in available:
        return target
    lower = [size for size in available if size < target]
    if lower:
        return max(lower)
    return min(available)


@dataclass
class NetworkConditions:
    """Connection signals reported by the playback layer."""

    type: Optional[str] = None
    effective_type: Optional[str] = None
    downlink: Optional[float] = None
    rtt: Optional[float] = None

    @property
    def category(self) -> str:
        """One of ``ethernet``, ``cellular``, ``wifi`` or ``unknown``."""
        if self.type is None and self.effective_type is None:
            return "unknown"
        connection = (self.type or "").lower()
        effective = (self.effective_type or "").lower()
        if connection == "ethernet":
            return "ethernet"
        if connection in _CELLULAR_TYPES or effective in _SLOW_EFFECTIVE_TYPES:
            return "cellular"
        return "wifi"


def can_support_quality(size: int, conditions: Optional[NetworkConditions], conserve_bandwidth: bool = False) -> bool:
    """
    Estimate whether the connection can sustain ``size``.

    Available bandwidth is the downlink estimate times a safety margin
    (0.8, or 0.6 when conserving bandwidth), reduced by a further 20% when
    round-trip time exceeds 200ms. Without a downlink estimate every
    quality is assumed supportable.
    """
    if conditions is None or conditions.downlink is None:
        return True

    required = REQUIRED_BANDWIDTH_KBPS.get(size, DEFAULT_REQUIRED_KBPS)
    margin = 0.6 if conserve_bandwidth else 0.8
    available = conditions.downlink * 1000 * margin
    if conditions.rtt is not None and conditions.rtt > 200:
        available *= 0.8
    return available >= required


@dataclass
class QualityChange:
    """Notification sent to the change listener."""

    previous: Optional[QualityCandidate]
    current: QualityCandidate
    reason: str


class QualitySelector:
    """
    Tracks the current quality for one stream result and adapts it.

    The adaptive loop reacts to buffer health reports; a manual
    :meth:`set_quality` disables it until :meth:`enable_auto_quality`.
    """

    def __init__(
        self,
        settings: Optional[QualitySettings] = None,
        on_change: Optional[Callable[[QualityChange], None]] = None,
    ):
        """
        Initialize the selector.

        Args:
            settings: Water marks, preferences and timing
            on_change: Called after every applied quality change
        """
        self.settings = (settings or QualitySettings()).model_copy(deep=True)
        self.on_change = on_change
        self.auto_enabled = self.settings.auto_quality
        self.conserve_bandwidth = self.settings.conserve_bandwidth
        self.conditions: Optional[NetworkConditions] = None

        self._candidates: List[QualityCandidate] = []
        self._current: Optional[QualityCandidate] = None
        self._pending: Optional[tuple] = None
        self._pending_handle: Optional[asyncio.TimerHandle] = None
        self._network_handle: Optional[asyncio.TimerHandle] = None
        self._monitor_task: Optional[asyncio.Task] = None

    # State

    @property
    def candidates(self) -> List[QualityCandidate]:
        return list(self._candidates)

    @property
    def current(self) -> Optional[QualityCandidate]:
        return self._current

    @property
    def current_quality(self) -> Optional[int]:
        return self._current.size if self._current else None

    @property
    def available_qualities(self) -> List[int]:
        """Distinct sizes, highest first."""
        return sorted({candidate.size for candidate in self._candidates}, reverse=True)

    def candidate_for(self, size: int) -> Optional[QualityCandidate]:
        """First (best-ranked) candidate with the given size."""
        return next((c for c in self._candidates if c.size == size), None)

    def lower_tier(self, size: int) -> Optional[int]:
        lower = [q for q in self.available_qualities if q < size]
        return max(lower) if lower else None

    def higher_tier(self, size: int) -> Optional[int]:
        higher = [q for q in self.available_qualities if q > size]
        return min(higher) if higher else None

    # Selection

    def load(self, result: Union[StreamResult, List[QualityCandidate]], conditions: Optional[NetworkConditions] = None) -> Optional[QualityCandidate]:
        """
        Rank a stream result's sources and make the initial selection.

        Args:
            result: Stream result or pre-built candidates
            conditions: Current network signals, if known

        Returns:
            The selected candidate, or None if the result has no streams
        """
        candidates = build_candidates(result) if isinstance(result, StreamResult) else list(result)
        self._candidates = sort_streams_by_quality(candidates)
        self._current = None
        self._cancel_pending()
        if conditions is not None:
            self.conditions = conditions

        if not self._candidates:
            logger.warning("No stream candidates to select from")
            return None

        return self.select_initial()

    def target_quality(self, conditions: Optional[NetworkConditions] = None) -> int:
        """Configured target for the connection category."""
        conditions = conditions or self.conditions or NetworkConditions()
        category = conditions.category
        if category in self.settings.preferences:
            return self.settings.preferences[category]
        return 480 if self.conserve_bandwidth else DEFAULT_QUALITY

    def select_initial(self) -> Optional[QualityCandidate]:
        """Pick the best available quality at or below the connection target."""
        size = find_best_quality(self.target_quality(), self.available_qualities)
        if size is None:
            return None
        self._apply(size, "initial selection")
        return self._current

    def check_buffer_health(self, buffer_ahead: float) -> Optional[int]:
        """
        React to the amount of media buffered ahead of the playhead.

        Args:
            buffer_ahead: Seconds buffered beyond the current position

        Returns:
            The quality requested by this check, or None if nothing changes
        """
        if not self.auto_enabled or self._current is None:
            return None

        current = self._current.size
        if buffer_ahead < self.settings.buffer_low_water:
            lower = self.lower_tier(current)
            if lower is not None:
                logger.info(f"Buffer low ({buffer_ahead:.1f}s), stepping down to {lower}p")
                self.request_quality(lower, "low buffer")
                return lower
        elif buffer_ahead > self.settings.buffer_high_water:
            higher = self.higher_tier(current)
            if higher is not None and can_support_quality(higher, self.conditions, self.conserve_bandwidth):
                logger.info(f"Buffer healthy ({buffer_ahead:.1f}s), stepping up to {higher}p")
                self.request_quality(higher, "healthy buffer")
                return higher
        return None

    def request_quality(self, size: int, reason: str = "adaptive") -> None:
        """
        Schedule a debounced quality change.

        Requests within the debounce window replace each other; only the last
        one is applied. Without a running event loop the change applies at once.
        """
        self._pending = (size, reason)
        if self._pending_handle is not None:
            self._pending_handle.cancel()
            self._pending_handle = None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None or self.settings.debounce <= 0:
            self._apply_pending()
        else:
            self._pending_handle = loop.call_later(self.settings.debounce, self._apply_pending)

    def _apply_pending(self) -> None:
        self._pending_handle = None
        if self._pending is None:
            return
        size, reason = self._pending
        self._pending = None
        self._apply(size, reason)

    def _cancel_pending(self) -> None:
        if self._pending_handle is not None:
            self._pending_handle.cancel()
        self._pending_handle = None
        self._pending = None

    def _apply(self, size: int, reason: str) -> None:
        candidate = self.candidate_for(size)
        if candidate is None:
            logger.warning(f"Quality {size}p is not available")
            return
        if self._current is not None and self._current.size == size:
            return

        previous = self._current
        self._current = candidate
        logger.info(f"Quality set to {candidate} ({reason})")
        if self.on_change is not None:
            self.on_change(QualityChange(previous=previous, current=candidate, reason=reason))

    def set_quality(self, size: int) -> bool:
        """
        Manually select a quality, disabling adaptive adjustment.

        The choice also becomes the preference for the current connection
        category.

        Returns:
            True if the quality exists and was applied
        """
        if self.candidate_for(size) is None:
            return False
        self.disable_auto_quality()
        self._cancel_pending()
        self._apply(size, "manual selection")
        category = (self.conditions or NetworkConditions()).category
        if category != "unknown":
            self.settings.preferences[category] = size
        return True

    def enable_auto_quality(self) -> None:
        self.auto_enabled = True
        logger.info("Auto quality enabled")

    def disable_auto_quality(self) -> None:
        self.auto_enabled = False
        self._cancel_pending()
        logger.info("Auto quality disabled")

    def set_bandwidth_conservation(self, enabled: bool) -> None:
        """Toggle bandwidth conservation and reselect when adaptive."""
        self.conserve_bandwidth = enabled
        if self.auto_enabled and self._candidates:
            size = find_best_quality(self.target_quality(), self.available_qualities)
            if size is not None:
                self.request_quality(size, "bandwidth conservation changed")

    def update_network(self, conditions: NetworkConditions) -> None:
        """
        Record new network signals.

        When adaptive, the quality is reselected for the new connection after
        a short settling delay.
        """
        self.conditions = conditions
        if not self.auto_enabled or not self._candidates:
            return

        if self._network_handle is not None:
            self._network_handle.cancel()
            self._network_handle = None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._reselect_for_network()
            return
        self._network_handle = loop.call_later(self.settings.network_change_delay, self._reselect_for_network)

    def _reselect_for_network(self) -> None:
        self._network_handle = None
        size = find_best_quality(self.target_quality(), self.available_qualities)
        if size is not None:
            self.request_quality(size, f"network changed to {self.conditions.category if self.conditions else 'unknown'}")

    def recommendations(self) -> Dict[str, Optional[QualityCandidate]]:
        """Maximum, optimal and conservative picks for the current network."""
        result = {
            "current": self._current,
            "maximum": None,
            "optimal": None,
            "conservative": None,
        }
        available = self.available_qualities
        if not available:
            return result

        result["maximum"] = self.candidate_for(available[0])
        result["conservative"] = self.candidate_for(find_best_quality(480, available))

        known = self.conditions is not None and self.conditions.downlink is not None
        if known and can_support_quality(720, self.conditions, self.conserve_bandwidth):
            optimal = 720
        elif known and can_support_quality(480, self.conditions, self.conserve_bandwidth):
            optimal = 480
        else:
            optimal = 360
        result["optimal"] = self.candidate_for(find_best_quality(optimal, available))
        return result

    # Health monitor

    def start_monitoring(self, buffer_probe: Callable[[], Union[float, Awaitable[float]]]) -> asyncio.Task:
        """
        Run :meth:`check_buffer_health` every ``check_interval`` seconds.

        Args:
            buffer_probe: Returns (or resolves to) the seconds buffered ahead
        """
        self.stop_monitoring()
        self._monitor_task = asyncio.get_running_loop().create_task(self._monitor(buffer_probe))
        return self._monitor_task

    async def _monitor(self, buffer_probe: Callable[[], Union[float, Awaitable[float]]]) -> None:
        while True:
            await asyncio.sleep(self.settings.check_interval)
            try:
                buffered = buffer_probe()
                if asyncio.iscoroutine(buffered) or isinstance(buffered, asyncio.Future):
                    buffered = await buffered
                if buffered is not None:
                    self.check_buffer_health(float(buffered))
            except Exception as e:
                logger.warning(f"Buffer health check failed, retrying in {self.settings.check_interval}s: {e}")

    def stop_monitoring(self) -> None:
        if self._monitor_task is not None:
            self._monitor_task.cancel()
            self._monitor_task = None
        if self._network_handle is not None:
            self._network_handle.cancel()
            self._network_handle = None
        self._cancel_pending()


# Export quality API
__all__ = [
    "DEFAULT_QUALITY",
    "REQUIRED_BANDWIDTH_KBPS",
    "parse_quality_size",
    "build_candidates",
    "sort_streams_by_quality",
    "select_best_quality",
    "find_best_quality",
    "NetworkConditions",
    "can_support_quality",
    "QualityChange",
    "QualitySelector",
]
