"""
UI Components - Rich renderables for extraction results.

This module turns search items, media details, episode lists, stream
sources and subtitle cues into tables and panels with consistent styling.
"""

from typing import Any, Dict, List, Optional

from rich import box
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from mediascout.core.models import EpisodeLink, MediaItem, QualityCandidate, SearchItem, SubtitleTrack
from mediascout.core.utils import format_timestamp
from mediascout.plugins.common import TextCleaner
from mediascout.ui.themes import get_palette


_TABLE_BOXES = {
    "rounded": box.ROUNDED,
    "simple": box.SIMPLE,
    "grid": box.SQUARE,
    "minimal": box.MINIMAL,
}


def quality_style(size: int) -> str:
    """Theme style for a quality tier."""
    if size >= 1080:
        return "quality.high"
    if size >= 720:
        return "quality.medium"
    return "quality.low"


class UIComponents:
    """Collection of standardized UI components with consistent styling."""

    def __init__(self, table_style: str = "rounded", max_description_length: int = 400):
        """
        Initialize UI components with current theme.

        Args:
            table_style: Box style name for tables
            max_description_length: Synopsis length shown in details panels
        """
        self.palette = get_palette()
        self.box = _TABLE_BOXES.get(table_style, box.ROUNDED)
        self.max_description_length = max_description_length

    def _table(self, title: str) -> Table:
        return Table(
            title=title,
            box=self.box,
            show_header=True,
            header_style=f"bold {self.palette.secondary}",
            border_style=self.palette.border,
            expand=True
        )

    def create_search_results_table(self, results: List[SearchItem], module_name: str = "") -> Table:
        """
        Create a table displaying search results.

        Args:
            results: Search items in display order
            module_name: Module that produced them

        Returns:
            Formatted table with search results
        """
        title = f"🔍 Search Results - {module_name}" if module_name else "🔍 Search Results"
        table = self._table(title)
        table.add_column("#", style="dim", width=4)
        table.add_column("Title", style=self.palette.primary, min_width=30)
        table.add_column("Link", style="link", overflow="fold")

        for i, item in enumerate(results, 1):
            table.add_row(str(i), item.title, item.href)

        return table

    def create_details_panel(self, details: List[MediaItem], title: str = "📖 Details") -> Panel:
        """Panel with synopsis, aliases and airdate of the first details record."""
        if not details:
            return Panel("[muted]No details available[/muted]", title=title, border_style=self.palette.border)

        item = details[0]
        content = Text()
        description = TextCleaner.clean_description(item.description, self.max_description_length)
        content.append(description or "No description", style="" if description else "muted")
        if item.aliases:
            content.append("\n\nAliases: ", style="bold")
            content.append(", ".join(item.alias_list))
        if item.airdate:
            content.append("\nAired: ", style="bold")
            content.append(item.formatted_airdate)

        return Panel(content, title=title, border_style=self.palette.border, padding=(1, 2))

    def create_episodes_table(self, episodes: List[EpisodeLink]) -> Table:
        """
        Create a table displaying an episode list.

        Args:
            episodes: Episodes in module order

        Returns:
            Formatted table with episodes
        """
        table = self._table(f"📺 Episodes ({len(episodes)})")
        table.add_column("#", style="dim", width=5)
        table.add_column("Title", style=self.palette.primary, min_width=25)
        table.add_column("Duration", width=9)
        table.add_column("Link", style="link", overflow="fold")

        for episode in episodes:
            table.add_row(
                str(episode.number),
                episode.display_title,
                episode.formatted_duration or "?",
                episode.href,
            )

        return table

    def create_streams_table(
        self,
        candidates: List[QualityCandidate],
        selected: Optional[QualityCandidate] = None,
    ) -> Table:
        """Ranked stream candidates, marking the selected one."""
        table = self._table("🎬 Streams")
        table.add_column("", width=2)
        table.add_column("Quality", width=10)
        table.add_column("Label", style=self.palette.accent, width=16)
        table.add_column("Headers", width=8)
        table.add_column("URL", style="link", overflow="fold")

        for candidate in candidates:
            marker = "▶" if selected is not None and candidate.url == selected.url else ""
            table.add_row(
                marker,
                f"[{quality_style(candidate.size)}]{candidate.size}p[/{quality_style(candidate.size)}]",
                candidate.quality_label or "-",
                str(len(candidate.headers)) if candidate.headers else "-",
                candidate.url,
            )

        return table

    def create_subtitles_table(self, urls: List[str]) -> Table:
        table = self._table("💬 Subtitles")
        table.add_column("#", style="dim", width=4)
        table.add_column("URL", style="link", overflow="fold")
        for i, url in enumerate(urls, 1):
            table.add_row(str(i), url)
        return table

    def create_cues_table(self, track: SubtitleTrack, limit: Optional[int] = None) -> Table:
        """
        Create a table of subtitle cues.

        Args:
            track: Parsed subtitle track
            limit: Show at most this many cues

        Returns:
            Formatted cue table
        """
        table = self._table(f"💬 {track.label} ({track.format.value.upper()}, {len(track)} cues)")
        table.add_column("ID", style="dim", width=6)
        table.add_column("Start", style="cue.time", width=12)
        table.add_column("End", style="cue.time", width=12)
        table.add_column("Text")

        cues = track.cues if limit is None else track.cues[:limit]
        for cue in cues:
            table.add_row(cue.id or "", format_timestamp(cue.start_time), format_timestamp(cue.end_time), cue.text)

        return table

    def create_status_grid(self, status_items: Dict[str, Any], title: Optional[str] = None) -> Table:
        """
        Create a two-column key/value grid.

        Args:
            status_items: Dictionary of status key-value pairs
            title: Optional grid title

        Returns:
            Formatted status table
        """
        table = Table(
            title=title,
            box=self.box,
            show_header=False,
            border_style=self.palette.border,
            expand=True,
            padding=(0, 1)
        )
        table.add_column("Key", style=f"bold {self.palette.secondary}", width=22)
        table.add_column("Value")

        for key, value in status_items.items():
            table.add_row(key, str(value))

        return table

    def create_outcome_line(self, status: str, strategy: Optional[str], from_cache: bool = False) -> Text:
        """One-line summary of how an extraction ended."""
        line = Text()
        line.append(status.upper(), style=f"outcome.{status}")
        if strategy:
            line.append(f"  via {strategy}", style="muted")
        if from_cache:
            line.append("  (cached)", style="muted")
        return line


# Export UI components
__all__ = ["UIComponents", "quality_style"]
