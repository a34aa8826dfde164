"""
Theme System - Color palettes for terminal output.

Each theme maps the semantic styles used by the CLI (outcome status,
quality tiers, subtitle timing) onto a palette of Rich colors.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from rich.theme import Theme


class ThemeName(str, Enum):
    """Available theme names."""
    DEFAULT = "default"
    DARK = "dark"
    LIGHT = "light"
    COLORFUL = "colorful"


@dataclass
class ColorPalette:
    """Color palette definition for a theme."""

    primary: str
    secondary: str
    accent: str

    success: str
    warning: str
    error: str
    info: str

    text_muted: str
    border: str


_PALETTES: Dict[ThemeName, ColorPalette] = {
    ThemeName.DEFAULT: ColorPalette(
        primary="blue", secondary="cyan", accent="magenta",
        success="green", warning="yellow", error="red", info="blue",
        text_muted="dim white", border="blue",
    ),
    ThemeName.DARK: ColorPalette(
        primary="bright_blue", secondary="bright_cyan", accent="bright_magenta",
        success="bright_green", warning="bright_yellow", error="bright_red", info="bright_blue",
        text_muted="bright_black", border="grey37",
    ),
    ThemeName.LIGHT: ColorPalette(
        primary="blue", secondary="dark_cyan", accent="dark_magenta",
        success="dark_green", warning="dark_orange", error="dark_red", info="blue",
        text_muted="grey37", border="grey70",
    ),
    ThemeName.COLORFUL: ColorPalette(
        primary="dodger_blue1", secondary="deep_sky_blue1", accent="hot_pink",
        success="spring_green1", warning="gold1", error="red1", info="cornflower_blue",
        text_muted="grey62", border="deep_sky_blue3",
    ),
}


class ThemeManager:
    """Manages theme selection and Rich theme creation."""

    def __init__(self):
        self._current_theme = ThemeName.DEFAULT

    def get_palette(self, theme_name: Optional[ThemeName] = None) -> ColorPalette:
        """
        Get color palette for a theme.

        Args:
            theme_name: Theme to get palette for (defaults to current theme)

        Returns:
            ColorPalette for the specified theme
        """
        return _PALETTES.get(theme_name or self._current_theme, _PALETTES[ThemeName.DEFAULT])

    def set_theme(self, theme_name: ThemeName) -> None:
        if theme_name not in _PALETTES:
            raise ValueError(f"Unknown theme: {theme_name}")
        self._current_theme = ThemeName(theme_name)

    def create_rich_theme(self, theme_name: Optional[ThemeName] = None) -> Theme:
        """Build the Rich theme for a palette."""
        palette = self.get_palette(theme_name)
        return Theme({
            "panel.border": palette.border,
            "table.header": f"bold {palette.secondary}",

            "success": palette.success,
            "warning": palette.warning,
            "error": palette.error,
            "info": palette.info,
            "muted": palette.text_muted,

            "title": f"bold {palette.primary}",
            "highlight": f"bold {palette.accent}",
            "link": f"underline {palette.primary}",

            # Outcome status
            "outcome.success": palette.success,
            "outcome.empty": palette.warning,
            "outcome.cancelled": palette.text_muted,

            # Quality tiers
            "quality.high": palette.success,
            "quality.medium": palette.warning,
            "quality.low": palette.error,

            # Subtitle cues
            "cue.time": palette.secondary,
        })


# Global theme manager instance
_theme_manager = ThemeManager()


def get_theme_manager() -> ThemeManager:
    """Get the global theme manager instance."""
    return _theme_manager


def get_theme(theme_name: Optional[ThemeName] = None) -> Theme:
    return get_theme_manager().create_rich_theme(theme_name)


def get_palette(theme_name: Optional[ThemeName] = None) -> ColorPalette:
    return get_theme_manager().get_palette(theme_name)


def set_theme(theme_name: ThemeName) -> None:
    """
    Set the global theme.

    Args:
        theme_name: Theme to activate
    """
    get_theme_manager().set_theme(theme_name)


# Export theme system components
__all__ = [
    "ThemeName",
    "ColorPalette",
    "ThemeManager",
    "get_theme_manager",
    "get_theme",
    "get_palette",
    "set_theme",
]
