"""
UI Layer - Rich rendering for the command line.

This module contains the theme system, the shared console, error panels,
spinners and the tables used to display extraction results.
"""

from mediascout.ui.components import UIComponents
from mediascout.ui.themes import ThemeManager, ThemeName, get_theme, set_theme
from mediascout.ui.error_handler import ErrorHandler, handle_error, display_warning, display_info
from mediascout.ui.progress import status_spinner, extraction_progress
from mediascout.ui.console import get_console, setup_console

__all__ = [
    # Core UI Components
    "UIComponents",
    # Theme System
    "ThemeManager",
    "ThemeName",
    "get_theme",
    "set_theme",
    # Error Handling
    "ErrorHandler",
    "handle_error",
    "display_warning",
    "display_info",
    # Progress Display
    "status_spinner",
    "extraction_progress",
    # Console Management
    "get_console",
    "setup_console",
]
