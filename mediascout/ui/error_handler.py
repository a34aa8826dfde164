"""
Error Handler - Error panels with context and suggestions.

This module renders MediaScout exceptions as Rich panels that name the
module, URL or setting involved and suggest what to try next.
"""

import traceback
from typing import List, Optional, Tuple

from rich.panel import Panel

from mediascout.core.exceptions import (
    ConfigurationError,
    ContextNotFoundError,
    ExtractionCancelledError,
    FunctionMissingError,
    MalformedResultError,
    MediaScoutError,
    ModuleError,
    ModuleLoadError,
    ModuleTimeoutError,
    NetworkError,
    ValidationError,
)
from mediascout.ui.console import get_console
from mediascout.ui.themes import get_palette


class ErrorHandler:
    """Handles error display with consistent formatting and helpful context."""

    def __init__(self):
        self.palette = get_palette()

    @property
    def console(self):
        return get_console()

    def handle_error(
        self,
        error: Exception,
        context: Optional[str] = None,
        show_traceback: bool = False
    ) -> None:
        """
        Handle and display an error with appropriate formatting.

        Args:
            error: Exception to handle
            context: Additional context about where the error occurred
            show_traceback: Whether to show the full traceback
        """
        if isinstance(error, ExtractionCancelledError):
            self.display_info(error.message, title="⏹  Cancelled")
            return

        if isinstance(error, MediaScoutError):
            title, fields, suggestions = self._describe(error)
            message = error.message
        else:
            title = "💥 Unexpected Error"
            fields = []
            suggestions = [
                "Check the command syntax and arguments",
                "Run again with [cyan]--debug[/cyan] for a full log",
                "Report this issue if it persists",
            ]
            message = f"{error.__class__.__name__}: {error}"

        self._display(title, message, fields, suggestions, error, context, show_traceback)

    def _describe(self, error: MediaScoutError) -> Tuple[str, List[Tuple[str, str]], List[str]]:
        """Title, extra fields and suggestions for a MediaScout error."""
        if isinstance(error, ConfigurationError):
            return "⚙️  Configuration Error", [("Configuration file", error.config_path)], [
                "Check configuration file syntax and format",
                "Inspect settings with [cyan]mediascout config show[/cyan]",
                "Reset to defaults with [cyan]mediascout config reset[/cyan]",
            ]

        if isinstance(error, NetworkError):
            suggestions = [
                "Check your internet connection",
                "Verify the source website is accessible",
                "Try again in a few moments",
            ]
            if error.status_code == 403:
                suggestions.insert(0, "The source may be blocking requests")
            elif error.status_code == 404:
                suggestions.insert(0, "The requested page may no longer exist")
            elif error.status_code and error.status_code >= 500:
                suggestions.insert(0, "The source server is experiencing issues")
            status = str(error.status_code) if error.status_code else None
            return "🌐 Network Error", [("URL", error.url), ("Status Code", status)], suggestions

        if isinstance(error, ContextNotFoundError):
            return "🔌 Module Not Loaded", [("Module", error.module_id)], [
                "Import the module again with [cyan]--module[/cyan]",
                "Idle modules are unloaded after the configured TTL",
            ]

        if isinstance(error, ModuleLoadError):
            return "🔌 Module Load Error", [("Module", error.module_id)], [
                "Check the module metadata has sourceName, version and scriptUrl",
                "Make sure scriptUrl points at a readable Python script",
                "Look for syntax errors in the module script",
            ]

        if isinstance(error, FunctionMissingError):
            return "🔌 Function Missing", [("Module", error.module_id), ("Function", error.function_name)], [
                "This module does not support the requested operation",
                "Inspect the module with [cyan]mediascout module[/cyan]",
            ]

        if isinstance(error, ModuleTimeoutError):
            timeout = f"{error.timeout:.1f}s" if error.timeout is not None else None
            return "⏱  Module Timeout", [("Module", error.module_id), ("Timeout", timeout)], [
                "The source may be slow; try again",
                "Raise the limit with [cyan]mediascout config set sandbox.call_timeout 60[/cyan]",
            ]

        if isinstance(error, ModuleError):
            return "🔌 Module Error", [("Module", error.module_id)], [
                "The module failed while processing the page",
                "Check module console output with [cyan]mediascout module --console[/cyan]",
            ]

        if isinstance(error, MalformedResultError):
            return "🧩 Malformed Result", [], [
                "The module returned data in an unexpected shape",
                "The source page layout may have changed",
            ]

        if isinstance(error, ValidationError):
            return "✅ Validation Error", [("Field", error.field_name)], [
                "Check the value format and allowed range",
            ]

        return "❌ Error", [], []

    def _display(
        self,
        title: str,
        message: str,
        fields: List[Tuple[str, Optional[str]]],
        suggestions: List[str],
        error: Exception,
        context: Optional[str],
        show_traceback: bool,
    ) -> None:
        content_parts = [f"[{self.palette.error}]{message}[/{self.palette.error}]"]

        for label, value in fields:
            if value:
                content_parts.append(f"[dim]{label}:[/dim] [cyan]{value}[/cyan]")

        if context:
            content_parts.append(f"[dim]Context:[/dim] {context}")

        if suggestions:
            content_parts.append(f"\n[{self.palette.info}]💡 Suggestions:[/{self.palette.info}]")
            content_parts.extend(f"• {suggestion}" for suggestion in suggestions)

        details = getattr(error, "details", None)
        if show_traceback:
            if details:
                content_parts.append(f"\n[dim]Details:[/dim]\n{details}")
            content_parts.append(f"\n[dim]Traceback:[/dim]\n{''.join(traceback.format_exception(error))}")

        self.console.print(Panel(
            "\n".join(content_parts),
            title=title,
            border_style=self.palette.error,
            padding=(1, 2)
        ))

    def display_warning(self, message: str, title: str = "⚠️  Warning") -> None:
        """
        Display a warning message.

        Args:
            message: Warning message
            title: Warning title
        """
        self.console.print(Panel(
            f"[{self.palette.warning}]{message}[/{self.palette.warning}]",
            title=f"[{self.palette.warning}]{title}[/{self.palette.warning}]",
            border_style=self.palette.warning,
            padding=(1, 2)
        ))

    def display_info(self, message: str, title: str = "ℹ️  Information") -> None:
        self.console.print(Panel(
            f"[{self.palette.info}]{message}[/{self.palette.info}]",
            title=f"[{self.palette.info}]{title}[/{self.palette.info}]",
            border_style=self.palette.info,
            padding=(1, 2)
        ))


# Global error handler instance
_error_handler = ErrorHandler()


def get_error_handler() -> ErrorHandler:
    """Get the global error handler instance."""
    return _error_handler


def handle_error(
    error: Exception,
    context: Optional[str] = None,
    show_traceback: bool = False
) -> None:
    """
    Handle and display an error using the global error handler.

    Args:
        error: Exception to handle
        context: Additional context
        show_traceback: Whether to show traceback
    """
    get_error_handler().handle_error(error, context, show_traceback)


def display_warning(message: str, title: str = "⚠️  Warning") -> None:
    """Display a warning message using the global error handler."""
    get_error_handler().display_warning(message, title)


def display_info(message: str, title: str = "ℹ️  Information") -> None:
    """Display an information message using the global error handler."""
    get_error_handler().display_info(message, title)


# Export error handling functions
__all__ = [
    "ErrorHandler",
    "get_error_handler",
    "handle_error",
    "display_warning",
    "display_info",
]
