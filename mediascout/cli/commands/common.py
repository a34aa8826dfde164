"""
Command Helpers - Options and output shared by extraction commands.
"""

import typer

from mediascout.core import ExtractionOutcome
from mediascout.ui import UIComponents, display_warning, get_console
from mediascout.cli.context import get_config_manager


MODULE_OPTION = typer.Option(
    ...,
    "--module",
    "-m",
    help="Module metadata JSON (path or URL)",
)

JSON_OPTION = typer.Option(
    False,
    "--json",
    help="Print raw JSON instead of tables",
    is_flag=True,
)


def get_components() -> UIComponents:
    """UI components configured from the ui settings section."""
    ui = get_config_manager().settings.ui
    return UIComponents(table_style=ui.table_style, max_description_length=ui.max_description_length)


def report_outcome(outcome: ExtractionOutcome, what: str) -> bool:
    """
    Print the outcome summary and explain empty or cancelled results.

    Returns:
        True if there is something to display
    """
    console = get_console()
    console.print(get_components().create_outcome_line(outcome.status.value, outcome.strategy, outcome.from_cache))

    if outcome.is_cancelled:
        console.print(f"[muted]{what} cancelled[/muted]")
        return False

    if outcome.is_empty:
        attempts = "\n".join(f"• {error}" for error in outcome.errors) or "• no strategy applied"
        display_warning(f"No {what} found.\n\nAttempts:\n{attempts}", "⚠️  Nothing Found")
        return False

    return True


# Export helpers
__all__ = ["MODULE_OPTION", "JSON_OPTION", "get_components", "report_outcome"]
