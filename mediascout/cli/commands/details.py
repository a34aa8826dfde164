"""
Details Commands - Media details and episode lists.
"""

import typer

from mediascout.cli.commands.common import JSON_OPTION, MODULE_OPTION, get_components, report_outcome
from mediascout.cli.context import get_config_manager, is_debug
from mediascout.cli.session import ExtractionSession, run_session
from mediascout.core import MediaScoutError
from mediascout.ui import extraction_progress, get_console, handle_error


def details_command(
    url: str = typer.Argument(..., help="Media page URL (or path relative to the module base URL)"),
    module: str = MODULE_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """
    📖 Show details and episodes of a media page.

    Details and episodes are extracted concurrently; either may be shown
    on its own when the other fails.
    """
    async def run(session: ExtractionSession):
        metadata = await session.load(module)
        with extraction_progress("Extracting details", metadata.source_name):
            return await session.orchestrator.details(url, metadata, session.token)

    try:
        outcome = run_session(get_config_manager(), run)
    except MediaScoutError as e:
        handle_error(e, "During details extraction", show_traceback=is_debug())
        raise typer.Exit(1)

    console = get_console()
    if as_json:
        console.print_json(data=outcome.value.to_json())
        return

    if report_outcome(outcome, "details or episodes"):
        components = get_components()
        console.print(components.create_details_panel(outcome.value.details))
        if outcome.value.episodes:
            console.print(components.create_episodes_table(outcome.value.episodes))


def episodes_command(
    url: str = typer.Argument(..., help="Media page URL"),
    module: str = MODULE_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """📺 List the episodes of a media page."""
    async def run(session: ExtractionSession):
        metadata = await session.load(module)
        with extraction_progress("Extracting episodes", metadata.source_name):
            return await session.orchestrator.episodes(url, metadata, session.token)

    try:
        outcome = run_session(get_config_manager(), run)
    except MediaScoutError as e:
        handle_error(e, "During episode extraction", show_traceback=is_debug())
        raise typer.Exit(1)

    console = get_console()
    if as_json:
        console.print_json(data=[episode.to_json() for episode in outcome.value])
        return

    if report_outcome(outcome, "episodes"):
        console.print(get_components().create_episodes_table(outcome.value))


# Export commands
__all__ = ["details_command", "episodes_command"]
