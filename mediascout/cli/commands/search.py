"""
Search Command - Keyword search through an extraction module.
"""

import logging
from typing import Optional

import typer

from mediascout.cli.commands.common import JSON_OPTION, MODULE_OPTION, get_components, report_outcome
from mediascout.cli.context import get_config_manager, is_debug
from mediascout.cli.session import ExtractionSession, run_session
from mediascout.core import MediaScoutError, SearchFilters
from mediascout.ui import extraction_progress, get_console, handle_error


logger = logging.getLogger(__name__)


def search_command(
    query: str = typer.Argument(..., help="Keyword to search for"),
    module: str = MODULE_OPTION,
    limit: Optional[int] = typer.Option(
        None,
        "--limit",
        "-l",
        help="Maximum number of results",
        min=1,
        max=500,
    ),
    no_sort: bool = typer.Option(
        False,
        "--no-sort",
        help="Keep module order instead of sorting by relevance",
        is_flag=True,
    ),
    as_json: bool = JSON_OPTION,
) -> None:
    """
    🔍 Search a module for a keyword.

    Examples:

        mediascout search "attack on titan" -m modules/demo/demo.json

        mediascout search naruto -m https://example.com/module.json --limit 10
    """
    config_manager = get_config_manager()
    extraction = config_manager.settings.extraction
    filters = SearchFilters(
        sort_by_relevance=not no_sort,
        max_results=limit or extraction.max_results,
    )

    async def run(session: ExtractionSession):
        metadata = await session.load(module)
        with extraction_progress("Searching", metadata.source_name):
            outcome = await session.orchestrator.search(query, metadata, session.token, filters)
        return metadata, outcome

    try:
        metadata, outcome = run_session(config_manager, run)
    except MediaScoutError as e:
        handle_error(e, "During search", show_traceback=is_debug())
        raise typer.Exit(1)

    console = get_console()
    if as_json:
        console.print_json(data=[item.to_json() for item in outcome.value])
        return

    if report_outcome(outcome, "results"):
        console.print(get_components().create_search_results_table(outcome.value, metadata.source_name))


# Export command
__all__ = ["search_command"]
