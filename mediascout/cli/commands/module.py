"""
Module Command - Inspect an extraction module.
"""

import typer

from mediascout.cli.commands.common import JSON_OPTION, get_components
from mediascout.cli.context import get_config_manager, is_debug
from mediascout.cli.session import ExtractionSession, run_session
from mediascout.core import MediaScoutError
from mediascout.ui import get_console, handle_error, status_spinner


def module_command(
    source: str = typer.Argument(..., help="Module metadata JSON (path or URL)"),
    console_output: bool = typer.Option(
        False,
        "--console",
        help="Show messages the module wrote to its console while loading",
        is_flag=True,
    ),
    as_json: bool = JSON_OPTION,
) -> None:
    """
    🔌 Load a module and show what it supports.

    The module is evaluated in the sandbox exactly as extraction commands
    would, so load errors surface here first.
    """
    async def run(session: ExtractionSession):
        metadata = await session.load(source)
        return metadata, session.modules.get_module_status(metadata.module_id)

    try:
        with status_spinner("Loading module..."):
            metadata, status = run_session(get_config_manager(), run)
    except MediaScoutError as e:
        handle_error(e, f"While loading module {source}", show_traceback=is_debug())
        raise typer.Exit(1)

    console = get_console()
    if as_json:
        console.print_json(data=status)
        return

    components = get_components()
    console.print(components.create_status_grid({
        "Name": metadata.source_name,
        "Module ID": metadata.module_id,
        "Version": metadata.version,
        "Author": metadata.author,
        "Language": metadata.language,
        "Base URL": metadata.base_url,
        "Search URL": metadata.search_base_url or "-",
        "Async": "yes" if metadata.async_js else "no",
        "Async streams": "yes" if metadata.stream_async_js else "no",
        "Stream type": metadata.stream_type or "-",
        "Quality": metadata.quality or "-",
        "Functions": ", ".join(status["functions"]) or "none",
    }, title=f"🔌 {metadata}"))

    if console_output:
        messages = status["console"]
        if not messages:
            console.print("[muted]No console output[/muted]")
        for message in messages:
            console.print(f"[muted]{message['level']:>5}[/muted] {message['message']}")


# Export command
__all__ = ["module_command"]
