"""
Streams Command - Stream extraction with quality selection.

Extracted sources are ranked by quality and the initial pick is made the
way a player would, from the connection type and bandwidth given on the
command line.
"""

from typing import Optional

import typer

from mediascout.cli.commands.common import JSON_OPTION, MODULE_OPTION, get_components, report_outcome
from mediascout.cli.context import get_config_manager, is_debug
from mediascout.cli.session import ExtractionSession, run_session
from mediascout.core import MediaScoutError, NetworkConditions, QualitySelector
from mediascout.ui import extraction_progress, get_console, handle_error


def streams_command(
    url: str = typer.Argument(..., help="Episode page URL"),
    module: str = MODULE_OPTION,
    connection: Optional[str] = typer.Option(
        None,
        "--connection",
        "-c",
        help="Connection type (wifi, ethernet, cellular, 4g...)",
    ),
    downlink: Optional[float] = typer.Option(
        None,
        "--downlink",
        help="Estimated downlink in Mbps",
        min=0,
    ),
    rtt: Optional[float] = typer.Option(
        None,
        "--rtt",
        help="Round-trip time in milliseconds",
        min=0,
    ),
    conserve: bool = typer.Option(
        False,
        "--conserve",
        help="Prefer lower qualities to save bandwidth",
        is_flag=True,
    ),
    as_json: bool = JSON_OPTION,
) -> None:
    """
    🎬 Extract playable streams for an episode.

    Examples:

        mediascout streams /watch/frieren-1 -m modules/demo/demo.json

        mediascout streams https://site/ep/1 -m meta.json -c cellular --downlink 3
    """
    config_manager = get_config_manager()

    async def run(session: ExtractionSession):
        metadata = await session.load(module)
        with extraction_progress("Extracting streams", metadata.source_name):
            return await session.orchestrator.streams(url, metadata, session.token)

    try:
        outcome = run_session(config_manager, run)
    except MediaScoutError as e:
        handle_error(e, "During stream extraction", show_traceback=is_debug())
        raise typer.Exit(1)

    console = get_console()
    if as_json:
        console.print_json(data=outcome.value.to_json())
        return

    if not report_outcome(outcome, "streams"):
        return

    selector = QualitySelector(config_manager.settings.quality)
    selector.set_bandwidth_conservation(conserve or selector.conserve_bandwidth)
    conditions = None
    if connection is not None or downlink is not None or rtt is not None:
        conditions = NetworkConditions(type=connection, downlink=downlink, rtt=rtt)
    selected = selector.load(outcome.value, conditions)

    components = get_components()
    console.print(components.create_streams_table(selector.candidates, selected))

    recommendations = selector.recommendations()
    console.print(components.create_status_grid({
        "Connection": (conditions or NetworkConditions()).category,
        "Target": f"{selector.target_quality()}p",
        "Selected": str(selected) if selected else "-",
        "Maximum": str(recommendations["maximum"] or "-"),
        "Optimal": str(recommendations["optimal"] or "-"),
        "Conservative": str(recommendations["conservative"] or "-"),
    }, title="Quality"))

    if outcome.value.subtitles:
        console.print(components.create_subtitles_table(outcome.value.subtitles))


# Export command
__all__ = ["streams_command"]
