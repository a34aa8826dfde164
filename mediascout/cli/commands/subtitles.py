"""
Subtitles Command - Parse a WebVTT or SRT track.
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer

from mediascout.cli.context import get_config_manager, is_debug
from mediascout.cli.commands.common import JSON_OPTION, get_components
from mediascout.core import HttpClient, MediaScoutError, SubtitleLoader, SubtitleParser
from mediascout.core.models import SubtitleTrack
from mediascout.core.utils import format_timestamp, validate_url
from mediascout.ui import display_info, get_console, handle_error, status_spinner


async def _load_remote(url: str, parser: SubtitleParser, default_language: str) -> SubtitleTrack:
    config_manager = get_config_manager()
    async with HttpClient(config_manager.settings.network) as client:
        loader = SubtitleLoader(client, parser, default_language)
        return await loader.load(url)


def subtitles_command(
    source: str = typer.Argument(..., help="Subtitle URL or local file"),
    offset: Optional[float] = typer.Option(
        None,
        "--offset",
        help="Seconds added to every timecode (default from config)",
    ),
    strip_markup: Optional[bool] = typer.Option(
        None,
        "--strip-markup/--keep-markup",
        help="Remove tags and entities from cue text",
    ),
    at: Optional[float] = typer.Option(
        None,
        "--at",
        help="Show the cue active at this playback position (seconds)",
        min=0,
    ),
    limit: Optional[int] = typer.Option(
        None,
        "--limit",
        "-l",
        help="Show at most this many cues",
        min=1,
    ),
    as_json: bool = JSON_OPTION,
) -> None:
    """
    💬 Parse a subtitle track and list its cues.

    Examples:

        mediascout subtitles https://cdn.example/show.en.vtt

        mediascout subtitles episode1.srt --at 62.5
    """
    settings = get_config_manager().settings.subtitles
    parser = SubtitleParser(
        time_offset=settings.time_offset if offset is None else offset,
        strip_markup=settings.strip_markup if strip_markup is None else strip_markup,
    )

    try:
        with status_spinner("Loading subtitles..."):
            if validate_url(source):
                track = asyncio.run(_load_remote(source, parser, settings.default_language))
            else:
                path = Path(source).expanduser()
                track = parser.parse(path.read_text(encoding="utf-8-sig"), url=path.name)
    except (MediaScoutError, OSError) as e:
        handle_error(e, f"While loading subtitles from {source}", show_traceback=is_debug())
        raise typer.Exit(1)

    console = get_console()
    if as_json:
        console.print_json(data=[cue.to_json() for cue in track.cues])
        return

    if at is not None:
        cue = track.active_cue(at)
        if cue is None:
            display_info(f"No subtitle is shown at {format_timestamp(at)}", "💬 Active Cue")
        else:
            display_info(
                f"[cue.time]{format_timestamp(cue.start_time)} → {format_timestamp(cue.end_time)}[/cue.time]\n\n{cue.text}",
                "💬 Active Cue",
            )
        return

    console.print(get_components().create_cues_table(track, limit))


# Export command
__all__ = ["subtitles_command"]
