"""
CLI Main Application - Typer app entry point.

This module provides the main CLI application entry point: logging and
theme setup in the callback, and registration of every command.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

import typer
from rich.traceback import install as install_rich_traceback

from mediascout import __version__
from mediascout.core import ConfigManager, MediaScoutError
from mediascout.core.config_schemas import LoggingSettings
from mediascout.ui import (
    ThemeName,
    display_info,
    get_console,
    handle_error,
    set_theme,
    setup_console,
)
from mediascout.cli.context import get_config_manager, set_config_manager, set_debug


# Create main Typer application
app = typer.Typer(
    name="mediascout",
    help="🎬 Run extraction modules to search media, list episodes and resolve streams",
    no_args_is_help=True,
    invoke_without_command=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version information and exit",
        is_flag=True,
    ),
    config_dir: Optional[Path] = typer.Option(
        None,
        "--config-dir",
        help="Configuration directory path",
        exists=False,
        file_okay=False,
        dir_okay=True,
    ),
    theme: Optional[ThemeName] = typer.Option(
        None,
        "--theme",
        help="UI color theme",
        case_sensitive=False,
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug mode with detailed logging",
        is_flag=True,
    ),
) -> None:
    """
    🎬 MediaScout - sandboxed extraction modules from the command line.

    Modules are described by a metadata JSON file whose scriptUrl points at
    a Python extraction script. Pass the metadata with --module/-m.
    """
    if version:
        get_console().print(f"[bold blue]MediaScout[/bold blue] version [green]{__version__}[/green]")
        raise typer.Exit()

    try:
        _initialize_application(config_dir=config_dir, theme=theme, debug=debug)
    except MediaScoutError as e:
        handle_error(e, "During application initialization", show_traceback=debug)
        raise typer.Exit(1)


def _initialize_application(
    config_dir: Optional[Path] = None,
    theme: Optional[ThemeName] = None,
    debug: bool = False,
) -> None:
    """
    Initialize configuration, logging and UI.

    Args:
        config_dir: Configuration directory override
        theme: Theme override
        debug: Enable debug mode
    """
    set_debug(debug)
    install_rich_traceback(show_locals=debug)

    config_manager = ConfigManager(config_dir or Path("config"))
    set_config_manager(config_manager)

    _setup_logging(config_manager.settings.logging, debug, config_manager.config_dir)
    _setup_ui(theme, debug)


def _setup_logging(settings: LoggingSettings, debug: bool = False, base_dir: Optional[Path] = None) -> None:
    """
    Set up application logging.

    Args:
        settings: Logging section of the configuration
        debug: Force DEBUG level
        base_dir: Directory that relative log file names resolve against
    """
    level = logging.DEBUG if debug else getattr(logging, settings.level)

    handlers = [logging.StreamHandler(sys.stderr)]
    if settings.file:
        log_path = Path(settings.file).expanduser()
        if not log_path.is_absolute() and base_dir is not None:
            log_path = base_dir / log_path
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            log_path,
            maxBytes=settings.max_bytes,
            backupCount=settings.backup_count,
            encoding="utf-8",
        ))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )

    # Reduce noise from third-party libraries
    if not debug:
        logging.getLogger("aiohttp").setLevel(logging.WARNING)
        logging.getLogger("urllib3").setLevel(logging.WARNING)


def _setup_ui(theme_override: Optional[ThemeName] = None, debug: bool = False) -> None:
    """
    Set up UI console and theme.

    Args:
        theme_override: Theme to use (overrides configuration)
        debug: Enable debug mode
    """
    if theme_override:
        theme = theme_override
    else:
        theme = ThemeName(get_config_manager().settings.ui.color_theme)

    set_theme(theme)
    setup_console(theme_name=theme)

    if debug:
        display_info(f"UI initialized with theme: {theme.value}")


def _register_commands() -> None:
    """Register commands with the main app."""
    # Import commands here to avoid circular imports
    from mediascout.cli.commands import config, details, module, search, streams, subtitles

    app.command(name="search")(search.search_command)
    app.command(name="details")(details.details_command)
    app.command(name="episodes")(details.episodes_command)
    app.command(name="streams")(streams.streams_command)
    app.command(name="subtitles")(subtitles.subtitles_command)
    app.command(name="module")(module.module_command)
    app.add_typer(config.app, name="config", help="⚙️  Manage configuration")


# Register commands at module level to ensure they're available for help
_register_commands()


def cli_main() -> None:
    """
    Main CLI entry point for the mediascout command.

    This function is called when the user runs 'mediascout' from the command line.
    """
    try:
        app()
    except KeyboardInterrupt:
        get_console().print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(130)  # Standard exit code for SIGINT


# Export main components
__all__ = [
    "app",
    "cli_main",
]
