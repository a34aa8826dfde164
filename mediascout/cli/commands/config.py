"""
Configuration Command - Settings management functionality.

This module implements the config command group for inspecting, changing
and resetting settings stored by the ConfigManager.
"""

import json
from typing import Any, Optional

import typer
from rich.prompt import Confirm

from mediascout.cli.context import get_config_manager
from mediascout.core import ConfigurationError
from mediascout.ui import display_info, display_warning, get_console, handle_error
from mediascout.cli.commands.common import get_components


# Create config command group
app = typer.Typer(
    name="config",
    help="⚙️  Manage application configuration and settings",
    no_args_is_help=True,
)


def parse_value(raw: str) -> Any:
    """Interpret a command-line value as JSON, falling back to the raw string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


@app.command(name="show")
def show_config(
    section: Optional[str] = typer.Argument(
        None,
        help="Section to display (sandbox, extraction, network, subtitles, quality, logging, ui)"
    ),
) -> None:
    """📋 Display current configuration."""
    config_manager = get_config_manager()
    settings = config_manager.settings.model_dump()

    if section is not None and section not in settings:
        display_warning(
            f"Unknown section '{section}'.\n\nAvailable: {', '.join(settings)}",
            "⚠️  Unknown Section"
        )
        raise typer.Exit(1)

    components = get_components()
    console = get_console()
    for name, values in settings.items():
        if section is not None and name != section:
            continue
        console.print(components.create_status_grid(values, title=f"[{name}]"))

    report = config_manager.validate_configuration()
    for warning in report["warnings"]:
        console.print(f"[warning]⚠ {warning}[/warning]")
    for issue in report["issues"]:
        console.print(f"[error]✗ {issue}[/error]")


@app.command(name="set")
def set_config(
    key: str = typer.Argument(..., help="Configuration key (dot notation)"),
    value: str = typer.Argument(..., help="New value (JSON literals are parsed)"),
) -> None:
    """
    🔧 Set a configuration value.

    Example: mediascout config set sandbox.call_timeout 45
    """
    try:
        get_config_manager().update_setting(key, parse_value(value))
    except ConfigurationError as e:
        handle_error(e, f"Failed to set configuration value '{key}'")
        raise typer.Exit(1)

    display_info(f"{key} = {value}", "✅ Configuration Updated")


@app.command(name="reset")
def reset_config(
    confirm: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip confirmation prompt"
    ),
) -> None:
    """🔄 Reset configuration to defaults."""
    if not confirm and not Confirm.ask(
        "[bold red]⚠️  This will reset ALL configuration to defaults. Continue?[/bold red]",
        default=False
    ):
        display_info("Configuration reset cancelled.", "ℹ️  Cancelled")
        return

    try:
        get_config_manager().reset_to_defaults()
    except ConfigurationError as e:
        handle_error(e, "Failed to reset configuration")
        raise typer.Exit(1)

    display_info("Configuration has been reset to default values.", "✅ Configuration Reset")


# Export command group
__all__ = ["app", "parse_value"]
