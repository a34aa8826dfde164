"""
CLI Layer - Command-line interface built on Typer.

This module contains the command definitions and the session wiring that
connects them to the sandbox and orchestrator.
"""

from mediascout.cli.main import app, cli_main

__all__ = ["app", "cli_main"]
