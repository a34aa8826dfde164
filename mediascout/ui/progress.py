"""
Progress Display - Spinners for long-running extraction calls.
"""

from contextlib import contextmanager

from rich.status import Status

from mediascout.ui.console import get_console


@contextmanager
def status_spinner(message: str, spinner: str = "dots"):
    """Simple status spinner context manager."""
    status = Status(message, spinner=spinner, console=get_console())

    try:
        status.start()
        yield status
    finally:
        status.stop()


@contextmanager
def extraction_progress(operation: str, module_name: str):
    """Spinner shown while a module runs an extraction operation."""
    with status_spinner(f"[info]{operation}[/info] with [highlight]{module_name}[/highlight]...") as status:
        yield status


# Export components
__all__ = [
    "status_spinner",
    "extraction_progress",
]
