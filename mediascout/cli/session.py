"""
CLI Session - Runtime wiring for extraction commands.

A session owns the HTTP client, sandbox, module manager and orchestrator
for one command invocation, and runs the command under a cancellation
token that Ctrl-C trips.
"""

import asyncio
import logging
import signal
from typing import Awaitable, Callable, Optional, TypeVar

from mediascout.core import (
    CancellationToken,
    ConfigManager,
    ExtractionOrchestrator,
    HttpClient,
    ModuleManager,
    ModuleMetadata,
    ModuleSandbox,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")


class ExtractionSession:
    """Builds the extraction stack from configuration."""

    def __init__(self, config_manager: ConfigManager):
        settings = config_manager.settings
        self.settings = settings
        self.http_client = HttpClient(settings.network)
        self.sandbox = ModuleSandbox(settings.sandbox, http_client=self.http_client)
        self.modules = ModuleManager(config_manager, sandbox=self.sandbox, http_client=self.http_client)
        self.orchestrator = ExtractionOrchestrator(self.sandbox, self.http_client, settings.extraction)
        self.token = CancellationToken()

    async def load(self, source: str) -> ModuleMetadata:
        """Import the module named on the command line."""
        return await self.modules.import_module(source)

    async def __aenter__(self) -> "ExtractionSession":
        self.sandbox.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.modules.cleanup()


def run_session(
    config_manager: ConfigManager,
    command: Callable[[ExtractionSession], Awaitable[T]],
) -> T:
    """
    Run an async command inside a fresh session.

    SIGINT cancels the session token instead of interrupting the loop, so
    the in-flight operation reports a cancelled outcome and resources are
    released normally. A second Ctrl-C falls back to KeyboardInterrupt.

    Args:
        config_manager: Configuration manager instance
        command: Coroutine function receiving the session

    Returns:
        Whatever the command returns
    """
    async def main() -> T:
        async with ExtractionSession(config_manager) as session:
            loop = asyncio.get_running_loop()
            installed = _install_interrupt(loop, session.token)
            try:
                return await command(session)
            finally:
                if installed:
                    loop.remove_signal_handler(signal.SIGINT)

    return asyncio.run(main())


def _install_interrupt(loop: asyncio.AbstractEventLoop, token: CancellationToken) -> bool:
    def interrupt() -> None:
        if token.cancelled:
            loop.remove_signal_handler(signal.SIGINT)
            raise KeyboardInterrupt
        logger.info("Interrupt received, cancelling operation")
        token.cancel("interrupted by user")

    try:
        loop.add_signal_handler(signal.SIGINT, interrupt)
    except (NotImplementedError, RuntimeError):
        # Windows event loops have no signal handlers
        logger.debug("Signal handlers unavailable, Ctrl-C will abort immediately")
        return False
    return True


# Export session helpers
__all__ = ["ExtractionSession", "run_session"]
