"""
Module Capabilities - The handles injected into extraction modules.

Modules never reach the host directly. They receive a console that
records into their own context buffer, fetch primitives backed by the
shared HTTP client, a base64 codec and an opaque request-token generator.
"""

import base64
import binascii
import json
import logging
import random
import string
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional

from mediascout.core.network import FetchResponse, HttpClient


# Letters embedded in every generated request token
TOKEN_MARKER = "cranci"
TOKEN_LENGTH = 16
_TOKEN_ALPHABET = string.ascii_lowercase + string.digits

# Console level -> logging level
_CONSOLE_LEVELS = {
    "log": logging.INFO,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "debug": logging.DEBUG,
}


@dataclass(frozen=True)
class ConsoleMessage:
    """One line written by a module to its console."""

    level: str
    message: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {"level": self.level, "message": self.message, "timestamp": self.timestamp}


def _format_argument(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, tuple)):
        try:
            return json.dumps(value, default=str, ensure_ascii=False)
        except (TypeError, ValueError):
            return repr(value)
    return str(value)


class ModuleConsole:
    """
    Console handed to module code.

    Messages go into a bounded per-context buffer and are forwarded to the
    ``mediascout.modules.<module_id>`` logger, never to stdout.
    """

    def __init__(self, module_id: str, max_messages: int = 200):
        self.module_id = module_id
        self._messages: Deque[ConsoleMessage] = deque(maxlen=max_messages)
        self._logger = logging.getLogger(f"mediascout.modules.{module_id}")

    def _write(self, level: str, *args: Any) -> None:
        message = " ".join(_format_argument(arg) for arg in args)
        self._messages.append(ConsoleMessage(level=level, message=message))
        self._logger.log(_CONSOLE_LEVELS[level], message)

    def log(self, *args: Any) -> None:
        self._write("log", *args)

    def info(self, *args: Any) -> None:
        self._write("info", *args)

    def warn(self, *args: Any) -> None:
        self._write("warn", *args)

    def error(self, *args: Any) -> None:
        self._write("error", *args)

    def debug(self, *args: Any) -> None:
        self._write("debug", *args)

    # Python spelling
    warning = warn

    def messages(self, limit: Optional[int] = None, level: Optional[str] = None) -> List[ConsoleMessage]:
        """
        Return buffered messages, oldest first.

        Args:
            limit: Keep only the newest ``limit`` messages
            level: Only messages of this level
        """
        items = [m for m in self._messages if level is None or m.level == level]
        if limit is not None:
            items = items[-limit:] if limit > 0 else []
        return items

    def clear(self) -> None:
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)


def generate_token() -> str:
    """
    Generate an opaque 16-character request token.

    The fixed marker is embedded at a random offset; every other character
    is random lower-case alphanumeric. Modules use the token as a request
    signature and its content carries no other meaning.
    """
    offset = random.randrange(TOKEN_LENGTH - len(TOKEN_MARKER) + 1)
    filler = [random.choice(_TOKEN_ALPHABET) for _ in range(TOKEN_LENGTH - len(TOKEN_MARKER))]
    return "".join(filler[:offset]) + TOKEN_MARKER + "".join(filler[offset:])


def btoa(text: str) -> str:
    """Base64-encode text (UTF-8) or bytes."""
    data = text.encode("utf-8") if isinstance(text, str) else bytes(text)
    return base64.b64encode(data).decode("ascii")


def atob(data: str) -> str:
    """
    Decode base64 into text.

    Missing padding is tolerated; bytes that are not UTF-8 decode as Latin-1
    so binary payloads survive a round trip.

    Raises:
        ValueError: If the input is not base64
    """
    if isinstance(data, str):
        data = data.strip()
        data += "=" * (-len(data) % 4)
    try:
        raw = base64.b64decode(data, validate=False)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 input: {e}") from e
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


@dataclass
class ProviderCapabilities:
    """Bundle of handles passed to every provider constructor."""

    console: ModuleConsole
    fetch: Callable[..., Awaitable[str]]
    fetchv2: Callable[..., Awaitable[FetchResponse]]
    atob: Callable[[str], str] = atob
    btoa: Callable[[str], str] = btoa
    generate_token: Callable[[], str] = generate_token

    def as_namespace(self) -> Dict[str, Any]:
        """Names injected into a module script's global scope."""
        return {
            "console": self.console,
            "fetch": self.fetch,
            "fetchv2": self.fetchv2,
            "fetchV2": self.fetchv2,
            "atob": self.atob,
            "btoa": self.btoa,
            "generate_token": self.generate_token,
        }


def build_capabilities(module_id: str, http_client: HttpClient, max_messages: int = 200) -> ProviderCapabilities:
    """
    Create the capability set for one module context.

    Args:
        module_id: Identifier of the module the handles belong to
        http_client: Shared client backing the fetch primitives
        max_messages: Console buffer size

    Returns:
        Fresh capabilities owned by a single context
    """
    console = ModuleConsole(module_id, max_messages=max_messages)

    async def fetch(url: str, headers: Optional[Dict[str, str]] = None) -> str:
        console.debug(f"fetch {url}")
        response = await http_client.request(url, headers=headers, raise_for_status=False)
        return response.text()

    async def fetchv2(
        url: str,
        headers: Optional[Dict[str, str]] = None,
        method: str = "GET",
        body: Any = None,
        redirect: bool = True,
        encoding: Optional[str] = None,
    ) -> FetchResponse:
        console.debug(f"fetchv2 {method} {url}")
        return await http_client.request(
            url,
            headers=headers,
            method=method,
            body=body,
            redirect=redirect,
            encoding=encoding,
            raise_for_status=False,
        )

    return ProviderCapabilities(console=console, fetch=fetch, fetchv2=fetchv2)


# Export capability helpers
__all__ = [
    "TOKEN_MARKER",
    "TOKEN_LENGTH",
    "ConsoleMessage",
    "ModuleConsole",
    "ProviderCapabilities",
    "build_capabilities",
    "generate_token",
    "atob",
    "btoa",
]
