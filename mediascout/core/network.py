"""
Network Client - Shared aiohttp client for prefetches and module fetches.

This module provides the HTTP client used by the orchestrator to
prefetch HTML and by the sandbox to back the ``fetch``/``fetchv2``
capabilities handed to modules. It rotates browser user agents, retries
transient failures and decodes bodies with a configurable charset.
"""

import asyncio
import json
import logging
import random
from typing import Any, Dict, Optional

import aiohttp

from mediascout.core.config_schemas import NetworkSettings
from mediascout.core.exceptions import NetworkError


logger = logging.getLogger(__name__)


USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:132.0) Gecko/20100101 Firefox/132.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36 Edg/131.0.2903.86",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_7_1) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 15_2) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/19.2 Safari/605.1.15",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 15.1; rv:132.0) Gecko/20100101 Firefox/132.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64; rv:132.0) Gecko/20100101 Firefox/132.0",
    "Mozilla/5.0 (Linux; Android 15; Pixel 9) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.6778.135 Mobile Safari/537.36",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 18_2 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/19.2 Mobile/15E148 Safari/604.1",
]

ENCODING_ALIASES = {
    "utf-8": "utf-8",
    "utf8": "utf-8",
    "windows-1251": "windows-1251",
    "cp1251": "windows-1251",
    "windows-1252": "windows-1252",
    "cp1252": "windows-1252",
    "iso-8859-1": "iso-8859-1",
    "latin1": "iso-8859-1",
    "latin-1": "iso-8859-1",
    "ascii": "ascii",
    "utf-16": "utf-16",
    "utf16": "utf-16",
}


def normalize_encoding(encoding: Optional[str]) -> str:
    """Map a charset name onto a supported codec, defaulting to UTF-8."""
    if not encoding:
        return "utf-8"
    return ENCODING_ALIASES.get(encoding.strip().lower(), "utf-8")


class FetchResponse:
    """
    Fully read HTTP response handed to callers and modules.

    The body is read eagerly so the connection can be released before the
    module inspects the result.
    """

    def __init__(
        self,
        url: str,
        status: int,
        headers: Dict[str, str],
        body: bytes,
        encoding: Optional[str] = None,
    ):
        self.url = url
        self.status = status
        self.headers = headers
        self.body = body
        self.encoding = normalize_encoding(encoding)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def text(self) -> str:
        """Decode the body with the response encoding."""
        return self.body.decode(self.encoding, errors="replace")

    def json(self) -> Any:
        """
        Parse the body as JSON.

        Raises:
            json.JSONDecodeError: If the body is not JSON
        """
        return json.loads(self.text())

    def __repr__(self) -> str:
        return f"FetchResponse(url='{self.url}', status={self.status})"


class HttpClient:
    """
    aiohttp-backed client with retries and user-agent rotation.

    One client is shared by the orchestrator and every module context;
    the underlying session is created lazily on first use.
    """

    def __init__(self, settings: Optional[NetworkSettings] = None):
        """
        Initialize the HTTP client.

        Args:
            settings: Network configuration (defaults apply if omitted)
        """
        self.settings = settings or NetworkSettings()
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session with proper configuration."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=20,
                limit_per_host=6,
                ttl_dns_cache=300,
                use_dns_cache=True
            )

            timeout = aiohttp.ClientTimeout(total=self.settings.timeout)

            headers = {
                'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
                'Accept-Language': 'en-US,en;q=0.5',
                'Accept-Encoding': 'gzip, deflate',
            }

            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=timeout,
                headers=headers
            )

        return self._session

    def user_agent(self) -> str:
        """Pick the user agent for the next request."""
        if self.settings.rotate_user_agents:
            return random.choice(USER_AGENTS)
        return self.settings.user_agent

    async def request(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        method: str = "GET",
        body: Any = None,
        redirect: bool = True,
        encoding: Optional[str] = None,
        raise_for_status: bool = True,
    ) -> FetchResponse:
        """
        Perform an HTTP request with retries.

        Args:
            url: Absolute URL to request
            headers: Extra request headers (override the defaults)
            method: HTTP method
            body: Request body; dicts and lists are sent as JSON for non-GET methods
            redirect: Whether redirects are followed
            encoding: Charset used to decode the body (response charset if None)
            raise_for_status: Raise NetworkError for HTTP status >= 400

        Returns:
            The fully read response

        Raises:
            NetworkError: If the request fails after retries or returns an error status
        """
        method = (method or "GET").upper()
        request_headers = {"User-Agent": self.user_agent()}
        request_headers.update({str(k): str(v) for k, v in (headers or {}).items()})

        kwargs: Dict[str, Any] = {"headers": request_headers, "allow_redirects": redirect}
        if body is not None and method != "GET":
            if isinstance(body, (dict, list)):
                kwargs["json"] = body
            else:
                kwargs["data"] = body

        last_exception = None
        max_retries = self.settings.max_retries

        for attempt in range(max_retries + 1):
            try:
                logger.debug(f"Making {method} request to {url} (attempt {attempt + 1})")

                async with self.session.request(method, url, **kwargs) as response:
                    payload = await response.read()

                    if raise_for_status and response.status >= 400:
                        raise NetworkError(
                            f"HTTP {response.status} error for {url}",
                            url=url,
                            status_code=response.status,
                            details=payload[:500].decode("utf-8", errors="replace")
                        )

                    return FetchResponse(
                        url=str(response.url),
                        status=response.status,
                        headers=dict(response.headers),
                        body=payload,
                        encoding=encoding or response.charset,
                    )

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e
                logger.warning(f"Request failed (attempt {attempt + 1}): {e}")

                if attempt < max_retries:
                    await asyncio.sleep(self.settings.retry_delay * (attempt + 1))
                else:
                    break

        raise NetworkError(
            f"Request failed after {max_retries + 1} attempts: {last_exception}",
            url=url,
            details=str(last_exception)
        )

    async def fetch_text(self, url: str, headers: Optional[Dict[str, str]] = None, **kwargs) -> str:
        """Get text content from URL."""
        response = await self.request(url, headers=headers, **kwargs)
        return response.text()

    async def fetch_json(self, url: str, headers: Optional[Dict[str, str]] = None, **kwargs) -> Any:
        """Get JSON content from URL."""
        response = await self.request(url, headers=headers, **kwargs)
        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise NetworkError(f"Invalid JSON from {url}: {e}", url=url, status_code=response.status)

    async def close(self) -> None:
        """Close the underlying session."""
        if self._session and not self._session.closed:
            await self._session.close()
            logger.debug("HTTP session closed")
        self._session = None

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


# Export network client
__all__ = [
    "USER_AGENTS",
    "ENCODING_ALIASES",
    "normalize_encoding",
    "FetchResponse",
    "HttpClient",
]
