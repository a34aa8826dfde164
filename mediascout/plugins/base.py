"""
Base Provider Interface - Base class for extraction modules.

Extraction modules are loaded as a provider object. A module either
subclasses :class:`ExtractionProvider` and overrides the extraction
methods it supports, or defines plain top-level functions that the
sandbox wraps in a :class:`FunctionProvider`. Either way the sandbox
learns the module's shape from :attr:`supported_functions` instead of
probing attributes at call time.
"""

import logging
from typing import Any, Callable, Dict, FrozenSet, Optional

from mediascout.core.exceptions import FunctionMissingError
from mediascout.core.models import ExtractionFunction
from mediascout.plugins.capabilities import ProviderCapabilities


logger = logging.getLogger(__name__)


class ExtractionProvider:
    """
    Base class for extraction modules.

    Subclasses override any of the extraction methods below. Methods may be
    coroutine functions (needed to use ``fetch``/``fetchv2``) or plain
    functions, which the sandbox runs on a worker thread. Each method takes
    a single input: raw HTML, or a keyword/URL for async-mode modules.
    """

    def __init__(self, capabilities: ProviderCapabilities):
        """
        Initialize the provider with its capability handles.

        Args:
            capabilities: Console, fetch, codec and token handles for this context
        """
        self.capabilities = capabilities
        self.console = capabilities.console
        self.fetch = capabilities.fetch
        self.fetchv2 = capabilities.fetchv2
        self.atob = capabilities.atob
        self.btoa = capabilities.btoa
        self.generate_token = capabilities.generate_token

    @property
    def supported_functions(self) -> FrozenSet[ExtractionFunction]:
        """Extraction functions this provider overrides."""
        supported = set()
        for function in ExtractionFunction:
            implementation = getattr(type(self), function.method_name, None)
            default = getattr(ExtractionProvider, function.method_name)
            if implementation is not None and implementation is not default:
                supported.add(function)
        return frozenset(supported)

    def get_callable(self, function: ExtractionFunction) -> Optional[Callable[..., Any]]:
        """Return the bound implementation of ``function`` or None if absent."""
        if function not in self.supported_functions:
            return None
        return getattr(self, function.method_name)

    def _missing(self, function: ExtractionFunction) -> FunctionMissingError:
        return FunctionMissingError(
            f"Function {function.value} not found in module",
            module_id=self.console.module_id,
            function_name=function.value,
        )

    def search_results(self, query: str) -> Any:
        """
        Search the source.

        Args:
            query: Search page HTML, or the keyword in async mode

        Returns:
            List of ``{title, image, href}`` objects or a JSON string of one
        """
        raise self._missing(ExtractionFunction.SEARCH_RESULTS)

    def extract_details(self, page: str) -> Any:
        """Return ``[{description, aliases, airdate}]`` for a media page."""
        raise self._missing(ExtractionFunction.EXTRACT_DETAILS)

    def extract_episodes(self, page: str) -> Any:
        """Return ``[{number, href, title?, duration?}]`` for a media page."""
        raise self._missing(ExtractionFunction.EXTRACT_EPISODES)

    def extract_stream_url(self, page: str) -> Any:
        """Return a stream URL, a URL list, or a ``{streams, subtitles}`` envelope."""
        raise self._missing(ExtractionFunction.EXTRACT_STREAM_URL)

    def extract_chapters(self, page: str) -> Any:
        raise self._missing(ExtractionFunction.EXTRACT_CHAPTERS)

    def extract_text(self, page: str) -> Any:
        raise self._missing(ExtractionFunction.EXTRACT_TEXT)

    def __repr__(self) -> str:
        names = ", ".join(sorted(f.value for f in self.supported_functions))
        return f"{self.__class__.__name__}(functions=[{names}])"


class FunctionProvider(ExtractionProvider):
    """Provider built from a module's top-level functions."""

    def __init__(
        self,
        capabilities: ProviderCapabilities,
        functions: Dict[ExtractionFunction, Callable[..., Any]],
    ):
        super().__init__(capabilities)
        self._functions = dict(functions)

    @property
    def supported_functions(self) -> FrozenSet[ExtractionFunction]:
        return frozenset(self._functions)

    def get_callable(self, function: ExtractionFunction) -> Optional[Callable[..., Any]]:
        return self._functions.get(function)

    @classmethod
    def from_namespace(cls, capabilities: ProviderCapabilities, namespace: Dict[str, Any]) -> "FunctionProvider":
        """
        Collect extraction functions from an executed script namespace.

        Both ``searchResults`` and ``search_results`` spellings are accepted;
        the camelCase name wins when a script defines both.

        Args:
            capabilities: Handles owned by the module context
            namespace: Globals left behind by the module script

        Returns:
            Provider exposing whatever functions the script defined
        """
        functions: Dict[ExtractionFunction, Callable[..., Any]] = {}
        for function in ExtractionFunction:
            for name in (function.value, function.method_name):
                candidate = namespace.get(name)
                if callable(candidate) and not isinstance(candidate, type):
                    functions[function] = candidate
                    break
        logger.debug(f"Collected {len(functions)} top-level extraction functions")
        return cls(capabilities, functions)


# Export provider base classes
__all__ = ["ExtractionProvider", "FunctionProvider"]
