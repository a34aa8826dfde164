"""
Extraction Orchestrator - Strategy fallback for module extraction operations.

Every public operation (search, details, episodes, streams) is a thin
configuration of one state machine: an ordered list of strategies tried
strictly in sequence until one yields a non-empty result. A strategy
either hands the module its semantic input (keyword or URL) or fetches
the page first and hands over the HTML.

Operations never raise for module misbehaviour. Timeouts, missing
functions, malformed output and network failures become per-strategy
diagnostics and, when nothing works, an explicit empty outcome. Only a
missing execution context raises.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from mediascout.core.cache import ResultCache
from mediascout.core.cancellation import CancellationToken, race
from mediascout.core.config_schemas import ExtractionSettings
from mediascout.core.exceptions import (
    ContextNotFoundError,
    ExtractionCancelledError,
    MalformedResultError,
    MediaScoutError,
)
from mediascout.core.models import (
    DetailsResult,
    EpisodeLink,
    ExtractionFunction,
    MediaItem,
    ModuleMetadata,
    SearchItem,
    StreamResult,
)
from mediascout.core.network import HttpClient
from mediascout.core.normalizer import decode_module_output, normalize_stream_result, validate_stream_urls
from mediascout.core.sandbox import ModuleSandbox
from mediascout.core.utils import normalize_query, resolve_url


logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

MODULE_ASYNC = "module-async"
HTML_PREFETCH = "html-prefetch"
SECONDARY_FALLBACK = "secondary-fallback"


class OutcomeStatus(str, Enum):
    """How an extraction operation ended."""

    SUCCESS = "success"
    EMPTY = "empty"
    CANCELLED = "cancelled"


@dataclass
class ExtractionOutcome(Generic[T]):
    """
    Result of one extraction operation.

    ``value`` is always a valid (possibly empty) typed value, so callers can
    render it without checking the status first.
    """

    status: OutcomeStatus
    value: T
    strategy: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    from_cache: bool = False

    @property
    def is_success(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS

    @property
    def is_empty(self) -> bool:
        return self.status is OutcomeStatus.EMPTY

    @property
    def is_cancelled(self) -> bool:
        return self.status is OutcomeStatus.CANCELLED


@dataclass
class Strategy:
    """
    One way of running an extraction function.

    Args:
        name: Strategy label reported in outcomes
        function: Extraction function to call
        prepare_input: Produces the single argument passed to the module
    """

    name: str
    function: ExtractionFunction
    prepare_input: Callable[[], Awaitable[Any]]


@dataclass
class SearchFilters:
    """Post-processing applied to search results."""

    min_title_length: int = 1
    remove_duplicates: bool = True
    sort_by_relevance: bool = True
    max_results: Optional[int] = 50

    def apply(self, items: List[SearchItem], keyword: str) -> List[SearchItem]:
        results = [item for item in items if len(item.title) >= self.min_title_length]

        if self.remove_duplicates:
            seen = set()
            unique = []
            for item in results:
                key = (item.title, item.href)
                if key not in seen:
                    seen.add(key)
                    unique.append(item)
            results = unique

        if self.sort_by_relevance and keyword:
            results = sorted(results, key=lambda item: relevance_score(item.title, keyword), reverse=True)

        if self.max_results is not None:
            results = results[:self.max_results]

        return results


def relevance_score(title: str, keyword: str) -> int:
    """
    Score how well a title matches a search keyword.

    Substring match scores 100, a prefix match a further 50, and every
    keyword word longer than two characters found in the title adds 10.
    """
    title = title.lower()
    keyword = keyword.lower()
    score = 0
    if keyword in title:
        score += 100
    if title.startswith(keyword):
        score += 50
    for word in keyword.split():
        if len(word) > 2 and word in title:
            score += 10
    return score


def _search_item_fields(raw: Any) -> Any:
    """Map module search output (``image``) onto SearchItem fields."""
    if not isinstance(raw, dict):
        return raw
    return {
        "title": raw.get("title"),
        "imageUrl": raw.get("imageUrl", raw.get("image")),
        "href": raw.get("href"),
    }


class _SharedPage:
    """Fetches a page once for several concurrent consumers."""

    def __init__(self, fetch: Callable[[], Awaitable[str]]):
        self._fetch = fetch
        self._task: Optional[asyncio.Task] = None

    async def get(self) -> str:
        if self._task is None:
            self._task = asyncio.ensure_future(self._fetch())
        return await asyncio.shield(self._task)

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()


class StrategyRunner:
    """Runs an ordered strategy list against one module context."""

    def __init__(self, sandbox: ModuleSandbox):
        self.sandbox = sandbox

    async def run(
        self,
        module_id: str,
        strategies: List[Strategy],
        build: Callable[[Any], Awaitable[T]],
        is_empty: Callable[[T], bool],
        empty_value: T,
        timeout: Optional[float] = None,
        token: Optional[CancellationToken] = None,
        operation: str = "extraction",
    ) -> ExtractionOutcome[T]:
        """
        Try strategies in order until one produces a non-empty value.

        Args:
            module_id: Module whose context runs the calls
            strategies: Strategies in priority order
            build: Turns raw module output into the typed value
            is_empty: Decides whether a built value counts as a result
            empty_value: Value reported when every strategy fails
            timeout: Per-call deadline
            token: Cancellation token of the surrounding operation
            operation: Name used in log messages

        Returns:
            Success, empty or cancelled outcome

        Raises:
            ContextNotFoundError: If the module context disappears
        """
        errors: List[str] = []

        for strategy in strategies:
            try:
                if token is not None:
                    token.raise_if_cancelled()

                argument = await race(strategy.prepare_input(), None, token, f"{operation} input", module_id)
                raw = await self.sandbox.call(
                    module_id,
                    strategy.function,
                    argument,
                    timeout=timeout,
                    token=token,
                )
                value = await build(raw)

            except ContextNotFoundError:
                raise
            except ExtractionCancelledError as e:
                logger.info(f"{operation} for {module_id} cancelled during {strategy.name}")
                errors.append(f"{strategy.name}: {e}")
                return ExtractionOutcome(OutcomeStatus.CANCELLED, empty_value, strategy.name, errors)
            except MediaScoutError as e:
                logger.warning(f"{operation} strategy {strategy.name} failed for {module_id}: {e}")
                errors.append(f"{strategy.name}: {e}")
                continue

            if is_empty(value):
                logger.info(f"{operation} strategy {strategy.name} returned no results for {module_id}")
                errors.append(f"{strategy.name}: no results")
                continue

            logger.debug(f"{operation} for {module_id} succeeded with {strategy.name}")
            return ExtractionOutcome(OutcomeStatus.SUCCESS, value, strategy.name, errors)

        if not strategies:
            errors.append("no applicable strategy")
        logger.info(f"{operation} for {module_id} exhausted all strategies")
        return ExtractionOutcome(OutcomeStatus.EMPTY, empty_value, None, errors)


class ExtractionOrchestrator:
    """
    Runs search, details, episodes and stream extraction for loaded modules.

    Network I/O for HTML prefetch happens here; the module only parses.
    """

    def __init__(
        self,
        sandbox: ModuleSandbox,
        http_client: Optional[HttpClient] = None,
        settings: Optional[ExtractionSettings] = None,
        cache: Optional[ResultCache] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            sandbox: Sandbox holding the module contexts
            http_client: Client used for HTML prefetch (defaults to the sandbox's)
            settings: Timeouts, chunking and cache options
            cache: Result cache (created from settings when caching is enabled)
        """
        self.sandbox = sandbox
        self.http_client = http_client or sandbox.http_client
        self.settings = settings or ExtractionSettings()
        if cache is None and self.settings.cache_enabled:
            cache = ResultCache(ttl=self.settings.cache_ttl)
        self.cache = cache
        self.runner = StrategyRunner(sandbox)

    # Item construction

    async def build_items(
        self,
        raw: Any,
        model: Type[M],
        token: Optional[CancellationToken] = None,
        transform: Optional[Callable[[Any], Any]] = None,
    ) -> List[M]:
        """
        Validate raw module records into models, dropping invalid ones.

        Records are processed in chunks; the token is checked between chunks.

        Raises:
            MalformedResultError: If the output is not an array or object
            ExtractionCancelledError: If the token is cancelled mid-way
        """
        data = decode_module_output(raw)
        records = data if isinstance(data, list) else [data]
        chunk_size = max(self.settings.chunk_size, 1)
        items: List[M] = []

        for start in range(0, len(records), chunk_size):
            if token is not None:
                token.raise_if_cancelled()
            for offset, record in enumerate(records[start:start + chunk_size]):
                try:
                    items.append(model.model_validate(transform(record) if transform else record))
                except PydanticValidationError as e:
                    logger.warning(f"Skipping invalid {model.__name__} #{start + offset}: {e.errors()[0]['msg']}")
            if start + chunk_size < len(records):
                await asyncio.sleep(0)

        dropped = len(records) - len(items)
        if dropped:
            logger.info(f"Dropped {dropped} of {len(records)} {model.__name__} records")
        return items

    # Strategy inputs

    def _fetch_page(self, url: str) -> Callable[[], Awaitable[str]]:
        async def fetch() -> str:
            logger.debug(f"Prefetching {url}")
            return await self.http_client.fetch_text(url)
        return fetch

    @staticmethod
    def _semantic(value: str) -> Callable[[], Awaitable[str]]:
        async def provide() -> str:
            return value
        return provide

    def _page_strategies(
        self,
        module: ModuleMetadata,
        function: ExtractionFunction,
        url: str,
        page: Optional[_SharedPage] = None,
    ) -> List[Strategy]:
        """Module-async when supported, then HTML prefetch."""
        target = resolve_url(module.base_url, url)
        prefetch = page.get if page is not None else self._fetch_page(target)
        strategies = []
        if module.async_js:
            strategies.append(Strategy(MODULE_ASYNC, function, self._semantic(url)))
        strategies.append(Strategy(HTML_PREFETCH, function, prefetch))
        return strategies

    # Cache helpers

    def _cached(self, module_id: str, operation: str, query: str) -> Optional[ExtractionOutcome]:
        if self.cache is None:
            return None
        value = self.cache.get(ResultCache.make_key(module_id, operation, query))
        if value is None:
            return None
        return ExtractionOutcome(OutcomeStatus.SUCCESS, value, strategy="cache", from_cache=True)

    def _store(self, module_id: str, operation: str, query: str, outcome: ExtractionOutcome) -> None:
        if self.cache is not None and outcome.is_success:
            self.cache.set(ResultCache.make_key(module_id, operation, query), outcome.value)

    # Operations

    async def search(
        self,
        keyword: str,
        module: ModuleMetadata,
        token: Optional[CancellationToken] = None,
        filters: Optional[SearchFilters] = None,
    ) -> ExtractionOutcome[List[SearchItem]]:
        """
        Search a module for a keyword.

        Args:
            keyword: Search keyword (whitespace is normalized)
            module: Metadata of a loaded module
            token: Cancellation token
            filters: Post-processing applied to the results

        Returns:
            Outcome carrying the search items

        Raises:
            ContextNotFoundError: If the module is not loaded
        """
        module_id = module.module_id
        self.sandbox.get_context(module_id)

        keyword = normalize_query(keyword)
        if len(keyword) < self.settings.min_query_length or not keyword:
            logger.info("Empty search keyword, skipping module call")
            return ExtractionOutcome(OutcomeStatus.EMPTY, [], errors=["empty keyword"])

        if filters is None:
            filters = SearchFilters(max_results=self.settings.max_results)

        outcome = self._cached(module_id, "search", keyword)
        if outcome is None:
            function = ExtractionFunction.SEARCH_RESULTS
            strategies = []
            if module.async_js:
                strategies.append(Strategy(MODULE_ASYNC, function, self._semantic(keyword)))
            search_url = module.search_url(keyword)
            if search_url:
                strategies.append(Strategy(HTML_PREFETCH, function, self._fetch_page(search_url)))

            async def build(raw: Any) -> List[SearchItem]:
                return await self.build_items(raw, SearchItem, token, transform=_search_item_fields)

            outcome = await self.runner.run(
                module_id, strategies, build, lambda items: not items, [],
                timeout=self.settings.search_timeout, token=token, operation="search",
            )
            self._store(module_id, "search", keyword, outcome)

        if outcome.value:
            outcome.value = filters.apply(list(outcome.value), keyword)
        logger.info(f"Search for '{keyword}' on {module_id}: {outcome.status.value}, {len(outcome.value)} results")
        return outcome

    async def _run_details(
        self,
        url: str,
        module: ModuleMetadata,
        token: Optional[CancellationToken],
        page: Optional[_SharedPage],
    ) -> ExtractionOutcome[List[MediaItem]]:
        async def build(raw: Any) -> List[MediaItem]:
            return await self.build_items(raw, MediaItem, token)

        return await self.runner.run(
            module.module_id,
            self._page_strategies(module, ExtractionFunction.EXTRACT_DETAILS, url, page),
            build, lambda items: not items, [],
            timeout=self.settings.details_timeout, token=token, operation="details",
        )

    async def _run_episodes(
        self,
        url: str,
        module: ModuleMetadata,
        token: Optional[CancellationToken],
        page: Optional[_SharedPage],
    ) -> ExtractionOutcome[List[EpisodeLink]]:
        async def build(raw: Any) -> List[EpisodeLink]:
            return await self.build_items(raw, EpisodeLink, token)

        return await self.runner.run(
            module.module_id,
            self._page_strategies(module, ExtractionFunction.EXTRACT_EPISODES, url, page),
            build, lambda items: not items, [],
            timeout=self.settings.details_timeout, token=token, operation="episodes",
        )

    async def details(
        self,
        url: str,
        module: ModuleMetadata,
        token: Optional[CancellationToken] = None,
    ) -> ExtractionOutcome[DetailsResult]:
        """
        Extract details and episodes for a media page concurrently.

        Either half may succeed alone; the page is fetched at most once for
        both halves.

        Raises:
            ContextNotFoundError: If the module is not loaded
        """
        module_id = module.module_id
        self.sandbox.get_context(module_id)

        cached = self._cached(module_id, "details", url)
        if cached is not None:
            return cached

        page = _SharedPage(self._fetch_page(resolve_url(module.base_url, url)))
        tasks = [
            asyncio.ensure_future(self._run_details(url, module, token, page)),
            asyncio.ensure_future(self._run_episodes(url, module, token, page)),
        ]
        try:
            details_outcome, episodes_outcome = await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            page.cancel()

        value = DetailsResult(details=details_outcome.value, episodes=episodes_outcome.value)
        errors = (
            [f"details {error}" for error in details_outcome.errors]
            + [f"episodes {error}" for error in episodes_outcome.errors]
        )
        strategy = ", ".join(
            f"{name}={outcome.strategy}"
            for name, outcome in (("details", details_outcome), ("episodes", episodes_outcome))
            if outcome.strategy
        ) or None

        if details_outcome.is_cancelled or episodes_outcome.is_cancelled:
            status = OutcomeStatus.CANCELLED
        elif value.is_empty:
            status = OutcomeStatus.EMPTY
        else:
            status = OutcomeStatus.SUCCESS

        outcome = ExtractionOutcome(status, value, strategy, errors)
        self._store(module_id, "details", url, outcome)
        logger.info(
            f"Details for {url} on {module_id}: {status.value}, "
            f"{len(value.details)} details, {len(value.episodes)} episodes"
        )
        return outcome

    async def media_details(
        self,
        url: str,
        module: ModuleMetadata,
        token: Optional[CancellationToken] = None,
    ) -> ExtractionOutcome[List[MediaItem]]:
        """Extract only the details half of a media page."""
        module_id = module.module_id
        self.sandbox.get_context(module_id)

        outcome = self._cached(module_id, "media_details", url)
        if outcome is None:
            outcome = await self._run_details(url, module, token, None)
            self._store(module_id, "media_details", url, outcome)
        return outcome

    async def episodes(
        self,
        url: str,
        module: ModuleMetadata,
        token: Optional[CancellationToken] = None,
    ) -> ExtractionOutcome[List[EpisodeLink]]:
        """Extract only the episode list of a media page."""
        module_id = module.module_id
        self.sandbox.get_context(module_id)

        outcome = self._cached(module_id, "episodes", url)
        if outcome is None:
            outcome = await self._run_episodes(url, module, token, None)
            self._store(module_id, "episodes", url, outcome)
        logger.info(f"Episodes for {url} on {module_id}: {outcome.status.value}, {len(outcome.value)} episodes")
        return outcome

    async def streams(
        self,
        url: str,
        module: ModuleMetadata,
        token: Optional[CancellationToken] = None,
    ) -> ExtractionOutcome[StreamResult]:
        """
        Extract playable streams for an episode page.

        Async modules are called with the URL first and then, if that yields
        nothing usable, with the prefetched HTML. Every other module, including
        one that only sets ``streamAsyncJS``, receives the prefetched HTML.

        Raises:
            ContextNotFoundError: If the module is not loaded
        """
        module_id = module.module_id
        self.sandbox.get_context(module_id)

        outcome = self._cached(module_id, "streams", url)
        if outcome is not None:
            return outcome

        function = ExtractionFunction.EXTRACT_STREAM_URL
        prefetch = self._fetch_page(resolve_url(module.base_url, url))
        if module.async_js:
            strategies = [
                Strategy(MODULE_ASYNC, function, self._semantic(url)),
                Strategy(SECONDARY_FALLBACK, function, prefetch),
            ]
        else:
            strategies = [Strategy(HTML_PREFETCH, function, prefetch)]

        async def build(raw: Any) -> StreamResult:
            if raw is None:
                raise MalformedResultError("Module returned no stream output")
            return validate_stream_urls(normalize_stream_result(raw))

        outcome = await self.runner.run(
            module_id, strategies, build, lambda result: result.is_empty, StreamResult.empty(),
            timeout=self.settings.streams_timeout, token=token, operation="streams",
        )
        self._store(module_id, "streams", url, outcome)
        logger.info(f"Streams for {url} on {module_id}: {outcome.status.value}, {len(outcome.value.urls)} urls")
        return outcome

    def clear_cache(self, module_id: Optional[str] = None) -> int:
        if self.cache is None:
            return 0
        return self.cache.invalidate(module_id)


# Export orchestrator API
__all__ = [
    "OutcomeStatus",
    "ExtractionOutcome",
    "Strategy",
    "StrategyRunner",
    "SearchFilters",
    "relevance_score",
    "ExtractionOrchestrator",
]
