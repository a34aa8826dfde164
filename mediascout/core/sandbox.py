"""
Module Sandbox - Execution contexts for third-party extraction modules.

This module loads a module's script text into its own execution context,
registers the extraction functions it provides, and runs calls under a
per-call timeout. Each module gets exactly one context; contexts are
bounded by an LRU limit and swept when idle.

The sandbox is a capability boundary, not a security boundary: module
code runs in-process with the handles it is given.
"""

import asyncio
import builtins
import inspect
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from mediascout.core.cancellation import CancellationToken, race
from mediascout.core.config_schemas import SandboxSettings
from mediascout.core.exceptions import (
    ContextNotFoundError,
    ExtractionCancelledError,
    FunctionMissingError,
    MediaScoutError,
    ModuleError,
    ModuleLoadError,
    ModuleTimeoutError,
)
from mediascout.core.models import ExtractionFunction
from mediascout.core.network import HttpClient
from mediascout.plugins.base import ExtractionProvider, FunctionProvider
from mediascout.plugins.capabilities import ConsoleMessage, ProviderCapabilities, build_capabilities


logger = logging.getLogger(__name__)


@dataclass
class ExecutionContext:
    """
    Runtime state of one loaded module.

    Owns the provider instance, its capability handles and usage counters.
    Contexts are never shared between modules.
    """

    module_id: str
    display_name: str
    provider: ExtractionProvider
    capabilities: ProviderCapabilities
    loaded_at: float
    last_activity: float
    active: bool = True
    call_count: int = 0
    error_count: int = 0
    timeout_count: int = 0
    namespace: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def functions(self) -> Dict[str, Callable[..., Any]]:
        """Registry of exported function name to callable."""
        registry = {}
        for function in sorted(self.provider.supported_functions, key=lambda f: f.value):
            implementation = self.provider.get_callable(function)
            if implementation is not None:
                registry[function.value] = implementation
        return registry

    @property
    def console(self):
        return self.capabilities.console

    def touch(self, now: float) -> None:
        self.last_activity = now

    def to_dict(self) -> Dict[str, Any]:
        return {
            "module_id": self.module_id,
            "display_name": self.display_name,
            "functions": list(self.functions),
            "active": self.active,
            "calls": self.call_count,
            "errors": self.error_count,
            "timeouts": self.timeout_count,
            "console_messages": len(self.console),
        }


@dataclass
class LoadResult:
    """Outcome of :meth:`ModuleSandbox.load`."""

    module_id: str
    success: bool
    functions: List[str] = field(default_factory=list)
    error: Optional[ModuleLoadError] = None

    def __bool__(self) -> bool:
        return self.success


class ModuleSandbox:
    """
    Loads modules into isolated execution contexts and runs their functions.

    Coroutine functions run on the event loop; plain functions run on a
    dedicated daemon thread per call, so a hung call never holds a thread
    another context needs. Every call is raced against a timeout and an optional
    cancellation token.
    """

    def __init__(
        self,
        settings: Optional[SandboxSettings] = None,
        http_client: Optional[HttpClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the sandbox.

        Args:
            settings: Context limits and timeouts
            http_client: Client backing module fetches (a private one is created if omitted)
            clock: Monotonic time source used for activity tracking
        """
        self.settings = settings or SandboxSettings()
        self._owns_client = http_client is None
        self.http_client = http_client or HttpClient()
        self._clock = clock

        # Ordered by recency of use, least recent first
        self._contexts: "OrderedDict[str, ExecutionContext]" = OrderedDict()
        self._sweep_task: Optional[asyncio.Task] = None
        self._total_loads = 0
        self._total_evictions = 0

    # Loading

    def load(self, module_id: str, script_text: str, display_name: Optional[str] = None) -> LoadResult:
        """
        Evaluate a module script in a fresh context and register its functions.

        Any existing context for ``module_id`` is destroyed first. When the
        sandbox is full, the least recently active context is evicted once
        the new script has loaded; a failed load evicts nothing else.

        Args:
            module_id: Stable identifier of the module
            script_text: Python source of the module
            display_name: Human-readable module name

        Returns:
            LoadResult; on failure no context is registered
        """
        display_name = display_name or module_id

        if module_id in self._contexts:
            logger.info(f"Replacing existing context for {module_id}")
            self.evict(module_id)

        capabilities = build_capabilities(
            module_id,
            self.http_client,
            max_messages=self.settings.console_buffer_size,
        )

        try:
            provider, namespace = self._evaluate(module_id, script_text, capabilities)
        except ModuleLoadError as e:
            logger.error(f"Failed to load module {module_id}: {e}")
            return LoadResult(module_id=module_id, success=False, error=e)

        while len(self._contexts) >= self.settings.max_contexts:
            self._evict_least_recent()

        now = self._clock()
        context = ExecutionContext(
            module_id=module_id,
            display_name=display_name,
            provider=provider,
            capabilities=capabilities,
            loaded_at=now,
            last_activity=now,
            namespace=namespace,
        )
        self._contexts[module_id] = context
        self._total_loads += 1

        functions = list(context.functions)
        if not functions:
            logger.warning(f"Module {module_id} does not export any extraction function")
        logger.info(f"Loaded module {display_name} ({module_id}) with functions: {', '.join(functions) or 'none'}")

        return LoadResult(module_id=module_id, success=True, functions=functions)

    def _evaluate(
        self,
        module_id: str,
        script_text: str,
        capabilities: ProviderCapabilities,
    ) -> "tuple[ExtractionProvider, Dict[str, Any]]":
        """Compile and execute the script, then build its provider."""
        module_name = f"mediascout.modules.{module_id}"
        namespace: Dict[str, Any] = {
            "__name__": module_name,
            "__builtins__": builtins,
            "ExtractionProvider": ExtractionProvider,
        }
        namespace.update(capabilities.as_namespace())

        try:
            code = compile(script_text, f"<module {module_id}>", "exec")
        except (SyntaxError, ValueError) as e:
            raise ModuleLoadError(f"Module {module_id} has a syntax error: {e}", module_id=module_id, details=str(e))

        try:
            exec(code, namespace)
        except Exception as e:
            raise ModuleLoadError(
                f"Module {module_id} failed during evaluation: {type(e).__name__}: {e}",
                module_id=module_id,
                details=str(e),
            )

        provider_class = self._find_provider_class(namespace, module_name)
        if provider_class is None:
            return FunctionProvider.from_namespace(capabilities, namespace), namespace

        try:
            provider = provider_class(capabilities)
        except Exception as e:
            raise ModuleLoadError(
                f"Module {module_id} provider {provider_class.__name__} failed to initialize: {e}",
                module_id=module_id,
                details=str(e),
            )
        logger.debug(f"Module {module_id} uses provider class {provider_class.__name__}")
        return provider, namespace

    @staticmethod
    def _find_provider_class(namespace: Dict[str, Any], module_name: str) -> Optional[type]:
        """Find the first concrete provider subclass defined by the script itself."""
        for name, obj in namespace.items():
            if (inspect.isclass(obj) and
                issubclass(obj, ExtractionProvider) and
                obj not in (ExtractionProvider, FunctionProvider) and
                obj.__module__ == module_name and
                not inspect.isabstract(obj)):
                return obj
        return None

    # Lookup

    def get_context(self, module_id: str) -> ExecutionContext:
        """
        Return the live context for a module.

        Raises:
            ContextNotFoundError: If the module was never loaded or has been evicted
        """
        context = self._contexts.get(module_id)
        if context is None or not context.active:
            raise ContextNotFoundError(f"Module context {module_id} not found or inactive", module_id=module_id)
        return context

    def is_loaded(self, module_id: str) -> bool:
        context = self._contexts.get(module_id)
        return context is not None and context.active

    def has_function(self, module_id: str, name: Union[str, ExtractionFunction]) -> bool:
        """Whether a loaded module exports ``name``; False for unknown modules."""
        context = self._contexts.get(module_id)
        if context is None or not context.active:
            return False
        function = name if isinstance(name, ExtractionFunction) else ExtractionFunction.from_name(name)
        return function is not None and context.provider.get_callable(function) is not None

    def available_functions(self, module_id: str) -> List[str]:
        return list(self.get_context(module_id).functions)

    @property
    def module_ids(self) -> List[str]:
        return list(self._contexts)

    # Calls

    async def call(
        self,
        module_id: str,
        function_name: Union[str, ExtractionFunction],
        *args: Any,
        timeout: Optional[float] = None,
        token: Optional[CancellationToken] = None,
    ) -> Any:
        """
        Invoke a module function under a timeout.

        Args:
            module_id: Target module
            function_name: Exported function name (camelCase or snake_case)
            *args: Arguments passed to the function
            timeout: Deadline in seconds (defaults to ``call_timeout``)
            token: Cancellation token for the surrounding operation

        Returns:
            The raw value returned by the module

        Raises:
            ContextNotFoundError: If the module is not loaded
            FunctionMissingError: If the module does not export the function
            ModuleTimeoutError: If the call exceeds its deadline
            ExtractionCancelledError: If the token is cancelled first
            ModuleError: If the module function raises
        """
        context = self.get_context(module_id)
        function = function_name if isinstance(function_name, ExtractionFunction) else ExtractionFunction.from_name(function_name)
        implementation = context.provider.get_callable(function) if function else None
        name = function.value if function else str(function_name)

        if implementation is None:
            raise FunctionMissingError(
                f"Function {name} not found in module",
                module_id=module_id,
                function_name=name,
            )

        timeout = self.settings.call_timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        label = f"{module_id}.{name}"

        self._mark_active(context)
        context.call_count += 1
        logger.debug(f"Calling {label}")

        try:
            result = await race(self._invoke(implementation, args, label), timeout, token, label, module_id)
            # Plain functions may hand back a coroutine or future
            if inspect.isawaitable(result):
                remaining = max(deadline - loop.time(), 0.0)
                result = await race(result, remaining, token, label, module_id)
        except ModuleTimeoutError:
            context.timeout_count += 1
            raise
        except ExtractionCancelledError:
            raise
        except MediaScoutError:
            context.error_count += 1
            raise
        except Exception as e:
            context.error_count += 1
            raise ModuleError(
                f"{label} raised {type(e).__name__}: {e}",
                module_id=module_id,
                details=str(e),
            ) from e
        finally:
            self._mark_active(context)

        return result

    def _invoke(self, implementation: Callable[..., Any], args: tuple, label: str) -> Any:
        """Start a call: coroutines run on the loop, plain functions on their own thread."""
        if inspect.iscoroutinefunction(implementation):
            return implementation(*args)
        return self._run_in_thread(implementation, args, label)

    @staticmethod
    def _run_in_thread(implementation: Callable[..., Any], args: tuple, label: str) -> asyncio.Future:
        """
        Run a plain function on a dedicated daemon thread.

        A call that never returns holds only its own thread. Once the
        returned future is abandoned, the late result is dropped.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def settle(result: Any, error: Optional[Exception]) -> None:
            if future.done():
                return
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(result)

        def worker() -> None:
            result, error = None, None
            try:
                result = implementation(*args)
            except Exception as e:
                error = e
            try:
                loop.call_soon_threadsafe(settle, result, error)
            except RuntimeError:
                logger.debug(f"{label} finished after its event loop closed")

        threading.Thread(target=worker, name=f"module-{label}", daemon=True).start()
        return future

    def _mark_active(self, context: ExecutionContext) -> None:
        context.touch(self._clock())
        if context.module_id in self._contexts:
            self._contexts.move_to_end(context.module_id)

    # Eviction

    def evict(self, module_id: str) -> bool:
        """
        Destroy a module's context.

        Returns:
            True if a context was removed
        """
        context = self._contexts.pop(module_id, None)
        if context is None:
            return False
        context.active = False
        context.namespace.clear()
        self._total_evictions += 1
        logger.info(f"Evicted module context {module_id}")
        return True

    def _evict_least_recent(self) -> Optional[str]:
        if not self._contexts:
            return None
        module_id = min(self._contexts.values(), key=lambda c: c.last_activity).module_id
        logger.info(f"Context limit reached ({self.settings.max_contexts}), evicting {module_id}")
        self.evict(module_id)
        return module_id

    def sweep_idle(self, now: Optional[float] = None) -> List[str]:
        """
        Evict contexts idle for longer than ``idle_ttl``.

        Args:
            now: Current clock reading (defaults to the sandbox clock)

        Returns:
            Identifiers of evicted modules
        """
        now = self._clock() if now is None else now
        stale = [
            module_id for module_id, context in self._contexts.items()
            if now - context.last_activity > self.settings.idle_ttl
        ]
        for module_id in stale:
            logger.info(f"Module {module_id} idle for over {self.settings.idle_ttl:.0f}s")
            self.evict(module_id)
        return stale

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.sweep_interval)
            self.sweep_idle()

    def start(self) -> None:
        """Start the periodic idle sweep on the running loop."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())
            logger.debug("Idle sweep started")

    async def close(self) -> None:
        """Stop the sweep, destroy every context and release resources."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

        for module_id in list(self._contexts):
            self.evict(module_id)

        if self._owns_client:
            await self.http_client.close()

    async def __aenter__(self) -> "ModuleSandbox":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # Diagnostics

    def get_console_messages(self, module_id: str, limit: int = 100, level: Optional[str] = None) -> List[ConsoleMessage]:
        """Most recent console messages written by a module."""
        return self.get_context(module_id).console.messages(limit=limit, level=level)

    def clear_console_messages(self, module_id: str) -> None:
        self.get_context(module_id).console.clear()

    def stats(self) -> Dict[str, Any]:
        """Summary of sandbox usage."""
        contexts = list(self._contexts.values())
        return {
            "active_contexts": len(contexts),
            "max_contexts": self.settings.max_contexts,
            "total_loads": self._total_loads,
            "total_evictions": self._total_evictions,
            "total_calls": sum(c.call_count for c in contexts),
            "total_errors": sum(c.error_count for c in contexts),
            "total_timeouts": sum(c.timeout_count for c in contexts),
            "contexts": [c.to_dict() for c in contexts],
        }


# Export sandbox API
__all__ = ["ExecutionContext", "LoadResult", "ModuleSandbox"]
