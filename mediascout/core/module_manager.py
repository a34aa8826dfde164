"""
Module Manager - Import and bookkeeping for extraction modules.

This module reads a module's metadata descriptor (from a local file or a
URL), retrieves its script, and loads it into the sandbox under a stable
module id. It tracks load errors so status reporting can explain why a
module is unavailable.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urljoin

from pydantic import ValidationError as PydanticValidationError

from mediascout.core.config_manager import ConfigManager
from mediascout.core.exceptions import ModuleLoadError, NetworkError
from mediascout.core.models import ModuleMetadata
from mediascout.core.network import HttpClient
from mediascout.core.sandbox import ModuleSandbox
from mediascout.core.utils import validate_url


logger = logging.getLogger(__name__)


class ModuleManager:
    """
    Manages extraction modules loaded into a sandbox.

    Imported modules live for the lifetime of the manager; nothing is
    persisted between runs.
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        sandbox: Optional[ModuleSandbox] = None,
        http_client: Optional[HttpClient] = None,
    ):
        """
        Initialize module manager.

        Args:
            config_manager: Configuration manager instance
            sandbox: Sandbox to load modules into (built from settings if omitted)
            http_client: Client used to fetch remote metadata and scripts
        """
        self.config_manager = config_manager
        settings = config_manager.settings
        self.http_client = http_client or (sandbox.http_client if sandbox else HttpClient(settings.network))
        self.sandbox = sandbox or ModuleSandbox(settings.sandbox, http_client=self.http_client)

        self._modules: Dict[str, ModuleMetadata] = {}
        self._sources: Dict[str, str] = {}
        self._module_errors: Dict[str, Exception] = {}

    async def import_module(self, source: Union[str, Path]) -> ModuleMetadata:
        """
        Import a module from its metadata descriptor.

        Args:
            source: Path or URL of the metadata JSON

        Returns:
            Parsed metadata of the loaded module

        Raises:
            ModuleLoadError: If the metadata, script or evaluation fails
        """
        source = str(source)
        logger.info(f"Importing module from {source}")

        try:
            raw_metadata = await self._read_metadata(source)
            metadata = ModuleMetadata.model_validate(raw_metadata)
        except PydanticValidationError as e:
            error = ModuleLoadError(f"Invalid module metadata in {source}: {e.errors()[0]['msg']}", details=str(e))
            self._module_errors[source] = error
            raise error
        except (OSError, ValueError, NetworkError) as e:
            error = ModuleLoadError(f"Could not read module metadata from {source}: {e}", details=str(e))
            self._module_errors[source] = error
            raise error from e

        module_id = metadata.module_id
        try:
            script_text = await self._read_script(source, metadata.script_url)
        except (OSError, NetworkError) as e:
            error = ModuleLoadError(
                f"Could not read script for {metadata.source_name}: {e}",
                module_id=module_id,
                details=str(e),
            )
            self._module_errors[module_id] = error
            raise error from e

        result = self.sandbox.load(module_id, script_text, metadata.source_name)
        if not result:
            self._modules.pop(module_id, None)
            self._module_errors[module_id] = result.error
            raise result.error

        self._modules[module_id] = metadata
        self._sources[module_id] = source
        self._module_errors.pop(module_id, None)
        self._module_errors.pop(source, None)
        logger.info(f"Imported module {metadata} as {module_id}")
        return metadata

    async def _read_metadata(self, source: str) -> Any:
        if validate_url(source):
            return await self.http_client.fetch_json(source)
        return json.loads(Path(source).expanduser().read_text(encoding="utf-8"))

    async def _read_script(self, source: str, script_url: str) -> str:
        """Fetch a remote script, or read one relative to a local metadata file."""
        if validate_url(script_url):
            return await self.http_client.fetch_text(script_url)
        if validate_url(source):
            return await self.http_client.fetch_text(urljoin(source, script_url))

        script_path = Path(script_url).expanduser()
        if not script_path.is_absolute():
            script_path = Path(source).expanduser().parent / script_path
        return script_path.read_text(encoding="utf-8")

    def get_module(self, module_id: str) -> Optional[ModuleMetadata]:
        """Metadata of an imported module, or None."""
        return self._modules.get(module_id)

    def list_modules(self) -> List[ModuleMetadata]:
        return list(self._modules.values())

    def remove_module(self, module_id: str) -> bool:
        """
        Remove a module and destroy its execution context.

        Returns:
            True if the module was known
        """
        known = self._modules.pop(module_id, None) is not None
        self._sources.pop(module_id, None)
        self._module_errors.pop(module_id, None)
        evicted = self.sandbox.evict(module_id)
        if known or evicted:
            logger.info(f"Removed module {module_id}")
        return known or evicted

    async def reload_module(self, module_id: str) -> ModuleMetadata:
        """
        Re-import a module from the source it was imported from.

        Raises:
            ModuleLoadError: If the module is unknown or fails to load
        """
        source = self._sources.get(module_id)
        if source is None:
            raise ModuleLoadError(f"Module {module_id} was never imported", module_id=module_id)
        return await self.import_module(source)

    def get_module_status(self, module_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Get status information for one module or all of them.

        Args:
            module_id: Restrict the report to one module

        Returns:
            Dictionary containing module status information
        """
        if module_id is not None:
            return self._module_info(module_id)

        return {
            "imported": len(self._modules),
            "errors": len(self._module_errors),
            "sandbox": {k: v for k, v in self.sandbox.stats().items() if k != "contexts"},
            "modules": {mid: self._module_info(mid) for mid in self._modules},
            "failures": {key: str(error) for key, error in self._module_errors.items()},
        }

    def _module_info(self, module_id: str) -> Dict[str, Any]:
        metadata = self._modules.get(module_id)
        info: Dict[str, Any] = {
            "module_id": module_id,
            "loaded": self.sandbox.is_loaded(module_id),
            "functions": [],
            "console": [],
            "error": None,
        }

        if metadata is not None:
            info["metadata"] = metadata.to_json()
            info["source"] = self._sources.get(module_id)

        if self.sandbox.is_loaded(module_id):
            context = self.sandbox.get_context(module_id)
            info["functions"] = list(context.functions)
            info["calls"] = context.call_count
            info["errors"] = context.error_count
            info["timeouts"] = context.timeout_count
            info["console"] = [message.to_dict() for message in self.sandbox.get_console_messages(module_id, limit=20)]

        if module_id in self._module_errors:
            info["error"] = str(self._module_errors[module_id])

        return info

    async def cleanup(self) -> None:
        """Destroy every module context and release resources."""
        logger.info("Cleaning up module manager")
        self._modules.clear()
        self._sources.clear()
        await self.sandbox.close()
        await self.http_client.close()
        logger.info("Module manager cleanup complete")


# Export module manager
__all__ = ["ModuleManager"]
