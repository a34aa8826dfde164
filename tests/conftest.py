"""Shared fixtures for the MediaScout test suite."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from mediascout.core.config_schemas import ExtractionSettings, SandboxSettings
from mediascout.core.models import ModuleMetadata
from mediascout.core.network import HttpClient
from mediascout.core.orchestrator import ExtractionOrchestrator
from mediascout.core.sandbox import ModuleSandbox


BASE_URL = "https://source.example/"


@pytest.fixture
def http_client():
    """HttpClient double whose fetches are AsyncMocks."""
    client = MagicMock(spec=HttpClient)
    client.fetch_text = AsyncMock(return_value="<html></html>")
    client.fetch_json = AsyncMock(return_value={})
    client.request = AsyncMock()
    client.close = AsyncMock()
    return client


@pytest.fixture
def sandbox_settings():
    return SandboxSettings(call_timeout=1.0, max_contexts=3, idle_ttl=60.0, sweep_interval=30.0)


@pytest.fixture
async def sandbox(sandbox_settings, http_client):
    sandbox = ModuleSandbox(sandbox_settings, http_client=http_client)
    yield sandbox
    await sandbox.close()


@pytest.fixture
def make_metadata():
    """Build module metadata with overridable wire fields."""
    def factory(**overrides) -> ModuleMetadata:
        data = {
            "sourceName": "Test Source",
            "version": "1.0.0",
            "language": "English",
            "author": {"name": "Tester"},
            "baseUrl": BASE_URL,
            "searchBaseUrl": BASE_URL + "search?q=%s",
            "scriptUrl": "test.py",
            "asyncJS": False,
            "streamAsyncJS": False,
        }
        data.update(overrides)
        return ModuleMetadata.model_validate(data)
    return factory


@pytest.fixture
def load_script(sandbox):
    """Load a script into the sandbox and fail the test if it does not load."""
    def loader(script: str, module_id: str = "test-source"):
        result = sandbox.load(module_id, script, display_name=module_id)
        assert result.success, result.error
        return result
    return loader


@pytest.fixture
def orchestrator(sandbox, http_client):
    settings = ExtractionSettings(
        search_timeout=1.0,
        details_timeout=1.0,
        streams_timeout=1.0,
        chunk_size=2,
    )
    return ExtractionOrchestrator(sandbox, http_client=http_client, settings=settings)
