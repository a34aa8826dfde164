"""Tests for module import and the bundled demo module."""

import json
from pathlib import Path

import pytest

from mediascout.core.config_manager import ConfigManager
from mediascout.core.exceptions import ModuleLoadError
from mediascout.core.module_manager import ModuleManager


DEMO_METADATA = Path(__file__).resolve().parent.parent / "modules" / "demo" / "demo.json"

SEARCH_PAGE = """
<div class="film-list">
  <div class="item">
    <a class="poster" href="/anime/frieren"><img src="/img/frieren.jpg"></a>
    <span class="name">Frieren</span>
  </div>
  <div class="item">
    <a class="poster" href="/anime/dungeon-meshi"><img src="/img/meshi.jpg"></a>
    <span class="name">Delicious in Dungeon</span>
  </div>
</div>
"""

MEDIA_PAGE = """
<p class="synopsis">An elf mage   outlives her party.</p>
<span class="alias">Sousou no Frieren</span>
<span class="aired">Sep 29, 2023</span>
<div class="episodes">
  <a href="/watch/frieren-1" title="The Journey's End">Episode 1</a>
  <a href="/watch/frieren-2">Ep 2</a>
  <a href="/watch/trailer">Trailer</a>
</div>
"""

PLAYER_PAGE = """
<script id="player-config">var config = {"file": "https://cdn.example/master.m3u8", "subtitle": "https://cdn.example/en.vtt"};</script>
"""

ENCODED_PLAYER_PAGE = '<div id="player" data-stream="aHR0cHM6Ly9jZG4uZXhhbXBsZS9hbHQubXA0"></div>'


@pytest.fixture
def config_manager(tmp_path):
    return ConfigManager(tmp_path / "config")


@pytest.fixture
def manager(config_manager, sandbox, http_client):
    return ModuleManager(config_manager, sandbox=sandbox, http_client=http_client)


def write_module(directory: Path, script: str, **overrides) -> Path:
    metadata = {
        "sourceName": "Local Test",
        "version": "0.1",
        "language": "English",
        "author": "Tester",
        "baseUrl": "https://local.example/",
        "scriptUrl": "local.py",
    }
    metadata.update(overrides)
    (directory / "local.py").write_text(script, encoding="utf-8")
    path = directory / "local.json"
    path.write_text(json.dumps(metadata), encoding="utf-8")
    return path


class TestImport:

    async def test_import_local_module(self, manager, sandbox):
        metadata = await manager.import_module(DEMO_METADATA)

        assert metadata.module_id == "demo-anime"
        assert metadata.author == "MediaScout Team"
        assert sandbox.available_functions("demo-anime") == [
            "extractDetails", "extractEpisodes", "extractStreamUrl", "searchResults",
        ]
        assert manager.get_module("demo-anime") is metadata

    async def test_import_remote_module(self, manager, http_client):
        http_client.fetch_json.return_value = {
            "sourceName": "Remote", "version": "1", "language": "en", "author": "x",
            "baseUrl": "https://remote.example/", "scriptUrl": "remote.py",
        }
        http_client.fetch_text.return_value = "def searchResults(html):\n    return []\n"

        metadata = await manager.import_module("https://modules.example/remote/remote.json")

        http_client.fetch_json.assert_awaited_once_with("https://modules.example/remote/remote.json")
        http_client.fetch_text.assert_awaited_once_with("https://modules.example/remote/remote.py")
        assert metadata.module_id == "remote"

    async def test_invalid_metadata(self, manager, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"sourceName": "Bad"}), encoding="utf-8")

        with pytest.raises(ModuleLoadError):
            await manager.import_module(path)
        assert str(path) in manager.get_module_status()["failures"]

    async def test_unreadable_metadata(self, manager, tmp_path):
        with pytest.raises(ModuleLoadError):
            await manager.import_module(tmp_path / "missing.json")

    async def test_missing_script(self, manager, tmp_path):
        path = write_module(tmp_path, "", scriptUrl="nowhere.py")

        with pytest.raises(ModuleLoadError) as exc_info:
            await manager.import_module(path)
        assert exc_info.value.module_id == "local-test"

    async def test_broken_script(self, manager, sandbox, tmp_path):
        path = write_module(tmp_path, "def searchResults(:\n")

        with pytest.raises(ModuleLoadError):
            await manager.import_module(path)

        status = manager.get_module_status("local-test")
        assert not status["loaded"]
        assert "syntax error" in status["error"]
        assert not sandbox.is_loaded("local-test")

    async def test_reload_and_remove(self, manager, sandbox, tmp_path):
        path = write_module(tmp_path, "def searchResults(html):\n    console.log('v1')\n    return []\n")
        await manager.import_module(path)

        write_module(tmp_path, "def searchResults(html):\n    return []\n\ndef extractDetails(html):\n    return []\n")
        await manager.reload_module("local-test")
        assert sandbox.available_functions("local-test") == ["extractDetails", "searchResults"]

        assert manager.remove_module("local-test")
        assert not sandbox.is_loaded("local-test")
        assert manager.list_modules() == []
        with pytest.raises(ModuleLoadError):
            await manager.reload_module("local-test")

    async def test_status_report(self, manager):
        await manager.import_module(DEMO_METADATA)

        status = manager.get_module_status()

        assert status["imported"] == 1
        assert status["sandbox"]["active_contexts"] == 1
        info = status["modules"]["demo-anime"]
        assert info["loaded"]
        assert info["metadata"]["sourceName"] == "Demo Anime"
        assert info["calls"] == 0


class TestDemoModule:

    async def test_search(self, manager, orchestrator, http_client):
        metadata = await manager.import_module(DEMO_METADATA)
        http_client.fetch_text.return_value = SEARCH_PAGE

        outcome = await orchestrator.search("frieren", metadata)

        http_client.fetch_text.assert_awaited_once_with("https://demo-anime.example/search?keyword=frieren")
        first = outcome.value[0]
        assert first.title == "Frieren"
        assert first.image_url == "https://demo-anime.example/img/frieren.jpg"
        assert first.href == "https://demo-anime.example/anime/frieren"
        assert len(outcome.value) == 2

        messages = manager.get_module_status("demo-anime")["console"]
        assert messages[-1]["message"] == "Found 2 search results"

    async def test_details(self, manager, orchestrator, http_client):
        metadata = await manager.import_module(DEMO_METADATA)
        http_client.fetch_text.return_value = MEDIA_PAGE

        outcome = await orchestrator.details("/anime/frieren", metadata)

        details = outcome.value.details[0]
        assert details.description == "An elf mage outlives her party."
        assert details.aliases == "Sousou no Frieren"
        assert details.parsed_airdate.isoformat() == "2023-09-29"
        assert [(e.number, e.title) for e in outcome.value.episodes] == [(1, "The Journey's End"), (2, "")]
        assert outcome.value.episodes[0].href == "https://demo-anime.example/watch/frieren-1"

    async def test_streams_from_player_config(self, manager, orchestrator, http_client):
        metadata = await manager.import_module(DEMO_METADATA)
        http_client.fetch_text.return_value = PLAYER_PAGE

        outcome = await orchestrator.streams("/watch/frieren-1", metadata)

        source = outcome.value.sources[0]
        assert source.url == "https://cdn.example/master.m3u8"
        assert source.headers == {"Referer": "https://demo-anime.example/"}
        assert outcome.value.subtitles == ["https://cdn.example/en.vtt"]

    async def test_streams_from_encoded_player(self, manager, orchestrator, http_client):
        metadata = await manager.import_module(DEMO_METADATA)
        http_client.fetch_text.return_value = ENCODED_PLAYER_PAGE

        outcome = await orchestrator.streams("/watch/frieren-1", metadata)

        assert outcome.value.streams == ["https://cdn.example/alt.mp4"]

    async def test_streams_without_player(self, manager, orchestrator, http_client):
        metadata = await manager.import_module(DEMO_METADATA)
        http_client.fetch_text.return_value = "<html></html>"

        outcome = await orchestrator.streams("/watch/frieren-1", metadata)

        assert outcome.is_empty
        assert outcome.errors == ["html-prefetch: Module returned no stream output"]
