"""Tests for the result models."""

from datetime import date

import pytest
from pydantic import ValidationError

from mediascout.core.models import (
    DetailsResult,
    EpisodeLink,
    ExtractionFunction,
    MediaItem,
    ModuleMetadata,
    SearchItem,
    StreamResult,
    SubtitleCue,
    SubtitleTrack,
)


class TestSearchItem:

    def test_round_trip_uses_wire_names(self):
        data = {"title": "Frieren", "imageUrl": "https://img.example/f.jpg", "href": "/anime/frieren"}
        item = SearchItem.from_json(data)

        assert item.image_url == "https://img.example/f.jpg"
        assert item.to_json() == data
        assert SearchItem.from_json(item.to_json()) == item

    def test_strings_are_trimmed(self):
        item = SearchItem(title="  Frieren ", imageUrl=" x.jpg ", href=" https://a.example/f ")
        assert item.title == "Frieren"
        assert item.href == "https://a.example/f"

    @pytest.mark.parametrize("field,value", [
        ("title", ""),
        ("title", "   "),
        ("imageUrl", ""),
        ("href", "not a link"),
        ("href", 42),
    ])
    def test_invalid_fields_rejected(self, field, value):
        data = {"title": "Frieren", "imageUrl": "x.jpg", "href": "/a"}
        data[field] = value
        with pytest.raises(ValidationError):
            SearchItem.model_validate(data)

    def test_from_json_string(self):
        item = SearchItem.from_json('{"title": "A", "imageUrl": "i", "href": "?id=1"}')
        assert item.href == "?id=1"

    def test_frozen(self):
        item = SearchItem(title="A", imageUrl="i", href="/a")
        with pytest.raises(ValidationError):
            item.title = "B"


class TestMediaItem:

    def test_missing_fields_default_to_empty(self):
        item = MediaItem.model_validate({"description": None})
        assert item.description == ""
        assert item.aliases == ""
        assert item.airdate == ""

    def test_alias_list_is_joined(self):
        item = MediaItem(aliases=["Sousou no Frieren", " ", "葬送のフリーレン"])
        assert item.aliases == "Sousou no Frieren, 葬送のフリーレン"
        assert item.alias_list == ["Sousou no Frieren", "葬送のフリーレン"]

    def test_non_text_rejected(self):
        with pytest.raises(ValidationError):
            MediaItem(description={"text": "nope"})

    @pytest.mark.parametrize("raw,expected", [
        ("2023-09-29", date(2023, 9, 29)),
        ("Sep 29, 2023", date(2023, 9, 29)),
        ("Apr 3, 2021 to Jun 19, 2021", date(2021, 4, 3)),
        ("2019", date(2019, 1, 1)),
        ("sometime", None),
        ("", None),
    ])
    def test_parsed_airdate(self, raw, expected):
        assert MediaItem(airdate=raw).parsed_airdate == expected

    def test_unparseable_airdate_kept_verbatim(self):
        item = MediaItem(airdate="Fall season")
        assert item.formatted_airdate == "Fall season"


class TestEpisodeLink:

    def test_number_from_leading_integer(self):
        episode = EpisodeLink.model_validate({"number": "12 - Finale", "href": "/ep/12"})
        assert episode.number == 12
        assert episode.display_title == "Episode 12"

    @pytest.mark.parametrize("record", [
        {"number": "abc", "href": "/ep/1"},
        {"number": -1, "href": "/ep/1"},
        {"number": True, "href": "/ep/1"},
        {"number": 1},
        {"number": 1, "href": ""},
    ])
    def test_malformed_records_rejected(self, record):
        with pytest.raises(ValidationError):
            EpisodeLink.model_validate(record)

    def test_invalid_duration_becomes_none(self):
        episode = EpisodeLink(number=1, href="/ep/1", duration="unknown")
        assert episode.duration is None
        assert episode.formatted_duration is None

    def test_duration_formatting(self):
        episode = EpisodeLink(number=1, href="/ep/1", duration=1445)
        assert episode.formatted_duration == "24:05"


class TestStreamResult:

    def test_empty_lists_become_none(self):
        result = StreamResult(streams=[], subtitles=[], sources=[])
        assert result.streams is None
        assert result.subtitles is None
        assert result.sources is None
        assert result.is_empty

    def test_urls_lists_sources_first(self):
        result = StreamResult(
            streams=["https://cdn.example/a.m3u8"],
            sources=[{"url": "https://cdn.example/b.m3u8", "headers": {"Referer": "x"}}],
        )
        assert result.urls == ["https://cdn.example/b.m3u8", "https://cdn.example/a.m3u8"]

    def test_non_list_rejected(self):
        with pytest.raises(ValidationError):
            StreamResult(streams=42)


class TestSubtitleModels:

    def test_active_cue_inclusive_bounds(self):
        track = SubtitleTrack(cues=[
            SubtitleCue(id="1", startTime=1.0, endTime=2.0, text="one"),
            SubtitleCue(id="2", startTime=3.0, endTime=4.0, text="two"),
        ])
        assert track.active_cue(1.0).text == "one"
        assert track.active_cue(2.0).text == "one"
        assert track.active_cue(2.5) is None
        assert track.active_cue(4.0).text == "two"

    def test_negative_time_rejected(self):
        with pytest.raises(ValidationError):
            SubtitleCue(id="1", startTime=-1.0, endTime=2.0, text="x")


class TestModuleMetadata:

    def test_parses_wire_format(self, make_metadata):
        metadata = make_metadata(version=2, unknownKey="ignored")
        assert metadata.author == "Tester"
        assert metadata.version == "2"
        assert metadata.module_id == "test-source"
        assert metadata.async_js is False

    def test_search_url_encodes_keyword(self, make_metadata):
        metadata = make_metadata()
        assert metadata.search_url("one piece") == "https://source.example/search?q=one%20piece"

    def test_search_url_without_template(self, make_metadata):
        assert make_metadata(searchBaseUrl="").search_url("x") is None

    def test_search_template_requires_placeholder(self, make_metadata):
        with pytest.raises(ValidationError):
            make_metadata(searchBaseUrl="https://source.example/search")

    def test_missing_required_field(self):
        with pytest.raises(ValidationError):
            ModuleMetadata.model_validate({"sourceName": "X"})


class TestExtractionFunction:

    def test_method_name(self):
        assert ExtractionFunction.EXTRACT_STREAM_URL.method_name == "extract_stream_url"

    @pytest.mark.parametrize("name", ["searchResults", "search_results"])
    def test_from_name_accepts_both_spellings(self, name):
        assert ExtractionFunction.from_name(name) is ExtractionFunction.SEARCH_RESULTS

    def test_from_name_unknown(self):
        assert ExtractionFunction.from_name("nope") is None


def test_details_result_emptiness():
    assert DetailsResult().is_empty
    assert not DetailsResult(details=[MediaItem(description="x")]).is_empty
