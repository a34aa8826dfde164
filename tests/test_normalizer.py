"""Tests for stream output normalization."""

import json

import pytest

from mediascout.core.exceptions import MalformedResultError
from mediascout.core.models import StreamResult
from mediascout.core.normalizer import (
    StreamShape,
    classify_stream_output,
    decode_module_output,
    normalize_stream_result,
    validate_stream_urls,
)


URL = "http://x/a.mp4"


class TestNormalizeStreamResult:

    @pytest.mark.parametrize("raw", [
        URL,
        [URL],
        {"streams": [URL]},
        json.dumps([URL]),
        json.dumps({"streams": [URL]}),
        {"stream": URL},
    ])
    def test_shapes_normalize_identically(self, raw):
        result = normalize_stream_result(raw)
        assert result.streams == [URL]
        assert result.sources is None

    def test_envelope_with_subtitles(self):
        result = normalize_stream_result({
            "streams": ["https://cdn.example/1.m3u8", "https://cdn.example/2.m3u8"],
            "subtitles": "https://cdn.example/en.vtt",
        })
        assert result.streams == ["https://cdn.example/1.m3u8", "https://cdn.example/2.m3u8"]
        assert result.subtitles == ["https://cdn.example/en.vtt"]

    def test_envelope_with_header_bearing_streams(self):
        result = normalize_stream_result({
            "streams": [
                {"title": "SUB", "streamUrl": "https://cdn.example/sub.m3u8", "headers": {"Referer": "https://site.example/"}},
                {"title": "DUB", "streamUrl": "https://cdn.example/dub.m3u8"},
            ],
            "subtitles": ["https://cdn.example/en.vtt"],
        })
        assert result.streams is None
        assert [source.label for source in result.sources] == ["SUB", "DUB"]
        assert result.sources[0].headers == {"Referer": "https://site.example/"}
        assert result.sources[1].headers == {}

    def test_streams_key_wins_over_stream(self):
        result = normalize_stream_result({"streams": ["https://a.example/1"], "stream": "https://a.example/2"})
        assert result.streams == ["https://a.example/1"]

    def test_single_stream_object(self):
        result = normalize_stream_result({"stream": {"url": "https://a.example/1", "quality": "1080p"}})
        assert result.sources[0].quality == "1080p"

    def test_source_array_drops_invalid_entries(self):
        result = normalize_stream_result([
            {"url": "https://a.example/1", "quality": "720p"},
            {"label": "no url"},
            "stray string",
        ])
        assert len(result.sources) == 1
        assert result.sources[0].url == "https://a.example/1"

    def test_nested_json_string(self):
        result = normalize_stream_result(json.dumps(json.dumps([URL])))
        assert result.streams == [URL]

    @pytest.mark.parametrize("raw", [None, 42, [], {}, "", "   ", [1, 2], {"streams": []}])
    def test_unusable_output_is_empty(self, raw):
        result = normalize_stream_result(raw)
        assert result.is_empty


class TestClassify:

    @pytest.mark.parametrize("raw,shape", [
        (URL, StreamShape.BARE_STRING),
        ([URL], StreamShape.STRING_ARRAY),
        ([{"url": URL}], StreamShape.SOURCE_ARRAY),
        ({"streams": [URL]}, StreamShape.ENVELOPE),
        (3.5, StreamShape.UNKNOWN),
    ])
    def test_shapes(self, raw, shape):
        assert classify_stream_output(raw)[0] is shape


class TestDecodeModuleOutput:

    def test_json_string(self):
        assert decode_module_output('[{"title": "A"}]') == [{"title": "A"}]

    def test_passthrough(self):
        data = {"a": 1}
        assert decode_module_output(data) is data

    def test_tuple_becomes_list(self):
        assert decode_module_output(({"a": 1},)) == [{"a": 1}]

    @pytest.mark.parametrize("raw", ["not json", 5, None, '"just a string"'])
    def test_malformed(self, raw):
        with pytest.raises(MalformedResultError):
            decode_module_output(raw)


def test_validate_stream_urls_drops_relative_urls():
    result = validate_stream_urls(StreamResult(
        streams=["https://a.example/1.m3u8", "/relative.m3u8"],
        subtitles=["en.vtt", "https://a.example/en.vtt"],
        sources=[{"url": "//cdn/x"}, {"url": "https://a.example/2.m3u8"}],
    ))
    assert result.streams == ["https://a.example/1.m3u8"]
    assert result.subtitles == ["https://a.example/en.vtt"]
    assert [source.url for source in result.sources] == ["https://a.example/2.m3u8"]
