"""Tests for WebVTT/SRT parsing and subtitle loading."""

from unittest.mock import AsyncMock

import pytest

from mediascout.core.exceptions import MalformedResultError, NetworkError
from mediascout.core.models import SubtitleFormat
from mediascout.core.subtitles import (
    SubtitleLoader,
    SubtitleParser,
    clean_cue_text,
    detect_language,
    parse_srt_timecode,
    parse_vtt_timecode,
    track_label,
)


VTT_SAMPLE = "WEBVTT\n\n00:00:01.000 --> 00:00:03.000\nHello\n"
SRT_SAMPLE = "1\n00:00:01,000 --> 00:00:03,000\nHi there\n"

VTT_FULL = """WEBVTT - Episode 1

NOTE
This comment spans
two lines.

STYLE
::cue { color: yellow; }

intro
00:00:05.000 --> 00:00:07.500 align:start position:10%
<i>First</i> line
second line

00:08.000 --> 00:09.000
Short &amp; sweet

00:00:10.000 --> 00:00:11.000

"""


class TestSubtitleParser:

    def test_vtt_example(self):
        track = SubtitleParser().parse(VTT_SAMPLE)

        assert track.format is SubtitleFormat.VTT
        assert len(track.cues) == 1
        cue = track.cues[0]
        assert cue.start_time == pytest.approx(0.5)
        assert cue.end_time == pytest.approx(2.5)
        assert cue.text == "Hello"

    def test_srt_example_matches_vtt_timing(self):
        srt = SubtitleParser().parse(SRT_SAMPLE)
        vtt = SubtitleParser().parse(VTT_SAMPLE)

        assert srt.format is SubtitleFormat.SRT
        assert len(srt.cues) == 1
        assert srt.cues[0].text == "Hi there"
        assert srt.cues[0].id == "1"
        assert srt.cues[0].start_time == pytest.approx(vtt.cues[0].start_time)
        assert srt.cues[0].end_time == pytest.approx(vtt.cues[0].end_time)

    def test_vtt_skips_note_and_style_blocks(self):
        cues = SubtitleParser(time_offset=0).parse_vtt(VTT_FULL)

        assert [cue.id for cue in cues] == ["intro", "2"]
        assert cues[0].start_time == pytest.approx(5.0)
        assert cues[0].end_time == pytest.approx(7.5)
        assert cues[0].text == "<i>First</i> line\nsecond line"

    def test_vtt_minute_timecodes(self):
        cues = SubtitleParser(time_offset=0).parse_vtt(VTT_FULL)
        assert cues[1].start_time == pytest.approx(8.0)
        assert cues[1].end_time == pytest.approx(9.0)

    def test_empty_cue_text_dropped(self):
        cues = SubtitleParser().parse_vtt(VTT_FULL)
        assert all(cue.text for cue in cues)
        assert len(cues) == 2

    def test_strip_markup(self):
        cues = SubtitleParser(time_offset=0, strip_markup=True).parse_vtt(VTT_FULL)
        assert cues[0].text == "First line\nsecond line"
        assert cues[1].text == "Short & sweet"

    def test_offset_clamped_at_zero(self):
        cues = SubtitleParser(time_offset=-2.0).parse_vtt("WEBVTT\n\n00:00:01.000 --> 00:00:03.000\nEarly\n")
        assert cues[0].start_time == 0.0
        assert cues[0].end_time == pytest.approx(1.0)

    def test_crlf_and_bom(self):
        content = "\ufeff1\r\n00:00:02,500 --> 00:00:04,000\r\nWindows\r\n\r\n"
        track = SubtitleParser(time_offset=0).parse(content)
        assert track.format is SubtitleFormat.SRT
        assert track.cues[0].start_time == pytest.approx(2.5)

    def test_unreadable_timing_skipped(self):
        content = "WEBVTT\n\nxx:yy --> 00:00:02.000\nBad\n\n00:00:03.000 --> 00:00:04.000\nGood\n"
        cues = SubtitleParser(time_offset=0).parse_vtt(content)
        assert [cue.text for cue in cues] == ["Good"]

    def test_srt_multiple_cues_in_order(self):
        content = (
            "1\n00:00:01,000 --> 00:00:02,000\nOne\n\n"
            "2\n00:00:03,000 --> 00:00:04,000\nTwo\nlines\n\n"
        )
        cues = SubtitleParser(time_offset=0).parse_srt(content)
        assert [cue.text for cue in cues] == ["One", "Two\nlines"]

    def test_not_a_subtitle_file(self):
        with pytest.raises(MalformedResultError):
            SubtitleParser().parse("<html>404</html>")

    def test_active_cue_lookup(self):
        track = SubtitleParser(time_offset=0).parse(VTT_FULL)
        assert track.active_cue(6.0).id == "intro"
        assert track.active_cue(7.75) is None

    def test_track_labels_from_url(self):
        track = SubtitleParser().parse(VTT_SAMPLE, url="https://cdn.example/show.es.vtt", index=1)
        assert track.language == "es"
        assert track.label == "Español"


class TestFormatDetection:

    @pytest.mark.parametrize("url,fmt", [
        ("https://cdn.example/a.vtt?token=1", SubtitleFormat.VTT),
        ("https://cdn.example/a.srt", SubtitleFormat.SRT),
    ])
    def test_extension_wins(self, url, fmt):
        assert SubtitleParser().detect_format("", url) is fmt

    def test_content_detection(self):
        parser = SubtitleParser()
        assert parser.detect_format(VTT_SAMPLE) is SubtitleFormat.VTT
        assert parser.detect_format(SRT_SAMPLE) is SubtitleFormat.SRT
        assert parser.detect_format("00:00:01.000 --> 00:00:02.000\nx") is SubtitleFormat.VTT
        assert parser.detect_format("plain text") is None


class TestHelpers:

    @pytest.mark.parametrize("value,seconds", [
        ("00:00:01.000", 1.0),
        ("01:02:03.250", 3723.25),
        ("02:03.5", 123.5),
    ])
    def test_vtt_timecode(self, value, seconds):
        assert parse_vtt_timecode(value) == pytest.approx(seconds)

    def test_srt_timecode(self):
        assert parse_srt_timecode("01:00:00,250") == pytest.approx(3600.25)

    @pytest.mark.parametrize("value", ["1", "a:b:c", ""])
    def test_bad_timecodes(self, value):
        with pytest.raises(ValueError):
            parse_vtt_timecode(value)

    def test_clean_cue_text(self):
        assert clean_cue_text("<b>Hi</b> {\\an8}there &lt;3") == "Hi there <3"

    def test_language_detection(self):
        assert detect_language("https://cdn.example/ep1.en.vtt") == "en"
        assert detect_language("https://cdn.example/ep1.vtt") is None
        assert track_label("https://cdn.example/ep1.vtt", 2) == "Track 3"


class TestSubtitleLoader:

    async def test_load_uses_default_language(self, http_client):
        http_client.fetch_text = AsyncMock(return_value=VTT_SAMPLE)
        loader = SubtitleLoader(http_client, default_language="de")

        track = await loader.load("https://cdn.example/track.vtt")

        http_client.fetch_text.assert_awaited_once_with("https://cdn.example/track.vtt", headers=None)
        assert track.language == "de"
        assert track.cues[0].text == "Hello"

    async def test_load_all_skips_failures(self, http_client):
        http_client.fetch_text = AsyncMock(side_effect=[
            NetworkError("HTTP 404 error", status_code=404),
            "not subtitles",
            SRT_SAMPLE,
        ])
        loader = SubtitleLoader(http_client)

        tracks = await loader.load_all([
            "https://cdn.example/a.vtt",
            "https://cdn.example/b",
            "https://cdn.example/c.en.srt",
        ])

        assert len(tracks) == 1
        assert tracks[0].label == "English"
        assert tracks[0].cues[0].text == "Hi there"
