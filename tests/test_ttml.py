import pytest

from synced_lyrics.errors import LyricsParseError
from synced_lyrics.lyrics.model import SyncGranularity
from synced_lyrics.lyrics.ttml import parse_ttml

WORD_SYNCED = """<?xml version="1.0" encoding="utf-8"?>
<tt xmlns="http://www.w3.org/ns/ttml" xmlns:ttm="http://www.w3.org/ns/ttml#metadata"
    xmlns:itunes="http://music.apple.com/lyric-ttml-internal" xml:lang="ja">
  <head>
    <metadata>
      <iTunesMetadata xmlns="http://music.apple.com/lyric-ttml-internal">
        <translations>
          <translation type="subtitle" xml:lang="en">
            <text for="L1">Hello world</text>
          </translation>
        </translations>
        <transliterations>
          <transliteration xml:lang="ja-Latn">
            <text for="L1"><span begin="00:01.000" end="00:01.500">kon</span><span begin="00:01.500" end="00:02.000">nichiwa</span></text>
          </transliteration>
        </transliterations>
      </iTunesMetadata>
    </metadata>
  </head>
  <body>
    <div>
      <p begin="00:01.000" end="00:03.000" ttm:agent="v1"><span begin="00:01.000" end="00:01.500">こん</span><span begin="00:01.500" end="00:02.000">にちは</span> <span ttm:role="x-bg"><span begin="00:02.000" end="00:03.000">(世界)</span></span></p>
      <p begin="00:04.000" end="00:05.000" ttm:agent="v2"><span begin="00:04.000" end="00:05.000">次</span></p>
    </div>
  </body>
</tt>
"""

LINE_SYNCED = """<tt xmlns="http://www.w3.org/ns/ttml">
  <body xml:lang="en">
    <div>
      <p begin="1.5s" end="3s">first line</p>
      <p begin="3s" end="4.25s">second line</p>
    </div>
  </body>
</tt>
"""


class TestWordSyncedTtml:
    def test_parts_and_text(self):
        doc = parse_ttml(WORD_SYNCED)
        first = doc.lines[0]

        assert doc.sync_granularity == SyncGranularity.WORD
        assert doc.language == "ja"
        assert (first.start_ms, first.duration_ms) == (1000, 2000)
        assert first.text == "こんにちは (世界)"
        assert [(p.start_ms, p.duration_ms, p.text) for p in first.parts if not p.is_whitespace] == [
            (1000, 500, "こん"),
            (1500, 500, "にちは"),
            (2000, 1000, "(世界)"),
        ]

    def test_background_vocals_are_flagged(self):
        first = parse_ttml(WORD_SYNCED).lines[0]
        assert [p.text for p in first.parts if p.is_background] == ["(世界)"]

    def test_text_run_between_spans_chains_from_previous_part(self):
        first = parse_ttml(WORD_SYNCED).lines[0]
        space = first.parts[2]
        assert space.text == " "
        assert space.start_ms == 2000
        assert space.duration_ms == 0

    def test_voice_agents(self):
        doc = parse_ttml(WORD_SYNCED)
        assert [ln.voice_agent for ln in doc.lines] == ["v1", "v2"]

    def test_translation_attached_by_label(self):
        doc = parse_ttml(WORD_SYNCED)
        assert doc.lines[0].translation is not None
        assert doc.lines[0].translation.text == "Hello world"
        assert doc.lines[0].translation.lang == "en"
        assert doc.lines[1].translation is None

    def test_transliteration_is_timed(self):
        first = parse_ttml(WORD_SYNCED).lines[0]
        assert first.romanization == "konnichiwa"
        assert first.timed_romanization is not None
        assert [(p.start_ms, p.text) for p in first.timed_romanization] == [(1000, "kon"), (1500, "nichiwa")]


class TestLineSyncedTtml:
    def test_line_timing_without_parts(self):
        doc = parse_ttml(LINE_SYNCED)

        assert doc.sync_granularity == SyncGranularity.LINE
        assert doc.language == "en"
        assert [(ln.start_ms, ln.duration_ms, ln.text) for ln in doc.lines] == [
            (1500, 1500, "first line"),
            (3000, 1250, "second line"),
        ]
        assert all(ln.parts == [] for ln in doc.lines)

    def test_missing_metadata_is_not_an_error(self):
        doc = parse_ttml(LINE_SYNCED)
        assert all(ln.translation is None and ln.romanization is None for ln in doc.lines)


class TestInferredDurations:
    """Paragraphs and spans without an end borrow it from what follows."""

    def test_line_without_end_runs_to_next_line_then_song_end(self):
        doc = parse_ttml(
            '<tt><body><div><p begin="1.0">first</p><p begin="3.0">second</p></div></body></tt>',
            song_duration_ms=6000,
        )
        assert [(ln.start_ms, ln.duration_ms) for ln in doc.lines] == [(1000, 2000), (3000, 3000)]

    def test_dur_attribute_is_used_when_end_is_missing(self):
        doc = parse_ttml('<tt><body><div><p begin="2s" dur="1.5s">only</p></div></body></tt>', 9000)
        assert doc.lines[0].duration_ms == 1500

    def test_spans_without_end_stay_inside_their_line(self):
        doc = parse_ttml(
            "<tt><body><div>"
            '<p begin="1.0"><span begin="1.0">a</span> <span begin="1.6">b</span></p>'
            '<p begin="3.0">c</p>'
            "</div></body></tt>",
            song_duration_ms=5000,
        )
        first = doc.lines[0]

        assert (first.start_ms, first.duration_ms) == (1000, 2000)
        assert [(p.start_ms, p.duration_ms, p.text) for p in first.parts] == [
            (1000, 600, "a"),
            (1600, 0, " "),
            (1600, 1400, "b"),
        ]
        for line in doc.lines:
            assert all(line.start_ms <= p.start_ms and p.end_ms <= line.end_ms for p in line.parts)

    def test_last_line_without_song_duration_is_not_negative(self):
        doc = parse_ttml('<tt><body><div><p begin="4.0">tail</p></div></body></tt>')
        assert doc.lines[0].duration_ms == 0


class TestInvalidTtml:
    def test_bad_xml(self):
        with pytest.raises(LyricsParseError):
            parse_ttml("<tt><body>")

    def test_wrong_root(self):
        with pytest.raises(LyricsParseError):
            parse_ttml("<html><body/></html>")

    def test_no_body(self):
        with pytest.raises(LyricsParseError):
            parse_ttml('<tt xmlns="http://www.w3.org/ns/ttml"><head/></tt>')
