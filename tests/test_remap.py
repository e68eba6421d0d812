import pytest

from synced_lyrics.lyrics.model import LyricLine, LyricPart, LyricsDocument, Segment, SegmentMap
from synced_lyrics.sync.remap import remap_document, remap_time

# the video opens with a 5s intro the audio does not have
SEGMENTS = SegmentMap(
    segments=(
        Segment(primary_start_ms=0, counterpart_start_ms=0, duration_ms=10_000),
        Segment(primary_start_ms=15_000, counterpart_start_ms=10_000, duration_ms=20_000),
        Segment(primary_start_ms=40_000, counterpart_start_ms=30_000, duration_ms=60_000),
    )
)


def _doc() -> LyricsDocument:
    return LyricsDocument(
        lines=[
            LyricLine(2000, 1000, "a", parts=[LyricPart(2000, 400, "a")]),
            LyricLine(
                12_000,
                1000,
                "b",
                parts=[LyricPart(12_000, 500, "b1"), LyricPart(12_500, 500, "b2")],
                timed_romanization=[LyricPart(12_000, 1000, "rb")],
            ),
            LyricLine(31_000, 1000, "c"),
        ]
    )


class TestRemap:
    def test_lines_and_parts_shift_together(self):
        doc = _doc()
        assert remap_document(doc, SEGMENTS) is True

        assert [ln.start_ms for ln in doc.lines] == [2000, 17_000, 41_000]
        assert [p.start_ms for p in doc.lines[1].parts] == [17_000, 17_500]
        assert doc.lines[1].timed_romanization[0].start_ms == 17_000
        # durations untouched
        assert [p.duration_ms for p in doc.lines[1].parts] == [500, 500]

    @pytest.mark.parametrize("t_ms", [0, 2500, 12_345, 29_999, 31_000, 75_250])
    def test_inverse_round_trip(self, t_ms):
        forward = remap_time(t_ms, SEGMENTS)
        assert abs(remap_time(forward, SEGMENTS.inverse()) - t_ms) <= 1

    def test_inverse_is_sorted_by_counterpart(self):
        shuffled = SegmentMap(segments=tuple(reversed(SEGMENTS.segments)))
        starts = [s.counterpart_start_ms for s in shuffled.inverse().segments]
        assert starts == sorted(starts)

    def test_empty_map_is_a_no_op(self):
        doc = _doc()
        assert remap_document(doc, SegmentMap(segments=())) is False
        assert remap_document(doc, None) is False
        assert [ln.start_ms for ln in doc.lines] == [2000, 12_000, 31_000]

    def test_untimed_document_is_left_alone(self):
        doc = LyricsDocument(lines=[LyricLine(0, 0, "x")])
        assert remap_document(doc, SEGMENTS) is False
        assert doc.lines[0].start_ms == 0


def test_segment_map_from_host_payload():
    payload = {
        "segment": [
            {
                "primaryVideoStartTimeMilliseconds": "5000",
                "counterpartVideoStartTimeMilliseconds": "0",
                "durationMilliseconds": "180000",
            },
            {"primaryVideoStartTimeMilliseconds": "x"},
        ]
    }
    seg_map = SegmentMap.from_payload(payload)
    assert seg_map.segments == (Segment(primary_start_ms=5000, counterpart_start_ms=0, duration_ms=180_000),)
    assert SegmentMap.from_payload(None).segments == ()
