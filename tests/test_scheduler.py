from __future__ import annotations

import pytest

from synced_lyrics.config import SchedulerTuning
from synced_lyrics.lyrics.model import LyricLine, LyricPart, LyricsDocument, PlaybackSample
from synced_lyrics.sync.scheduler import SchedulerState, SyncScheduler, ViewportLayout


def _line_doc(count: int = 30) -> LyricsDocument:
    # line i runs from (i + 1)s to (i + 2)s
    return LyricsDocument(lines=[LyricLine((i + 1) * 1000, 1000, f"line {i}") for i in range(count)])


def _word_doc() -> LyricsDocument:
    return LyricsDocument(
        lines=[
            LyricLine(1000, 1000, "a b", parts=[LyricPart(1000, 500, "a"), LyricPart(1500, 500, "b")]),
            LyricLine(5000, 1000, "c", parts=[LyricPart(5000, 1000, "c")]),
        ]
    )


def _sample(position_s: float, now_ms: float, playing: bool = True) -> PlaybackSample:
    return PlaybackSample(position_s=position_s, capture_wall_clock_ms=round(now_ms), is_playing=playing)


def _loaded(doc: LyricsDocument, now_ms: float = 0.0) -> SyncScheduler:
    scheduler = SyncScheduler()
    scheduler.load(doc, ViewportLayout.uniform(len(doc.lines), viewport_height=20.0), now_ms=now_ms)
    return scheduler


class TestActiveLine:
    def test_idle_without_document(self):
        tick = SyncScheduler().on_sample(_sample(1.0, 0))
        assert tick.state == SchedulerState.IDLE

    def test_untimed_document_does_not_tick(self):
        scheduler = _loaded(LyricsDocument(lines=[LyricLine(0, 0, "plain")]))
        assert not scheduler.ticking
        assert scheduler.on_sample(_sample(1.0, 0)).state == SchedulerState.IDLE

    def test_scroll_line_leads_playback(self):
        scheduler = _loaded(_line_doc())
        tick = scheduler.on_sample(_sample(10.6, 1000), now_ms=1000)

        # playback is in line 9, the scroll target runs 0.5s ahead into line 10
        assert tick.state == SchedulerState.TRACKING
        assert tick.active_line_index == 10

    def test_position_is_extrapolated_from_capture_time(self):
        scheduler = _loaded(_line_doc())
        tick = scheduler.on_sample(_sample(10.0, 1000), now_ms=2600)
        assert tick.active_line_index == 11

    def test_paused_sample_is_not_extrapolated(self):
        scheduler = _loaded(_line_doc())
        tick = scheduler.on_sample(_sample(10.0, 1000, playing=False), now_ms=5000)
        assert tick.active_line_index == 9

    def test_stop_goes_idle(self):
        scheduler = _loaded(_line_doc())
        scheduler.stop()
        assert scheduler.state == SchedulerState.IDLE
        scheduler.load(_line_doc())
        scheduler.clear()
        assert scheduler.state == SchedulerState.IDLE


class TestWordProgress:
    def test_part_progress(self):
        scheduler = _loaded(_word_doc(), now_ms=10_000)
        # word-synced documents run 115ms ahead of the reported position
        tick = scheduler.on_sample(_sample(1.385, 10_000), now_ms=10_000)

        phase = tick.phase_for(0)
        assert phase is not None
        assert phase.part_progress[0] == pytest.approx(1.0, abs=0.01)
        assert phase.part_progress[1] == pytest.approx(0.0, abs=0.01)

        tick = scheduler.on_sample(_sample(1.635, 10_250), now_ms=10_250)
        phase = tick.phase_for(0)
        assert phase.part_progress[1] == pytest.approx(0.5, abs=0.01)
        assert tick.reanchored == ()

    def test_upcoming_line_animates_within_lookahead(self):
        scheduler = _loaded(_word_doc(), now_ms=0)
        tick = scheduler.on_sample(_sample(3.5, 0), now_ms=0)
        assert tick.phase_for(1) is not None
        assert tick.phase_for(1).part_progress == (0.0,)


class TestDriftCorrection:
    def test_constant_lag_reanchors_once(self):
        tuning = SchedulerTuning()
        scheduler = _loaded(LyricsDocument(lines=[LyricLine(1000, 60_000, "long"), LyricLine(90_000, 1000, "end")]))

        reanchors = []
        for k in range(20):
            now = 10_000 + 100 * k
            # after the first tick the player reports 50ms less than the wall clock says
            position = 1.5 + 0.1 * k - (0.05 if k else 0.0)
            tick = scheduler.on_sample(_sample(position, now), now_ms=now)
            reanchors.extend(k for i in tick.reanchored if i == 0)
            assert abs(scheduler.accumulated_offset_ms(0)) <= tuning.drift_reset_ms

        assert reanchors == [7]
        assert scheduler.reanchor_count == 1
        # re-anchored onto the lagging clock: no error left
        assert scheduler.accumulated_offset_ms(0) == pytest.approx(0.0, abs=1.0)

    def test_on_time_samples_never_reanchor(self):
        scheduler = _loaded(_line_doc())
        for k in range(50):
            now = 1000 + 100 * k
            scheduler.on_sample(_sample(2.0 + 0.1 * k, now), now_ms=now)
        assert scheduler.reanchor_count == 0


class TestScrolling:
    def test_scroll_target_and_duration(self):
        scheduler = _loaded(_line_doc())
        tick = scheduler.on_sample(_sample(10.0, 1000), now_ms=1000)

        # line 9 sits 37% down a 20-row viewport
        assert tick.scroll_target_px == pytest.approx(2.1)
        # 0.5s until the next line, minus the margin
        assert tick.scroll_duration_ms == pytest.approx(450.0)
        assert scheduler.scroll_top == pytest.approx(2.1)

    def test_small_moves_are_ignored(self):
        scheduler = _loaded(_line_doc())
        scheduler.on_sample(_sample(10.0, 1000), now_ms=1000)
        tick = scheduler.on_sample(_sample(11.0, 3000), now_ms=3000)

        # one row further is under the threshold
        assert tick.active_line_index == 10
        assert tick.scroll_target_px is None

    def test_top_of_document_clamps_to_zero(self):
        scheduler = _loaded(_line_doc())
        tick = scheduler.on_sample(_sample(1.0, 1000), now_ms=1000)
        assert tick.active_line_index == 0
        assert tick.scroll_target_px is None
        assert scheduler.scroll_top == 0.0


class TestManualScroll:
    def _scrolled(self) -> SyncScheduler:
        scheduler = _loaded(_line_doc(), now_ms=0)
        assert scheduler.on_sample(_sample(10.0, 1000), now_ms=1000).scroll_target_px is not None
        # let the self-scroll window run out
        scheduler.on_sample(_sample(10.0, 4000, playing=False), now_ms=4000)
        return scheduler

    def test_own_scrolls_are_not_user_scrolls(self):
        scheduler = _loaded(_line_doc(), now_ms=0)
        scheduler.on_sample(_sample(10.0, 1000), now_ms=1000)
        assert scheduler.on_scroll_event(now_ms=1100) is False
        assert scheduler.state == SchedulerState.TRACKING

    def test_user_scroll_suspends_then_times_out(self):
        scheduler = self._scrolled()
        assert scheduler.on_scroll_event(now_ms=4100) is False
        assert scheduler.on_scroll_event(scroll_top=12.0, now_ms=4200) is True
        assert scheduler.state == SchedulerState.SUSPENDED

        tick = scheduler.on_sample(_sample(20.0, 5000, playing=False), now_ms=5000)
        assert tick.state == SchedulerState.SUSPENDED
        assert tick.scroll_target_px is None
        assert scheduler.scroll_top == 12.0

        tick = scheduler.on_sample(_sample(25.0, 30_000, playing=False), now_ms=30_000)
        assert tick.state == SchedulerState.TRACKING
        assert tick.scroll_target_px is not None

    def test_explicit_resume(self):
        scheduler = self._scrolled()
        scheduler.on_scroll_event(now_ms=4100)
        scheduler.on_scroll_event(now_ms=4200)
        scheduler.resume_autoscroll()

        assert scheduler.state == SchedulerState.TRACKING
        tick = scheduler.on_sample(_sample(20.0, 5000, playing=False), now_ms=5000)
        assert tick.state == SchedulerState.TRACKING

    def test_scroll_events_ignored_when_idle(self):
        assert SyncScheduler().on_scroll_event(now_ms=0) is False
