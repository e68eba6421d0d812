"""
Real-time position tracking for a committed LyricsDocument.

The scheduler is fed PlaybackSamples whenever the host has one and answers
synchronously with a TickResult: which line to scroll to, which lines are
animating and how far along each part is, and where the viewport should be.
It never blocks and never touches the network.

Time bases: sample positions and line timings are song time; `now_ms` and
animation anchors are wall-clock milliseconds, the same clock the host uses
for `PlaybackSample.capture_wall_clock_ms`.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from enum import Enum

from synced_lyrics.config import SchedulerTuning
from synced_lyrics.lyrics.model import LyricLine, LyricsDocument, PlaybackSample, SyncGranularity

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    TRACKING = "tracking"
    SUSPENDED = "suspended"


@dataclass(frozen=True, slots=True)
class ViewportLayout:
    """Vertical geometry of the rendered lines, in whatever unit the renderer scrolls by."""

    line_tops: tuple[float, ...]
    line_heights: tuple[float, ...]
    viewport_height: float

    @classmethod
    def uniform(cls, line_count: int, *, line_height: float = 1.0, viewport_height: float = 20.0) -> "ViewportLayout":
        return cls(
            line_tops=tuple(i * line_height for i in range(line_count)),
            line_heights=(line_height,) * line_count,
            viewport_height=viewport_height,
        )


@dataclass(frozen=True, slots=True)
class LinePhase:
    line_index: int
    # 0.0 (not started) to 1.0 (done) per part; romanization parts follow the line's own
    part_progress: tuple[float, ...]


@dataclass(frozen=True, slots=True)
class TickResult:
    state: SchedulerState
    active_line_index: int = -1
    first_active_line_index: int = -1
    phases: tuple[LinePhase, ...] = ()
    scroll_target_px: float | None = None
    scroll_duration_ms: float | None = None
    reanchored: tuple[int, ...] = ()

    def phase_for(self, line_index: int) -> LinePhase | None:
        for p in self.phases:
            if p.line_index == line_index:
                return p
        return None


@dataclass(slots=True)
class _LineAnimation:
    selected: bool = False
    animating: bool = False
    playing: bool = False
    anchor_ms: float | None = None
    part_anchors_ms: list[float] = field(default_factory=list)
    accumulated_offset_ms: float = 0.0


def _progress(anchor_ms: float, duration_ms: int, now_ms: float) -> float:
    if duration_ms <= 0:
        return 1.0 if now_ms >= anchor_ms else 0.0
    return min(max((now_ms - anchor_ms) / duration_ms, 0.0), 1.0)


class SyncScheduler:
    def __init__(self, tuning: SchedulerTuning | None = None):
        self.tuning = tuning or SchedulerTuning()
        self.doc: LyricsDocument | None = None
        self.layout: ViewportLayout | None = None
        self.ticking = False
        self.scroll_top = 0.0
        self.reanchor_count = 0

        self._granularity = SyncGranularity.NONE
        self._anims: list[_LineAnimation] = []
        self._scroll_line = -1
        self._last_first_active = -1
        self._scroll_pos = -1.0
        self._next_scroll_allowed_ms = 0.0
        self._scroll_resume_ms = 0.0
        self._self_scrolls = 0
        self._self_scroll_decay: list[float] = []
        self._suspended = False

    # lifecycle

    def load(self, doc: LyricsDocument, layout: ViewportLayout | None = None, *, now_ms: float | None = None) -> None:
        now = self._now(now_ms)
        self.doc = doc
        self.layout = layout or ViewportLayout.uniform(len(doc.lines))
        self._granularity = doc.sync_granularity
        self._anims = [_LineAnimation() for _ in doc.lines]
        self._scroll_line = -1
        self._last_first_active = -1
        self._scroll_pos = -1.0
        self._next_scroll_allowed_ms = 0.0
        self.scroll_top = 0.0
        self.reanchor_count = 0

        # the renderer's own initial scrolls must not look like the user's
        self._self_scrolls = self.tuning.initial_self_scrolls
        self._self_scroll_decay = [now + self.tuning.self_scroll_window_ms] * self._self_scrolls
        self._scroll_resume_ms = 0.0
        self._suspended = False
        self.ticking = doc.sync_granularity != SyncGranularity.NONE

    def set_layout(self, layout: ViewportLayout) -> None:
        self.layout = layout

    def clear(self) -> None:
        self.doc = None
        self.ticking = False
        self._anims = []

    def stop(self) -> None:
        self.ticking = False

    @property
    def state(self) -> SchedulerState:
        if self.doc is None or not self.ticking:
            return SchedulerState.IDLE
        return SchedulerState.SUSPENDED if self._suspended else SchedulerState.TRACKING

    def accumulated_offset_ms(self, line_index: int) -> float:
        return self._anims[line_index].accumulated_offset_ms

    # user scrolling

    def on_scroll_event(self, *, scroll_top: float | None = None, now_ms: float | None = None) -> bool:
        """
        Report a scroll of the lyrics viewport. Returns True when it was taken
        as a user scroll (autoscroll is then suspended).
        """
        if self.state == SchedulerState.IDLE:
            return False
        if self._self_scrolls > 0:
            self._self_scrolls -= 1
            if self._self_scroll_decay:
                self._self_scroll_decay.pop(0)
            return False

        now = self._now(now_ms)
        if scroll_top is not None:
            self.scroll_top = scroll_top
        if self._scroll_resume_ms < now:
            logger.info("User scrolled, pausing autoscroll")
        self._scroll_resume_ms = now + self.tuning.manual_scroll_pause_ms
        self._suspended = True
        return True

    def resume_autoscroll(self) -> None:
        self._scroll_resume_ms = 0.0
        self._suspended = False

    # ticking

    def on_sample(self, sample: PlaybackSample, *, now_ms: float | None = None) -> TickResult:
        state = self.state
        if state == SchedulerState.IDLE or self.doc is None:
            return TickResult(state=SchedulerState.IDLE)
        if sample.position_s == 0 and not sample.is_playing:
            return TickResult(state=state, active_line_index=self._scroll_line)

        tn = self.tuning
        now = self._now(now_ms)
        lines = self.doc.lines

        t = sample.position_s
        if sample.is_playing:
            t += (now - sample.capture_wall_clock_ms) / 1000
        t += tn.word_sync_offset_s if self._granularity == SyncGranularity.WORD else tn.line_sync_offset_s
        scroll_t = t + tn.scroll_lead_offset_s
        lookahead = tn.animation_lookahead_s if sample.is_playing else 0.0

        target = -1
        first_active = -1
        available_s = 999.0
        phases: list[LinePhase] = []
        reanchored: list[int] = []

        for i, line in enumerate(lines):
            start = line.start_ms / 1000
            end = start + line.duration_ms / 1000
            nxt = lines[i + 1].start_ms / 1000 if i + 1 < len(lines) else math.inf

            if scroll_t >= start and (scroll_t < nxt or scroll_t < end):
                target = i
                available_s = nxt - scroll_t
                # a sliver of overlap with the next line is not worth a scroll
                significant = scroll_t < nxt - tn.micro_scroll_threshold_s or scroll_t < end - tn.micro_scroll_threshold_s
                if first_active < 0 and (significant or self._last_first_active == i):
                    first_active = i
                    self._last_first_active = i
                self._scroll_line = i

            anim = self._anims[i]
            if t + lookahead >= start and (t < nxt or t < end + tn.line_end_grace_s):
                if self._animate(i, line, anim, t, now, sample.is_playing):
                    reanchored.append(i)
                phases.append(self._phase(i, line, anim, now))
            elif anim.selected:
                anim.selected = False
                anim.animating = False
                anim.anchor_ms = None
                anim.part_anchors_ms = []

        if self._last_first_active == self._scroll_line:
            # the scroll line itself is not a "first active" candidate
            self._last_first_active = -1

        scroll_target, scroll_ms = self._scroll(target, first_active, available_s, now)
        self._decay_self_scrolls(now)

        return TickResult(
            state=self.state,
            active_line_index=self._scroll_line,
            first_active_line_index=first_active,
            phases=tuple(phases),
            scroll_target_px=scroll_target,
            scroll_duration_ms=scroll_ms,
            reanchored=tuple(reanchored),
        )

    def _animate(self, index: int, line: LyricLine, anim: _LineAnimation, t: float, now: float, playing: bool) -> bool:
        tn = self.tuning
        anim.selected = True
        since_start = t - line.start_ms / 1000
        reanchored = False

        if anim.animating and anim.anchor_ms is not None:
            error_s = (now - anim.anchor_ms) / 1000 - since_start
            anim.accumulated_offset_ms = anim.accumulated_offset_ms / tn.drift_decay + error_s * 1000 * tn.drift_gain
            if abs(anim.accumulated_offset_ms) > tn.drift_reset_ms and playing:
                logger.debug(
                    "Line %d animation drifted %.1fms, re-anchoring", index, anim.accumulated_offset_ms
                )
                anim.animating = False
                reanchored = True
                self.reanchor_count += 1

        if not anim.animating:
            anim.anchor_ms = now - since_start * 1000
            anim.part_anchors_ms = [now - (t - p.start_ms / 1000) * 1000 for p in line.all_timed_parts()]
            anim.animating = True
            anim.accumulated_offset_ms = 0.0

        if playing != anim.playing:
            anim.playing = playing
            if not playing:
                anim.selected = False
        return reanchored

    def _phase(self, index: int, line: LyricLine, anim: _LineAnimation, now: float) -> LinePhase:
        parts = list(line.all_timed_parts())
        return LinePhase(
            line_index=index,
            part_progress=tuple(
                _progress(anchor, p.duration_ms, now) for anchor, p in zip(anim.part_anchors_ms, parts)
            ),
        )

    def _scroll(self, target: int, first_active: int, available_s: float, now: float) -> tuple[float | None, float | None]:
        tn = self.tuning
        layout = self.layout
        if layout is None:
            return None, None

        if not (self._scroll_resume_ms < now or self._scroll_pos == -1):
            self._suspended = True
            return None, None
        self._suspended = False

        if 0 <= target < len(layout.line_tops):
            target_top = layout.line_tops[target]
            height = layout.line_heights[target]
        else:
            target_top = 0.0
            height = 0.0
        first_top = layout.line_tops[first_active] if 0 <= first_active < len(layout.line_tops) else 0.0
        if first_top <= 0:
            first_top = target_top

        pos = target_top - (layout.viewport_height * tn.scroll_anchor_fraction - height / 2)
        # keep the first active line and the whole target line on screen
        pos = min(pos, first_top)
        pos = max(pos, target_top - layout.viewport_height + height)
        pos = min(pos, target_top)
        pos = max(0.0, pos)

        if abs(self.scroll_top - pos) <= tn.scroll_threshold_px or now <= self._next_scroll_allowed_ms:
            return None, None

        scroll_ms = min(tn.transition_ms, available_s * 1000 - tn.scroll_margin_ms)
        scroll_ms = max(scroll_ms, tn.min_scroll_ms)
        self._next_scroll_allowed_ms = now + scroll_ms + tn.scroll_cooldown_pad_ms

        self.scroll_top = pos
        self._scroll_pos = pos
        self._self_scrolls += 1
        self._self_scroll_decay.append(now + tn.self_scroll_window_ms)
        return pos, scroll_ms

    def _decay_self_scrolls(self, now: float) -> None:
        expired = 0
        for deadline in self._self_scroll_decay:
            if deadline > now:
                break
            expired += 1
        del self._self_scroll_decay[:expired]
        # always keep one for when the window regains focus
        self._self_scrolls = max(self._self_scrolls - expired, 1)

    @staticmethod
    def _now(now_ms: float | None) -> float:
        return now_ms if now_ms is not None else time.time() * 1000
