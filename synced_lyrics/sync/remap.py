"""
Move lyric timestamps between two edits of the same song.

A SegmentMap pairs stretches of the "counterpart" timeline (the one the
lyrics were timed against) with stretches of the "primary" timeline (the one
playing). Every line is shifted by the offset of the last segment that
starts at or before it; the line's parts move with it, durations untouched.
"""

from __future__ import annotations

import logging

from synced_lyrics.lyrics.model import LyricLine, LyricsDocument, SegmentMap, SyncGranularity

logger = logging.getLogger(__name__)


def shift_for(t_ms: int, seg_map: SegmentMap) -> int:
    shift = 0
    for seg in seg_map.segments:
        if t_ms >= seg.counterpart_start_ms:
            shift = seg.primary_start_ms - seg.counterpart_start_ms
            if t_ms <= seg.counterpart_start_ms + seg.duration_ms:
                break
    return shift


def remap_time(t_ms: int, seg_map: SegmentMap) -> int:
    return t_ms + shift_for(t_ms, seg_map)


def _shift_line(line: LyricLine, shift: int) -> None:
    line.start_ms += shift
    for part in line.parts:
        part.start_ms += shift
    for part in line.timed_romanization or ():
        part.start_ms += shift


def remap_document(doc: LyricsDocument, seg_map: SegmentMap | None) -> bool:
    """
    Shift `doc` in place. Returns False (and leaves `doc` alone) for an empty
    map or an untimed document.
    """
    if seg_map is None or not seg_map.segments:
        return False
    if doc.sync_granularity == SyncGranularity.NONE:
        return False

    logger.debug("Applying segment map with %d segments", len(seg_map.segments))
    for line in doc.lines:
        _shift_line(line, shift_for(line.start_ms, seg_map))
    return True
