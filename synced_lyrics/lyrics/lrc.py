from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from synced_lyrics.config import TimingTuning
from synced_lyrics.errors import LyricsParseError

from .model import LyricLine, LyricPart, LyricsDocument

logger = logging.getLogger(__name__)

_TS_RE = re.compile(r"\[(\d+):(\d{1,2})(?:[.:](\d{1,3}))?\]")  # [mm:ss] / [mm:ss.xx] / [mm:ss.xxx]
_WORD_TS_RE = re.compile(r"<(\d+:\d{1,2}(?:[.:]\d{1,3})?)>")  # <mm:ss.xx>
_OFFSET_RE = re.compile(r"^\[offset:\s*([+-]?\d+)\s*\]$", re.IGNORECASE)
_TAG_RE = re.compile(r"^\[([a-zA-Z#]{1,8}):(.*)\]$")


@dataclass(frozen=True, slots=True)
class LrcParseStats:
    lines_total: int
    lines_with_timestamps: int
    lines_ignored: int
    offset_ms: int
    tags: dict[str, str]


def _ts_to_ms(m: str, s: str, frac: str | None) -> int:
    sec = int(s)
    if not (0 <= sec <= 59):
        raise LyricsParseError(f"Invalid seconds: {sec}")
    # "2" -> 200ms, "23" -> 230ms, "234" -> 234ms
    ms = int(frac.ljust(3, "0")[:3]) if frac else 0
    return (int(m) * 60 + sec) * 1000 + ms


def parse_clock_ms(value: str | float | int | None) -> int:
    """
    Parse "hh:mm:ss.mmm", "mm:ss.xx", "ss.mmm" or "12.5s" into milliseconds.
    Unparseable values yield 0.
    """
    if value is None or value == "":
        return 0
    if isinstance(value, (int, float)):
        return round(value)

    raw = value.strip()
    if raw.endswith("ms"):
        try:
            return round(float(raw[:-2]))
        except ValueError:
            return 0
    if raw.endswith("s"):
        raw = raw[:-1]

    total = 0.0
    try:
        for piece in raw.split(":"):
            total = total * 60 + float(piece)
    except ValueError:
        logger.debug("Unparseable time value %r", value)
        return 0
    return round(total * 1000)


def _split_words(payload: str, line_start_ms: int) -> list[LyricPart]:
    """
    Split an enhanced-LRC payload on <mm:ss.xx> tokens.

    Every token opens a part; its duration runs until the next token. The
    last part's duration is left at 0 for the caller to backfill.
    """
    fragments = _WORD_TS_RE.split(payload)
    if len(fragments) == 1:
        return []

    parts: list[LyricPart] = []
    leading = fragments[0]
    if leading.strip():
        parts.append(LyricPart(start_ms=line_start_ms, duration_ms=0, text=leading))

    for i in range(1, len(fragments), 2):
        start = parse_clock_ms(fragments[i])
        if parts:
            prev = parts[-1]
            prev.duration_ms = max(start - prev.start_ms, 0)
        parts.append(LyricPart(start_ms=start, duration_ms=0, text=fragments[i + 1]))
    return parts


def _shift(parts: list[LyricPart], delta_ms: int) -> list[LyricPart]:
    return [
        LyricPart(
            start_ms=max(p.start_ms + delta_ms, 0),
            duration_ms=p.duration_ms,
            text=p.text,
            is_background=p.is_background,
        )
        for p in parts
    ]


def parse_lrc_with_stats(text: str, song_duration_ms: int) -> tuple[LyricsDocument, LrcParseStats]:
    """
    Supported:
    - [mm:ss], [mm:ss.xx], [mm:ss.xxx], multiple timestamps per line
    - inline word timestamps <mm:ss.xx> (enhanced LRC)
    - [offset:+/-ms] and id tags: [ar:], [ti:], [al:], ...

    Result is normalized:
    - one line per line timestamp, sorted by start
    - duplicate (start, text) removed
    - missing durations backfilled from the next line or the song duration
    """
    offset_ms = 0
    tags: dict[str, str] = {}
    lines: list[LyricLine] = []

    total = 0
    lines_with_ts = 0
    ignored = 0

    for raw in text.splitlines():
        total += 1
        line = raw.strip()
        if not line:
            ignored += 1
            continue

        off = _OFFSET_RE.match(line)
        if off:
            offset_ms = int(off.group(1))
            continue

        tag = _TAG_RE.match(line)
        if tag and not _TS_RE.search(line):
            k = tag.group(1).strip().lower()
            v = tag.group(2).strip()
            if k and v:
                tags[k] = v
            continue

        try:
            stamps = [_ts_to_ms(*m.groups()) for m in _TS_RE.finditer(line)]
        except LyricsParseError as e:
            logger.debug("Skipping malformed line %r: %s", line, e)
            ignored += 1
            continue
        if not stamps:
            ignored += 1
            continue

        lines_with_ts += 1
        payload = _TS_RE.sub("", line).strip()
        first = min(stamps)
        parts = _split_words(payload, first)
        plain = "".join(p.text for p in parts).strip() if parts else payload

        for stamp in stamps:
            lines.append(
                LyricLine(
                    start_ms=stamp,
                    duration_ms=0,
                    text=plain,
                    parts=_shift(parts, stamp - first) if stamp != first else parts,
                )
            )

    lines.sort(key=lambda ln: ln.start_ms)
    dedup: list[LyricLine] = []
    prev: tuple[int, str] | None = None
    for ln in lines:
        key = (ln.start_ms, ln.text)
        if key != prev:
            dedup.append(ln)
            prev = key

    if offset_ms:
        for ln in dedup:
            ln.start_ms = max(ln.start_ms + offset_ms, 0)
            for p in ln.parts:
                p.start_ms = max(p.start_ms + offset_ms, 0)

    _backfill_durations(dedup, song_duration_ms)

    doc = LyricsDocument(lines=dedup)
    stats = LrcParseStats(
        lines_total=total,
        lines_with_timestamps=lines_with_ts,
        lines_ignored=ignored,
        offset_ms=offset_ms,
        tags=tags,
    )
    return doc, stats


def parse_lrc(text: str, song_duration_ms: int, *, repair: TimingTuning | None = None) -> LyricsDocument:
    doc, _stats = parse_lrc_with_stats(text, song_duration_ms)
    if repair is not None:
        repair_timings(doc.lines, repair)
    return doc


def _backfill_durations(lines: list[LyricLine], song_duration_ms: int) -> None:
    for i, ln in enumerate(lines):
        if i + 1 < len(lines):
            nxt = lines[i + 1]
            end = nxt.start_ms
            if ln.parts:
                last = ln.parts[-1]
                last.duration_ms = max(nxt.start_ms - last.start_ms, 0)
                end = max([end] + [p.start_ms for p in ln.parts])
        else:
            end = max(song_duration_ms, ln.start_ms)
            if ln.parts:
                last = ln.parts[-1]
                last.duration_ms = max(song_duration_ms - last.start_ms, 0)
        ln.duration_ms = max(end - ln.start_ms, 0)

        if not ln.parts:
            # line-only timing: one part spanning the whole line
            ln.parts = [LyricPart(start_ms=ln.start_ms, duration_ms=ln.duration_ms, text=ln.text)]


def absorb_space_durations(lines: list[LyricLine], tuning: TimingTuning) -> int:
    """
    Fold the duration of a whitespace part into the word before it when the
    two are about as long, or when the gap is short. Returns the fold count.
    """
    folded = 0
    for ln in lines:
        for i in range(1, len(ln.parts)):
            this = ln.parts[i]
            prev = ln.parts[i - 1]
            if not this.is_whitespace or prev.is_whitespace:
                continue
            delta = this.duration_ms - prev.duration_ms
            if abs(delta) <= tuning.space_absorb_delta_ms or this.duration_ms <= tuning.space_absorb_max_ms:
                change = this.duration_ms
                prev.duration_ms += change
                this.duration_ms -= change
                this.start_ms += change
                folded += 1
    return folded


def _mostly_short(lines: list[LyricLine], tuning: TimingTuning) -> bool:
    short = 0
    counted = 0
    for ln in lines:
        # the last two parts of a line don't say anything about the rest
        for part in ln.parts[: max(len(ln.parts) - 2, 0)]:
            if part.is_whitespace:
                continue
            if part.duration_ms <= tuning.short_part_ms:
                short += 1
            counted += 1
    return counted > 0 and short / counted > tuning.short_part_ratio


def stretch_short_durations(lines: list[LyricLine], tuning: TimingTuning) -> bool:
    """
    When most words are suspiciously short, stretch every short word up to
    the next word's start. Returns True if the stretch was applied.
    """
    if not _mostly_short(lines, tuning):
        return False

    logger.info("Found a lot of short duration lyrics, stretching durations")
    for i, ln in enumerate(lines):
        for j, part in enumerate(ln.parts):
            if part.is_whitespace or part.duration_ms > tuning.stretch_limit_ms:
                continue

            if j + 1 < len(ln.parts):
                nxt: LyricPart | None = ln.parts[j + 1]
            elif i + 1 < len(lines) and lines[i + 1].parts:
                nxt = lines[i + 1].parts[0]
            else:
                nxt = None

            if nxt is None:
                part.duration_ms = tuning.trailing_floor_ms
            elif nxt.is_whitespace:
                part.duration_ms += nxt.duration_ms
                nxt.start_ms += nxt.duration_ms
                nxt.duration_ms = 0
            else:
                part.duration_ms = max(nxt.start_ms - part.start_ms, 0)
    return True


def repair_timings(lines: list[LyricLine], tuning: TimingTuning | None = None) -> bool:
    """Absorption runs to completion before the short-duration stretch."""
    tuning = tuning or TimingTuning()
    absorb_space_durations(lines, tuning)
    return stretch_short_durations(lines, tuning)


def parse_plain_lyrics(text: str) -> LyricsDocument:
    return LyricsDocument(
        lines=[LyricLine(start_ms=0, duration_ms=0, text=words) for words in text.split("\n")]
    )
