from __future__ import annotations

import json

from .model import LyricLine, LyricsDocument, SyncGranularity


def _part_json(p) -> dict:
    out = {"start_ms": p.start_ms, "duration_ms": p.duration_ms, "text": p.text}
    if p.is_background:
        out["background"] = True
    return out


def _line_json(ln: LyricLine) -> dict:
    out: dict = {
        "start_ms": ln.start_ms,
        "duration_ms": ln.duration_ms,
        "text": ln.text,
        "parts": [_part_json(p) for p in ln.parts],
    }
    if ln.voice_agent:
        out["agent"] = ln.voice_agent
    if ln.translation:
        out["translation"] = {"text": ln.translation.text, "lang": ln.translation.lang}
    if ln.romanization:
        out["romanization"] = ln.romanization
    if ln.timed_romanization:
        out["timed_romanization"] = [_part_json(p) for p in ln.timed_romanization]
    return out


def export_json(doc: LyricsDocument) -> str:
    return json.dumps(
        {
            "language": doc.language,
            "sync": doc.sync_granularity.value,
            "lines": [_line_json(ln) for ln in doc.lines],
        },
        ensure_ascii=False,
        indent=2,
    )


def _fmt_lrc_time(ms: int) -> str:
    m, rem = divmod(max(ms, 0), 60_000)
    s, ms2 = divmod(rem, 1_000)
    # keep 2 decimals for compatibility
    return f"{m:02d}:{s:02d}.{ms2 // 10:02d}"


def export_lrc(doc: LyricsDocument, tags: dict[str, str] | None = None) -> str:
    """
    Line-synced LRC; word-synced documents get enhanced-LRC <mm:ss.xx> tags.
    """
    tags = tags or {}
    out: list[str] = [f"[{k}:{tags[k]}]" for k in sorted(tags)]

    words = doc.sync_granularity == SyncGranularity.WORD
    for ln in doc.lines:
        if words and ln.is_word_timed:
            body = "".join(f"<{_fmt_lrc_time(p.start_ms)}>{p.text}" for p in ln.parts)
        else:
            body = ln.text
        out.append(f"[{_fmt_lrc_time(ln.start_ms)}]{body}")
    return "\n".join(out) + ("\n" if out else "")


def _fmt_srt_time(ms: int) -> str:
    # HH:MM:SS,mmm
    h, rem = divmod(max(ms, 0), 3_600_000)
    m, rem = divmod(rem, 60_000)
    s, ms2 = divmod(rem, 1_000)
    return f"{h:02d}:{m:02d}:{s:02d},{ms2:03d}"


def export_srt(doc: LyricsDocument, last_line_duration_ms: int = 2000) -> str:
    """
    A cue ends where its line ends; a line without a duration ends at the
    next line, and the last one at +last_line_duration_ms.
    """
    lines = doc.lines
    if not lines:
        return ""
    out: list[str] = []
    for i, ln in enumerate(lines, start=1):
        start = ln.start_ms
        if ln.duration_ms > 0:
            end = ln.end_ms
        elif i < len(lines):
            end = max(lines[i].start_ms, start + 1)
        else:
            end = start + last_line_duration_ms
        out.append(str(i))
        out.append(f"{_fmt_srt_time(start)} --> {_fmt_srt_time(end)}")
        out.append(ln.text or "")
        out.append("")
    return "\n".join(out)
