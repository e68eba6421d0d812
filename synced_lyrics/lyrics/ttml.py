"""
Timed-Text (TTML) lyrics documents as served by the bLyrics API.

Shape of a word-synced document (namespaces omitted)::

    <tt xml:lang="ja">
      <head><metadata><iTunesMetadata>
        <translations><translation xml:lang="en"><text for="L1">...</text></translation></translations>
        <transliterations><transliteration><text for="L1"><span begin=".." end="..">ko</span>...</text>
        </transliteration></transliterations>
      </iTunesMetadata></metadata></head>
      <body><div><p begin=".." end=".." agent="v1">
        <span begin=".." end="..">Word</span> <span role="x-bg"><span begin=".." end="..">(bg)</span></span>
      </p></div></body>
    </tt>

A <p> holding bare text is line-synced; a <p> holding timed <span>s is word-synced.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator
from xml.etree import ElementTree as ET

from synced_lyrics.errors import LyricsParseError

from .lrc import parse_clock_ms
from .model import LineTranslation, LyricLine, LyricPart, LyricsDocument

logger = logging.getLogger(__name__)

BACKGROUND_ROLE = "x-bg"


def _local(name: str) -> str:
    return name.rsplit("}", 1)[-1]


def _attr(el: ET.Element, name: str) -> str | None:
    for k, v in el.attrib.items():
        if _local(k) == name:
            return v
    return None


def _children(el: ET.Element, name: str) -> list[ET.Element]:
    return [c for c in el if _local(c.tag) == name]


def _find(el: ET.Element | None, *path: str) -> ET.Element | None:
    for name in path:
        if el is None:
            return None
        found = _children(el, name)
        el = found[0] if found else None
    return el


def _nodes(el: ET.Element) -> Iterator[str | ET.Element]:
    """Children of `el` in document order, text runs included."""
    if el.text:
        yield el.text
    for child in el:
        yield child
        if child.tail:
            yield child.tail


@dataclass(slots=True)
class _RawPart:
    text: str
    is_background: bool
    start_ms: int | None = None  # None for text runs between spans
    end_ms: int | None = None


@dataclass(slots=True)
class _PartParse:
    parts: list[LyricPart]
    text: str
    is_word_synced: bool


def _end_ms(el: ET.Element, begin_ms: int) -> int | None:
    """`end`, else `begin + dur`, else None."""
    end = _attr(el, "end")
    if end:
        return parse_clock_ms(end)
    dur = _attr(el, "dur")
    if dur:
        return begin_ms + parse_clock_ms(dur)
    return None


def _parse_parts(container: ET.Element, begin_ms: int, end_ms: int) -> _PartParse:
    """
    Spans without an end run until the next span starts, the last one until
    `end_ms`. Text runs between spans start where the previous part ends.
    """
    text = ""
    raw: list[_RawPart] = []

    for node in _nodes(container):
        background = False
        local: list[str | ET.Element] = [node]
        if isinstance(node, ET.Element) and _attr(node, "role") == BACKGROUND_ROLE:
            # background vocals sit one span deeper
            background = True
            local = list(_nodes(node))

        for sub in local:
            if isinstance(sub, str):
                if "\n" in sub and not sub.strip():
                    # pretty-printing, not lyric whitespace
                    continue
                text += sub
                raw.append(_RawPart(text=sub, is_background=background))
            elif _local(sub.tag) == "span":
                span_text = "".join(sub.itertext())
                start = parse_clock_ms(_attr(sub, "begin"))
                raw.append(_RawPart(span_text, background, start, _end_ms(sub, start)))
                text += span_text

    spans = [r for r in raw if r.start_ms is not None]
    if not spans:
        return _PartParse(parts=[], text=text, is_word_synced=False)

    for i, span in enumerate(spans):
        if span.end_ms is None:
            span.end_ms = spans[i + 1].start_ms if i + 1 < len(spans) else end_ms

    parts: list[LyricPart] = []
    cursor = begin_ms
    for r in raw:
        if r.start_ms is None:
            parts.append(LyricPart(start_ms=cursor, duration_ms=0, text=r.text, is_background=r.is_background))
            continue
        part = LyricPart(
            start_ms=r.start_ms,
            duration_ms=max((r.end_ms or 0) - r.start_ms, 0),
            text=r.text,
            is_background=r.is_background,
        )
        parts.append(part)
        cursor = part.end_ms
    return _PartParse(parts=parts, text=text, is_word_synced=True)


def _line_index(label: str | None, count: int) -> int | None:
    if not label or not label.startswith("L"):
        return None
    try:
        idx = int(label[1:]) - 1
    except ValueError:
        return None
    return idx if 0 <= idx < count else None


def parse_ttml(xml_text: str, song_duration_ms: int = 0) -> LyricsDocument:
    """
    A <p> without `end` or `dur` lasts until the next <p> begins; the last
    one lasts until `song_duration_ms`.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise LyricsParseError(f"Invalid TTML: {e}") from e
    if _local(root.tag) != "tt":
        raise LyricsParseError(f"Expected <tt> root, got <{_local(root.tag)}>")

    body = _find(root, "body")
    if body is None:
        raise LyricsParseError("TTML has no <body>")

    paragraphs = [p for div in _children(body, "div") for p in _children(div, "p")]
    begins = [parse_clock_ms(_attr(p, "begin")) for p in paragraphs]

    lines: list[LyricLine] = []
    for i, p in enumerate(paragraphs):
        begin = begins[i]
        end = _end_ms(p, begin)
        inferred = end is None
        if inferred:
            end = begins[i + 1] if i + 1 < len(begins) else song_duration_ms
        end = max(end, begin)

        parsed = _parse_parts(p, begin, end)
        if inferred and parsed.parts:
            # cover words that start after the next line
            end = max([end] + [part.start_ms for part in parsed.parts])
        lines.append(
            LyricLine(
                start_ms=begin,
                duration_ms=end - begin,
                text=parsed.text,
                parts=parsed.parts,
                voice_agent=_attr(p, "agent"),
            )
        )

    meta = _find(root, "head", "metadata", "iTunesMetadata")
    if meta is not None:
        _attach_translations(meta, lines)
        _attach_transliterations(meta, lines)

    language = _attr(root, "lang") or _attr(body, "lang")
    return LyricsDocument(lines=lines, language=language)


def _attach_translations(meta: ET.Element, lines: list[LyricLine]) -> None:
    container = _find(meta, "translations", "translation")
    if container is None:
        return
    lang = _attr(container, "lang")
    for item in _children(container, "text"):
        text = "".join(item.itertext())
        idx = _line_index(_attr(item, "for"), len(lines))
        if lang and text and idx is not None:
            lines[idx].translation = LineTranslation(text=text, lang=lang)


def _attach_transliterations(meta: ET.Element, lines: list[LyricLine]) -> None:
    container = _find(meta, "transliterations", "transliteration")
    if container is None:
        return
    for item in _children(container, "text"):
        idx = _line_index(_attr(item, "for"), len(lines))
        if idx is None:
            continue
        parsed = _parse_parts(item, lines[idx].start_ms, lines[idx].end_ms)
        lines[idx].romanization = parsed.text
        lines[idx].timed_romanization = parsed.parts
