from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable


class SyncGranularity(str, Enum):
    NONE = "none"
    LINE = "line"
    WORD = "word"


@dataclass(slots=True)
class LyricPart:
    start_ms: int
    duration_ms: int
    text: str
    is_background: bool = False

    @property
    def end_ms(self) -> int:
        return self.start_ms + self.duration_ms

    @property
    def is_whitespace(self) -> bool:
        # "" is a word placeholder, not a gap
        return bool(self.text) and self.text.isspace()


@dataclass(frozen=True, slots=True)
class LineTranslation:
    text: str
    lang: str


@dataclass(slots=True)
class LyricLine:
    start_ms: int
    duration_ms: int
    text: str
    parts: list[LyricPart] = field(default_factory=list)
    voice_agent: str | None = None
    translation: LineTranslation | None = None
    romanization: str | None = None
    timed_romanization: list[LyricPart] | None = None

    @property
    def end_ms(self) -> int:
        return self.start_ms + self.duration_ms

    @property
    def is_word_timed(self) -> bool:
        """
        True when the parts carry timing of their own.

        A single part covering exactly the line window is the line-only
        fallback and does not count.
        """
        if not self.parts:
            return False
        if len(self.parts) == 1:
            p = self.parts[0]
            if p.start_ms == self.start_ms and p.duration_ms == self.duration_ms:
                return False
        return any(p.duration_ms != 0 for p in self.parts)

    def all_timed_parts(self) -> Iterable[LyricPart]:
        yield from self.parts
        if self.timed_romanization:
            yield from self.timed_romanization


@dataclass(slots=True)
class LyricsDocument:
    lines: list[LyricLine]
    language: str | None = None

    @property
    def sync_granularity(self) -> SyncGranularity:
        if not self.lines or all(line.start_ms == 0 for line in self.lines):
            return SyncGranularity.NONE
        if any(line.is_word_timed for line in self.lines):
            return SyncGranularity.WORD
        return SyncGranularity.LINE

    @property
    def text(self) -> str:
        return "".join(line.text + "\n" for line in self.lines)


@dataclass(frozen=True, slots=True)
class ProviderResult:
    lines: list[LyricLine] | None
    source_label: str
    source_link: str
    language: str | None = None
    is_video_timeline: bool = False
    cacheable: bool = True
    # Metadata corrections (only the metadata provider fills these)
    song: str | None = None
    artist: str | None = None
    album: str | None = None
    duration_s: float | None = None
    # Raw text of a plain-text reference source
    text: str | None = None

    @property
    def has_lines(self) -> bool:
        return bool(self.lines)


@dataclass(frozen=True, slots=True)
class Segment:
    primary_start_ms: int
    counterpart_start_ms: int
    duration_ms: int


@dataclass(frozen=True, slots=True)
class SegmentMap:
    segments: tuple[Segment, ...]
    reversed: bool = False

    def inverse(self) -> "SegmentMap":
        swapped = [
            Segment(
                primary_start_ms=s.counterpart_start_ms,
                counterpart_start_ms=s.primary_start_ms,
                duration_ms=s.duration_ms,
            )
            for s in self.segments
        ]
        # lookups scan in counterpart order
        swapped.sort(key=lambda s: s.counterpart_start_ms)
        return SegmentMap(segments=tuple(swapped), reversed=not self.reversed)

    @classmethod
    def from_payload(cls, payload: dict[str, Any] | None) -> "SegmentMap":
        """
        Accepts the host's `{"segment": [{primaryVideoStartTimeMilliseconds, ...}]}`
        shape; values may arrive as strings. Malformed entries are skipped.
        """
        out: list[Segment] = []
        for raw in (payload or {}).get("segment") or []:
            try:
                out.append(
                    Segment(
                        primary_start_ms=int(float(raw["primaryVideoStartTimeMilliseconds"])),
                        counterpart_start_ms=int(float(raw["counterpartVideoStartTimeMilliseconds"])),
                        duration_ms=int(float(raw["durationMilliseconds"])),
                    )
                )
            except (KeyError, TypeError, ValueError):
                continue
        return cls(segments=tuple(out))


@dataclass(frozen=True, slots=True)
class PlaybackSample:
    position_s: float
    capture_wall_clock_ms: int
    is_playing: bool
