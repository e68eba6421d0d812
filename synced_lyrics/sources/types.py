from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Protocol

from synced_lyrics.lyrics.model import SegmentMap


@dataclass(frozen=True, slots=True)
class CaptionTrack:
    language_code: str
    display_name: str
    url: str

    @property
    def is_auto_generated(self) -> bool:
        return "auto-generated" in self.display_name


@dataclass(frozen=True, slots=True)
class TrackQuery:
    song: str
    artist: str
    duration_s: float
    media_id: str = ""
    album: str = ""
    caption_tracks: tuple[CaptionTrack, ...] = field(default_factory=tuple)
    # ask the metadata provider for corrections even when it has lyrics cached
    always_fetch_metadata: bool = False

    @property
    def display(self) -> str:
        if self.artist and self.song:
            return f"{self.artist} - {self.song}"
        return self.song or self.artist or "Unknown track"

    def normalized(self) -> "TrackQuery":
        return replace(
            self,
            song=self.song.strip(),
            artist=self.artist.strip().replace(", & ", ", "),
        )

    def corrected(
        self,
        *,
        song: str | None = None,
        artist: str | None = None,
        album: str | None = None,
        duration_s: float | None = None,
    ) -> "TrackQuery":
        """Copy with every non-empty value that differs from the current one applied."""
        changes: dict[str, object] = {}
        if album and album != self.album:
            changes["album"] = album
        if song and song != self.song:
            changes["song"] = song
        if artist and artist != self.artist:
            changes["artist"] = artist
        if duration_s and duration_s != self.duration_s:
            changes["duration_s"] = duration_s
        return replace(self, **changes) if changes else self


@dataclass(frozen=True, slots=True)
class HostLyrics:
    lyrics: str
    source_text: str = ""


@dataclass(frozen=True, slots=True)
class MatchingSong:
    counterpart_id: str | None
    segment_map: SegmentMap | None


class HostPlayer(Protocol):
    """What the host player integration can tell us about a media item."""

    def lyrics_for(self, media_id: str) -> HostLyrics | None: ...

    def matching_song(self, media_id: str) -> MatchingSong | None: ...

    def album_for(self, media_id: str) -> str | None: ...
