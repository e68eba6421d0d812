from __future__ import annotations

import logging
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from synced_lyrics.errors import ProviderError
from synced_lyrics.lyrics.lrc import parse_plain_lyrics
from synced_lyrics.lyrics.model import LyricLine, ProviderResult
from synced_lyrics.lyrics.text import strip_music_notes

from .base import CancellationToken, LyricsSource, SlotFill, get_json
from .types import CaptionTrack, HostPlayer, TrackQuery

logger = logging.getLogger(__name__)

CAPTIONS = "yt-captions"
HOST_LYRICS = "yt-lyrics"


def pick_caption_track(tracks: tuple[CaptionTrack, ...]) -> CaptionTrack | None:
    """
    The language comes from the only track, or else from the auto-generated
    one; only a hand-made track in that language is usable.
    """
    if not tracks:
        return None

    lang: str | None = None
    if len(tracks) == 1:
        lang = tracks[0].language_code
    else:
        for track in tracks:
            if track.is_auto_generated:
                lang = track.language_code
                break
    if lang is None:
        logger.debug("Found caption tracks but couldn't determine the default language")
        return None

    for track in tracks:
        if not track.is_auto_generated and track.language_code == lang:
            return track
    logger.debug("Only auto-generated captions available, not using them")
    return None


def _with_json3(url: str) -> str:
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "fmt"]
    query.append(("fmt", "json3"))
    return urlunsplit(parts._replace(query=urlencode(query)))


def caption_lines(payload: dict) -> list[LyricLine]:
    lines: list[LyricLine] = []
    for event in payload.get("events") or []:
        segs = event.get("segs")
        if not segs:
            continue
        words = "".join(seg.get("utf8", "") for seg in segs).replace("\n", " ")
        lines.append(
            LyricLine(
                start_ms=int(event.get("tStartMs") or 0),
                duration_ms=int(event.get("dDurationMs") or 0),
                text=strip_music_notes(words),
            )
        )

    # captions written in all caps read better in sentence case
    if lines and all(ln.text.upper() == ln.text for ln in lines):
        for ln in lines:
            ln.text = ln.text[:1].upper() + ln.text[1:].lower()
    return lines


class YouTubeCaptionsSource(LyricsSource):
    name = "yt-captions"
    slots = (CAPTIONS,)

    def __init__(self, *, timeout_s: float):
        self.timeout_s = timeout_s

    def fetch(self, query: TrackQuery, token: CancellationToken) -> SlotFill:
        track = pick_caption_track(query.caption_tracks)
        if track is None:
            return {CAPTIONS: None}

        try:
            data = get_json(_with_json3(track.url), token=token, timeout_s=self.timeout_s)
        except ProviderError as e:
            logger.warning("caption download failed: %s", e)
            return {CAPTIONS: None}
        if not isinstance(data, dict):
            return {CAPTIONS: None}

        return {
            CAPTIONS: ProviderResult(
                lines=caption_lines(data),
                source_label="Youtube Captions",
                source_link="",
                language=track.language_code,
                is_video_timeline=True,
            )
        }


class HostLyricsSource(LyricsSource):
    """Plain lyrics the host player already shows; fast, untimed, never cached."""

    name = "yt-lyrics"
    slots = (HOST_LYRICS,)

    def __init__(self, host: HostPlayer):
        self.host = host

    def fetch(self, query: TrackQuery, token: CancellationToken) -> SlotFill:
        token.raise_if_cancelled()
        found = self.host.lyrics_for(query.media_id)
        if found is None or not found.lyrics:
            return {HOST_LYRICS: None}

        label = found.source_text.removeprefix("Source: ").strip()
        return {
            HOST_LYRICS: ProviderResult(
                lines=parse_plain_lyrics(found.lyrics).lines,
                source_label=f"{label} (via YT)" if label else "YouTube Music",
                source_link="",
                cacheable=False,
                text=found.lyrics,
            )
        }
