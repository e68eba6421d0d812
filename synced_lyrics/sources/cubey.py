from __future__ import annotations

import logging

from synced_lyrics.config import TimingTuning
from synced_lyrics.errors import ProviderError
from synced_lyrics.lyrics.lrc import parse_lrc, parse_plain_lyrics
from synced_lyrics.lyrics.model import ProviderResult

from .base import CancellationToken, LyricsSource, SlotFill, get_json
from .types import TrackQuery

logger = logging.getLogger(__name__)

MUSIXMATCH_RICHSYNC = "musixmatch-richsync"
MUSIXMATCH_SYNCED = "musixmatch-synced"
LRCLIB_SYNCED = "lrclib-synced"
LRCLIB_PLAIN = "lrclib-plain"

_MUSIXMATCH = ("Musixmatch", "https://www.musixmatch.com")
_LRCLIB = ("LRCLib", "https://lrclib.net")


class CubeySource(LyricsSource):
    """
    Aggregating lyrics API that also returns corrected track metadata.

    The metadata rides on the `musixmatch-richsync` result even when that
    result has no lines. LRCLib payloads are handed over only when present,
    so the stand-alone LRCLib source still gets a chance otherwise.
    """

    name = "cubey"
    slots = (MUSIXMATCH_RICHSYNC, MUSIXMATCH_SYNCED)

    def __init__(self, *, url: str, bearer_token: str | None, timeout_s: float, timing: TimingTuning):
        self.url = url.rstrip("/") + "/lyrics"
        self.bearer_token = bearer_token
        self.timeout_s = timeout_s
        self.timing = timing

    def fetch(self, query: TrackQuery, token: CancellationToken) -> SlotFill:
        empty: SlotFill = {MUSIXMATCH_RICHSYNC: None, MUSIXMATCH_SYNCED: None}
        if not self.bearer_token:
            logger.debug("No cubey token configured, skipping")
            return empty

        params = {
            "song": query.song,
            "artist": query.artist,
            "duration": str(query.duration_s),
            "videoId": query.media_id,
            "alwaysFetchMetadata": str(query.always_fetch_metadata).lower(),
        }
        if query.album:
            params["album"] = query.album

        try:
            data = get_json(
                self.url,
                token=token,
                timeout_s=self.timeout_s,
                params=params,
                headers={"Authorization": f"Bearer {self.bearer_token}"},
            )
        except ProviderError as e:
            if e.status_code == 403:
                logger.warning("cubey refused the token (403); check SYNCED_LYRICS_CUBEY_TOKEN")
            else:
                logger.warning("cubey request failed: %s", e)
            return empty
        if not isinstance(data, dict):
            logger.warning("cubey returned %s instead of an object", type(data).__name__)
            return empty

        return self._slots_from(data, query)

    def _slots_from(self, data: dict, query: TrackQuery) -> SlotFill:
        duration_ms = round(query.duration_s * 1000)
        if data.get("album"):
            logger.debug("cubey album: %s", data["album"])

        richsync = data.get("musixmatchWordByWordLyrics")
        out: SlotFill = {
            MUSIXMATCH_RICHSYNC: ProviderResult(
                lines=parse_lrc(richsync, duration_ms, repair=self.timing).lines if richsync else None,
                source_label=_MUSIXMATCH[0],
                source_link=_MUSIXMATCH[1],
                song=data.get("song") or None,
                artist=data.get("artist") or None,
                album=data.get("album") or None,
                duration_s=_as_float(data.get("duration")),
            ),
            MUSIXMATCH_SYNCED: None,
        }

        synced = data.get("musixmatchSyncedLyrics")
        if synced:
            out[MUSIXMATCH_SYNCED] = ProviderResult(
                lines=parse_lrc(synced, duration_ms).lines,
                source_label=_MUSIXMATCH[0],
                source_link=_MUSIXMATCH[1],
            )

        lrclib_synced = data.get("lrclibSyncedLyrics")
        if lrclib_synced:
            out[LRCLIB_SYNCED] = ProviderResult(
                lines=parse_lrc(lrclib_synced, duration_ms).lines,
                source_label=_LRCLIB[0],
                source_link=_LRCLIB[1],
            )

        lrclib_plain = data.get("lrclibPlainLyrics")
        if lrclib_plain:
            out[LRCLIB_PLAIN] = ProviderResult(
                lines=parse_plain_lyrics(lrclib_plain).lines,
                source_label=_LRCLIB[0],
                source_link=_LRCLIB[1],
                cacheable=False,
            )
        return out


def _as_float(value: object) -> float | None:
    try:
        return float(value) if value else None  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
