from __future__ import annotations

import logging

from synced_lyrics.errors import ProviderError
from synced_lyrics.lyrics.lrc import parse_lrc, parse_plain_lyrics
from synced_lyrics.lyrics.model import ProviderResult

from .base import CancellationToken, LyricsSource, SlotFill, get_json
from .types import TrackQuery

logger = logging.getLogger(__name__)

SYNCED = "lrclib-synced"
PLAIN = "lrclib-plain"


class LrcLibSource(LyricsSource):
    name = "lrclib"
    slots = (SYNCED, PLAIN)

    def __init__(self, *, url: str, client_header: str, timeout_s: float):
        self.url = url
        self.client_header = client_header
        self.timeout_s = timeout_s

    def fetch(self, query: TrackQuery, token: CancellationToken) -> SlotFill:
        empty: SlotFill = {SYNCED: None, PLAIN: None}
        params = {
            "track_name": query.song,
            "artist_name": query.artist,
            "duration": str(query.duration_s),
        }
        if query.album:
            params["album_name"] = query.album

        try:
            data = get_json(
                self.url,
                token=token,
                timeout_s=self.timeout_s,
                params=params,
                headers={"Lrclib-Client": self.client_header},
            )
        except ProviderError as e:
            if e.status_code == 404:
                logger.debug("lrclib has nothing for %s", query.display)
            else:
                logger.warning("lrclib error: %s", e)
            return empty
        if not isinstance(data, dict):
            return empty

        # lrclib knows the duration of the recording it matched
        try:
            duration_ms = round(float(data.get("duration") or query.duration_s) * 1000)
        except (TypeError, ValueError):
            duration_ms = round(query.duration_s * 1000)

        out = dict(empty)
        synced = data.get("syncedLyrics")
        if synced:
            out[SYNCED] = ProviderResult(
                lines=parse_lrc(str(synced).rstrip() + "\n", duration_ms).lines,
                source_label="LRCLib",
                source_link="https://lrclib.net",
            )
        plain = data.get("plainLyrics")
        if plain:
            out[PLAIN] = ProviderResult(
                lines=parse_plain_lyrics(str(plain).rstrip()).lines,
                source_label="LRCLib",
                source_link="https://lrclib.net",
                cacheable=False,
            )
        return out
