from __future__ import annotations

import logging

from synced_lyrics.errors import LyricsParseError, ProviderError
from synced_lyrics.lyrics.model import ProviderResult, SyncGranularity
from synced_lyrics.lyrics.ttml import parse_ttml

from .base import CancellationToken, LyricsSource, SlotFill, get_json
from .types import TrackQuery

logger = logging.getLogger(__name__)

RICHSYNCED = "blyrics-richsynced"
SYNCED = "blyrics-synced"


class BLyricsSource(LyricsSource):
    """Timed-Text lyrics; one request answers both the word and line slot."""

    name = "blyrics"
    slots = (RICHSYNCED, SYNCED)

    def __init__(self, *, url: str, timeout_s: float):
        self.url = url
        self.timeout_s = timeout_s

    def fetch(self, query: TrackQuery, token: CancellationToken) -> SlotFill:
        empty: SlotFill = {RICHSYNCED: None, SYNCED: None}
        params = {"s": query.song, "a": query.artist, "d": str(query.duration_s)}

        try:
            data = get_json(self.url, token=token, timeout_s=self.timeout_s, params=params)
        except ProviderError as e:
            logger.warning("bLyrics request failed: %s", e)
            return empty

        ttml = data.get("ttml") if isinstance(data, dict) else None
        if not ttml:
            logger.debug("bLyrics has no TTML for %s", query.display)
            return empty

        try:
            doc = parse_ttml(ttml, round(query.duration_s * 1000))
        except LyricsParseError as e:
            logger.warning("bLyrics TTML rejected: %s", e)
            return empty

        result = ProviderResult(
            lines=doc.lines,
            source_label="boidu.dev",
            source_link="https://boidu.dev/",
            language=doc.language,
        )
        if doc.sync_granularity == SyncGranularity.WORD:
            return {RICHSYNCED: result, SYNCED: None}
        return {RICHSYNCED: None, SYNCED: result}
