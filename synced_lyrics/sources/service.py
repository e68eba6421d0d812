from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Mapping

from synced_lyrics.config import AppConfig
from synced_lyrics.i18n import t
from synced_lyrics.lyrics.model import LyricLine, LyricsDocument, ProviderResult
from synced_lyrics.lyrics.text import string_similarity

from .base import CancellationToken, LyricsSource
from .registry import SourceMap, build_sources, resolve_priority
from .types import HostPlayer, TrackQuery

logger = logging.getLogger(__name__)

# fast, plain lyrics used as a cross-check and a stand-in while loading
REFERENCE_SLOT = "yt-lyrics"
# the slot whose result carries corrected track metadata
METADATA_SLOT = "musixmatch-richsync"

ProvisionalCallback = Callable[[LyricsDocument, ProviderResult], None]


@dataclass(frozen=True, slots=True)
class Reconciliation:
    result: ProviderResult
    document: LyricsDocument
    query: TrackQuery
    slot_id: str | None
    needs_remap: bool

    @property
    def is_sentinel(self) -> bool:
        return self.slot_id is None


def no_lyrics_result() -> ProviderResult:
    return ProviderResult(
        lines=[LyricLine(start_ms=0, duration_ms=0, text=t("lyrics_not_found"))],
        source_label="Unknown",
        source_link="",
        cacheable=False,
    )


def document_from(result: ProviderResult) -> LyricsDocument:
    return LyricsDocument(lines=list(result.lines or []), language=result.language)


class ReconciliationEngine:
    def __init__(
        self,
        cfg: AppConfig,
        host: HostPlayer | None = None,
        *,
        sources: Mapping[str, LyricsSource] | None = None,
    ):
        self.cfg = cfg
        self.sources = dict(sources) if sources is not None else build_sources(cfg, host)
        self.priority = resolve_priority(cfg.provider_priority)

    async def reconcile(
        self,
        query: TrackQuery,
        token: CancellationToken,
        *,
        is_video: bool = False,
        on_provisional: ProvisionalCallback | None = None,
    ) -> Reconciliation | None:
        """
        Pick the best lyrics for `query`.

        Returns None when the host metadata is unusable. Raises LoadCancelled
        when `token` fires; otherwise always returns a result, the no-lyrics
        sentinel included.
        """
        query = query.normalized()
        if not query.song or not query.artist:
            logger.info("Empty song or artist name, not loading lyrics")
            return None

        source_map = SourceMap(self.sources, query, token, timeout_s=self.cfg.request_timeout_s)
        reference_task: asyncio.Future | None = None
        if REFERENCE_SLOT in source_map:
            reference_task = asyncio.ensure_future(self._reference(source_map, on_provisional))

        try:
            await self._correct_metadata(source_map)
            slot_id, chosen = await self._walk(source_map, reference_task)
        finally:
            _discard(reference_task)

        if chosen is None:
            logger.info("No lyrics found for %s", source_map.query.display)
            return Reconciliation(
                result=no_lyrics_result(),
                document=document_from(no_lyrics_result()),
                query=source_map.query,
                slot_id=None,
                needs_remap=False,
            )

        logger.info("Got lyrics from %s (%s)", chosen.source_label, slot_id)
        return Reconciliation(
            result=chosen,
            document=document_from(chosen),
            query=source_map.query,
            slot_id=slot_id,
            needs_remap=is_video != chosen.is_video_timeline,
        )

    async def _reference(
        self, source_map: SourceMap, on_provisional: ProvisionalCallback | None
    ) -> ProviderResult | None:
        result = await source_map.fetch(REFERENCE_SLOT)
        if result is not None and result.has_lines and on_provisional is not None:
            on_provisional(document_from(result), result)
        return result

    async def _correct_metadata(self, source_map: SourceMap) -> None:
        if METADATA_SLOT not in source_map:
            return
        meta = await source_map.fetch(METADATA_SLOT)
        if meta is None:
            return

        before = source_map.query
        after = before.corrected(song=meta.song, artist=meta.artist, album=meta.album, duration_s=meta.duration_s)
        for name in ("song", "artist", "album", "duration_s"):
            old, new = getattr(before, name), getattr(after, name)
            if old != new:
                logger.info("Using '%s' for %s instead of '%s'", new, name, old)
        source_map.query = after

    async def _walk(
        self, source_map: SourceMap, reference_task: asyncio.Future | None
    ) -> tuple[str | None, ProviderResult | None]:
        threshold = self.cfg.timing.similarity_threshold
        for slot_id in self.priority:
            source_map.token.raise_if_cancelled()
            result = await source_map.fetch(slot_id)
            if result is None or not result.has_lines:
                continue

            reference = await reference_task if reference_task is not None else None
            if reference is not None and reference.text:
                candidate = "\n".join(ln.text for ln in result.lines or [])
                ratio = string_similarity(candidate, reference.text)
                if ratio < threshold:
                    logger.info(
                        "Got lyrics from %s, but they don't match the reference (%.2f < %.2f), rejecting",
                        result.source_label,
                        ratio,
                        threshold,
                    )
                    continue
            return slot_id, result
        return None, None


def _discard(task: asyncio.Future | None) -> None:
    if task is None:
        return
    if not task.done():
        task.cancel()
    elif not task.cancelled():
        # already surfaced through the walk, or irrelevant now
        task.exception()
