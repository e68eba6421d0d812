from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Callable

from synced_lyrics.errors import LoadCancelled
from synced_lyrics.lyrics.model import LyricsDocument, PlaybackSample, SegmentMap
from synced_lyrics.sources.base import CancellationToken
from synced_lyrics.sources.service import Reconciliation, ReconciliationEngine
from synced_lyrics.sources.types import HostPlayer, TrackQuery
from synced_lyrics.sync.remap import remap_document
from synced_lyrics.sync.scheduler import SyncScheduler, TickResult
from synced_lyrics.translation import MemoizedTranslator, Translator, annotate_document, detect_language

logger = logging.getLogger(__name__)

CommitCallback = Callable[[LyricsDocument, bool], None]


class LyricsSession:
    """
    Owns what is shared across loads: the current media id, the committed
    document and the scheduler reading it.

    Every load gets a generation number and a cancellation token. Starting a
    load cancels the previous one and waits for it to unwind; a load only
    commits while its generation is still the current one.
    """

    def __init__(
        self,
        engine: ReconciliationEngine,
        scheduler: SyncScheduler | None = None,
        *,
        host: HostPlayer | None = None,
        translator: Translator | None = None,
        translate_to: str | None = None,
        romanize: bool = False,
        on_commit: CommitCallback | None = None,
        on_loading: Callable[[], None] | None = None,
    ):
        self.engine = engine
        self.scheduler = scheduler or SyncScheduler()
        self.host = host
        self.translator = translator
        self.translate_to = translate_to
        self.romanize = romanize
        self.on_commit = on_commit
        self.on_loading = on_loading

        self.generation = 0
        self.current_media_id: str | None = None
        self.last_loaded_media_id: str | None = None
        self.document: LyricsDocument | None = None
        self.reconciliation: Reconciliation | None = None
        self.is_provisional = False
        self.commits = 0

        self._token: CancellationToken | None = None
        self._task: asyncio.Task | None = None
        self._authoritative_generation = -1

    async def load(self, query: TrackQuery, *, is_video: bool = False) -> LyricsDocument | None:
        """
        Load lyrics for `query`, replacing whatever was loading before.
        Returns the committed document, or None if this load was superseded
        or had nothing to load.
        """
        self.generation += 1
        gen = self.generation
        await self.cancel()
        if gen != self.generation:
            # an even newer load started while we waited
            return None

        token = CancellationToken()
        self._token = token
        self.current_media_id = query.media_id

        task = asyncio.ensure_future(self._run(query, is_video, gen, token))
        self._task = task
        try:
            return await task
        except asyncio.CancelledError:
            if gen != self.generation:
                return None
            raise

    async def cancel(self) -> None:
        """Cancel the in-flight load, if any, and wait for it to unwind."""
        prior, self._task = self._task, None
        if self._token is not None:
            self._token.cancel()
        if prior is None or prior.done():
            return
        prior.cancel()
        try:
            await prior
        except asyncio.CancelledError:
            pass
        logger.debug("Previous lyrics load cancelled")

    async def _run(
        self, query: TrackQuery, is_video: bool, gen: int, token: CancellationToken
    ) -> LyricsDocument | None:
        requested_id = query.media_id
        try:
            query, segment_map = await self._resolve_media(query, is_video, token)

            def provisional(doc: LyricsDocument, _result) -> None:
                if token.cancelled or gen != self.generation or self._authoritative_generation == gen:
                    return
                logger.info("Temporarily using host lyrics while synced lyrics load")
                self._commit(doc, provisional=True)

            rec = await self.engine.reconcile(query, token, is_video=is_video, on_provisional=provisional)
            if rec is None:
                return None

            doc = rec.document
            if rec.needs_remap and segment_map is not None:
                remap_document(doc, segment_map if is_video else segment_map.inverse())

            if self.translator is not None and doc.language is None and not rec.is_sentinel:
                doc.language = await asyncio.to_thread(detect_language, doc, self.translator)

            token.raise_if_cancelled()
            if gen != self.generation:
                return None
            self.reconciliation = rec
            self.last_loaded_media_id = requested_id
            self._authoritative_generation = gen
            self._commit(doc, provisional=False)

            if self.translator is not None and not rec.is_sentinel and (self.translate_to or self.romanize):
                await annotate_document(
                    doc, self.translator, token, target_language=self.translate_to, romanize=self.romanize
                )
            return doc
        except LoadCancelled:
            logger.debug("Load of %s cancelled", query.display)
            return None

    async def _resolve_media(
        self, query: TrackQuery, is_video: bool, token: CancellationToken
    ) -> tuple[TrackQuery, SegmentMap | None]:
        """Swap a music video for its audio counterpart, and fill the album from the host."""
        if self.host is None:
            self._new_song()
            return query, None

        matching = await asyncio.to_thread(self.host.matching_song, query.media_id)
        token.raise_if_cancelled()

        counterpart = matching.counterpart_id if matching else None
        switching_edit = (counterpart and counterpart == self.last_loaded_media_id) or (
            self.last_loaded_media_id == query.media_id
        )
        if switching_edit:
            logger.debug("Switching between audio and video, skipping loader")
        else:
            self._new_song()

        # host maps always take the video as the primary timeline
        segment_map = matching.segment_map if matching else None
        if is_video and matching and matching.counterpart_id and matching.segment_map:
            logger.debug("Using audio id %s instead of video id %s", matching.counterpart_id, query.media_id)
            query = replace(query, media_id=matching.counterpart_id, always_fetch_metadata=True)

        if not query.album:
            album = await asyncio.to_thread(self.host.album_for, query.media_id)
            token.raise_if_cancelled()
            if album:
                query = replace(query, album=album)
        return query, segment_map

    def _new_song(self) -> None:
        """Not an audio/video edit switch: drop per-song translations and show the loader."""
        if isinstance(self.translator, MemoizedTranslator):
            self.translator.clear_cache()
        if self.on_loading is not None:
            self.on_loading()

    def _commit(self, doc: LyricsDocument, *, provisional: bool) -> None:
        self.document = doc
        self.is_provisional = provisional
        self.commits += 1
        self.scheduler.load(doc)
        if self.on_commit is not None:
            self.on_commit(doc, provisional)

    def on_sample(self, sample: PlaybackSample, *, now_ms: float | None = None) -> TickResult:
        return self.scheduler.on_sample(sample, now_ms=now_ms)

    def stop(self) -> None:
        """The lyrics are no longer visible or the song ended."""
        self.scheduler.stop()
