from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Mapping

from synced_lyrics.config import AppConfig
from synced_lyrics.errors import LoadCancelled
from synced_lyrics.lyrics.model import ProviderResult

from .base import CancellationToken, LyricsSource
from .blyrics import BLyricsSource
from .cubey import CubeySource
from .lrclib import LrcLibSource
from .types import HostPlayer, TrackQuery
from .youtube import HostLyricsSource, YouTubeCaptionsSource

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_PRIORITY: tuple[str, ...] = (
    "blyrics-richsynced",
    "musixmatch-richsync",
    "yt-captions",
    "lrclib-synced",
    "musixmatch-synced",
    "blyrics-synced",
    "yt-lyrics",
    "lrclib-plain",
)

DISABLED_PREFIX = "d_"


def resolve_priority(custom: Iterable[str] | None) -> tuple[str, ...]:
    """
    A custom order must mention every built-in provider, either plainly or
    as `d_<id>` to disable it. Anything else falls back to the default.
    """
    if custom is None:
        return DEFAULT_PROVIDER_PRIORITY

    wanted = [str(p).strip() for p in custom]
    missing = [p for p in DEFAULT_PROVIDER_PRIORITY if p not in wanted and DISABLED_PREFIX + p not in wanted]
    if missing:
        logger.info("Invalid provider priority (missing %s), resetting to default", ", ".join(missing))
        return DEFAULT_PROVIDER_PRIORITY

    for p in wanted:
        if p not in DEFAULT_PROVIDER_PRIORITY and not p.startswith(DISABLED_PREFIX):
            logger.info("Unknown provider '%s' in priority list, skipping", p)
    resolved = []
    for p in wanted:
        if p in DEFAULT_PROVIDER_PRIORITY and p not in resolved:
            resolved.append(p)
    return tuple(resolved)


def build_sources(cfg: AppConfig, host: HostPlayer | None = None) -> dict[str, LyricsSource]:
    """Map every slot id to the adapter that fills it."""
    timeout = cfg.request_timeout_s
    adapters: list[LyricsSource] = [
        BLyricsSource(url=cfg.blyrics_url, timeout_s=timeout),
        CubeySource(url=cfg.cubey_url, bearer_token=cfg.cubey_token, timeout_s=timeout, timing=cfg.timing),
        LrcLibSource(url=cfg.lrclib_url, client_header=cfg.lrclib_client_header, timeout_s=timeout),
        YouTubeCaptionsSource(timeout_s=timeout),
    ]
    if host is not None:
        adapters.append(HostLyricsSource(host))

    out: dict[str, LyricsSource] = {}
    for adapter in adapters:
        for slot in adapter.slots:
            out[slot] = adapter
    return out


@dataclass(slots=True)
class ResultSlot:
    filled: bool = False
    result: ProviderResult | None = None


class SourceMap:
    """
    Per-query, fill-once cache of provider results.

    `fetch(slot_id)` runs the owning adapter at most once per query; an
    adapter that answers several slots fills all of them in that one call.
    Build a fresh map for every query.
    """

    def __init__(
        self,
        sources: Mapping[str, LyricsSource],
        query: TrackQuery,
        token: CancellationToken,
        *,
        timeout_s: float = 10.0,
    ):
        self.query = query
        self.token = token
        self.timeout_s = timeout_s
        self._sources = dict(sources)
        self._slots = {slot: ResultSlot() for slot in self._sources}
        self._inflight: dict[int, asyncio.Task] = {}
        self.adapter_calls: dict[str, int] = {}

    def slot(self, slot_id: str) -> ResultSlot:
        return self._slots[slot_id]

    def __contains__(self, slot_id: object) -> bool:
        return slot_id in self._slots

    async def fetch(self, slot_id: str) -> ProviderResult | None:
        slot = self._slots.get(slot_id)
        if slot is None:
            logger.debug("No adapter for '%s'", slot_id)
            return None
        if slot.filled:
            return slot.result

        adapter = self._sources[slot_id]
        key = id(adapter)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run(adapter))
            self._inflight[key] = task
        try:
            await task
        finally:
            if task.done():
                self._inflight.pop(key, None)

        # the adapter was asked for this slot; silence means "nothing"
        slot.filled = True
        return slot.result

    async def _run(self, adapter: LyricsSource) -> None:
        self.adapter_calls[adapter.name] = self.adapter_calls.get(adapter.name, 0) + 1
        self.token.raise_if_cancelled()
        try:
            filled = await asyncio.wait_for(
                asyncio.to_thread(adapter.fetch, self.query, self.token),
                timeout=self.timeout_s,
            )
        except LoadCancelled:
            raise
        except asyncio.TimeoutError:
            logger.warning("%s timed out after %.1fs", adapter.name, self.timeout_s)
            filled = {}
        except Exception:
            logger.warning("%s failed", adapter.name, exc_info=True)
            filled = {}
        self.token.raise_if_cancelled()

        for slot_id, result in filled.items():
            slot = self._slots.get(slot_id)
            if slot is None or slot.filled:
                continue
            slot.filled = True
            slot.result = result
        for slot_id in adapter.slots:
            if slot_id in self._slots:
                self._slots[slot_id].filled = True
