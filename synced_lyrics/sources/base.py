from __future__ import annotations

import logging
import threading
from typing import Any, Mapping

import requests

from synced_lyrics.errors import LoadCancelled, ProviderError
from synced_lyrics.lyrics.model import ProviderResult

from .types import TrackQuery

logger = logging.getLogger(__name__)

# slot id -> result; None means "asked, nothing usable"
SlotFill = dict[str, "ProviderResult | None"]


class CancellationToken:
    """
    Shared cancellation signal for one lyric load.

    Adapters run in worker threads, so the flag is a threading.Event.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise LoadCancelled()


class LyricsSource:
    """
    One external lyric provider.

    `fetch` is blocking and may fill several slots at once. Slots it does not
    return are left for someone else to fill.
    """

    name: str
    slots: tuple[str, ...] = ()

    def fetch(self, query: TrackQuery, token: CancellationToken) -> SlotFill:
        raise NotImplementedError


def get_json(
    url: str,
    *,
    token: CancellationToken,
    timeout_s: float,
    params: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
) -> Any:
    token.raise_if_cancelled()
    try:
        r = requests.get(url, params=params, headers=headers, timeout=timeout_s)
    except requests.RequestException as e:
        raise ProviderError(f"GET {url} failed: {e}") from e
    token.raise_if_cancelled()

    if r.status_code >= 400:
        raise ProviderError(f"GET {url} returned HTTP {r.status_code}", status_code=r.status_code)
    try:
        return r.json()
    except ValueError as e:
        raise ProviderError(f"GET {url} returned malformed JSON") from e
