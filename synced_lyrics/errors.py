from __future__ import annotations


class SyncedLyricsError(Exception):
    pass


class LyricsParseError(SyncedLyricsError, ValueError):
    pass


class ProviderError(SyncedLyricsError):
    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class LoadCancelled(SyncedLyricsError):
    pass
