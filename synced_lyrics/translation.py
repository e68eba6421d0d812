from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from synced_lyrics.lyrics.model import LineTranslation, LyricsDocument
from synced_lyrics.lyrics.text import contains_non_latin

from .sources.base import CancellationToken

logger = logging.getLogger(__name__)

# languages whose lyrics get a romanized line even when written in Latin script
ROMANIZATION_LANGUAGES = (
    "ja", "ru", "ko", "zh-CN", "zh-TW", "zh", "bn", "th", "el", "he",
    "ar", "ta", "te", "ml", "kn", "gu", "pa", "mr", "ur",
)  # fmt: skip


@dataclass(frozen=True, slots=True)
class TranslationResult:
    original_language: str
    translated_text: str


class Translator(Protocol):
    def translate(self, text: str, target_language: str) -> TranslationResult | None: ...

    def romanize(self, language: str, text: str) -> str | None: ...


class MemoizedTranslator:
    """Caches a Translator; answers that merely echo the input count as no answer."""

    def __init__(self, inner: Translator):
        self.inner = inner
        self._translations: dict[tuple[str, str], TranslationResult | None] = {}
        self._romanizations: dict[str, str | None] = {}

    def translate(self, text: str, target_language: str) -> TranslationResult | None:
        key = (target_language, text)
        if key not in self._translations:
            res = self.inner.translate(text, target_language)
            if res is not None and _same_text(text, res.translated_text):
                res = None
            self._translations[key] = res
        return self._translations[key]

    def romanize(self, language: str, text: str) -> str | None:
        if text not in self._romanizations:
            res = self.inner.romanize(language, text)
            if res is not None and _same_text(text, res):
                res = None
            self._romanizations[text] = res
        return self._romanizations[text]

    def clear_cache(self) -> None:
        self._translations.clear()
        self._romanizations.clear()


def _same_text(a: str, b: str) -> bool:
    return a.strip() != "" and a.strip().lower() == b.strip().lower()


def detect_language(doc: LyricsDocument, translator: Translator) -> str | None:
    text = "".join(line.text.strip() + "\n" for line in doc.lines[:10])
    res = translator.translate(text, "en")
    lang = res.original_language if res is not None else None
    logger.info("Lyrics language was missing, detected: %s", lang or "unknown")
    return lang or None


def wants_romanization(text: str, language: str | None) -> bool:
    return language in ROMANIZATION_LANGUAGES or contains_non_latin(text)


async def annotate_document(
    doc: LyricsDocument,
    translator: Translator,
    token: CancellationToken,
    *,
    target_language: str | None = None,
    romanize: bool = False,
) -> None:
    """
    Fill in missing translations and romanizations, one line at a time.
    Lines that already carry them (from the lyrics source) are left alone.
    """
    for line in doc.lines:
        text = line.text.strip()
        if not text:
            continue
        token.raise_if_cancelled()

        if target_language and line.translation is None:
            res = await asyncio.to_thread(translator.translate, text, target_language)
            if res is not None and res.original_language != target_language:
                line.translation = LineTranslation(text=res.translated_text, lang=target_language)

        if romanize and line.romanization is None and wants_romanization(text, doc.language):
            line.romanization = await asyncio.to_thread(translator.romanize, doc.language or "auto", text)
