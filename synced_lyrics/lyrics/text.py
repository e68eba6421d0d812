from __future__ import annotations

from collections import Counter

import regex

_RTL_RE = regex.compile(r"[\p{Script=Arabic}\p{Script=Hebrew}\p{Script=Syriac}\p{Script=Thaana}]")
_NON_LATIN_RE = regex.compile(r"[^\p{Script_Extensions=Latin}\p{Script_Extensions=Common}]")

MUSIC_NOTES = "♪𝅘𝅥𝅮𝅘𝅥𝅯𝅘𝅥𝅰𝅘𝅥𝅱𝅘𝅥𝅲"


def string_similarity(a: str, b: str, n: int = 2, case_sensitive: bool = False) -> float:
    """
    Dice coefficient over character n-grams, 0.0 (nothing shared) to 1.0.

    Repeated n-grams are matched at most as many times as they occur in `a`.
    """
    if not case_sensitive:
        a = a.lower()
        b = b.lower()
    if len(a) < n or len(b) < n:
        return 0.0

    grams = Counter(a[i : i + n] for i in range(len(a) - n + 1))
    matched = 0
    for j in range(len(b) - n + 1):
        g = b[j : j + n]
        if grams[g] > 0:
            grams[g] -= 1
            matched += 1
    return (matched * 2) / (len(a) + len(b) - (n - 1) * 2)


def is_rtl(text: str) -> bool:
    return _RTL_RE.search(text) is not None


def contains_non_latin(text: str) -> bool:
    return _NON_LATIN_RE.search(text) is not None


def strip_music_notes(text: str) -> str:
    out = text
    for note in MUSIC_NOTES:
        out = out.strip()
        if out.startswith(note):
            out = out[1:]
        if out.endswith(note):
            out = out[:-1]
    return out.strip()
