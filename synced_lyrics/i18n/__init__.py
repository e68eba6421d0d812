"""
Interface strings. Each `<code>.json` next to this module is a catalog;
keys missing from a catalog fall back to English, then to the key itself.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from importlib.resources import files

logger = logging.getLogger(__name__)

DEFAULT_LANG = "en"

_active = DEFAULT_LANG


def available_langs() -> tuple[str, ...]:
    """Upper-case codes of the shipped catalogs, e.g. ("EN", "RU")."""
    return tuple(
        sorted(p.name[: -len(".json")].upper() for p in files(__name__).iterdir() if p.name.endswith(".json"))
    )


@lru_cache(maxsize=None)
def _catalog(code: str) -> dict[str, str]:
    try:
        data = json.loads((files(__name__) / f"{code}.json").read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Cannot load %s strings: %s", code, e)
        return {}
    strings = {} if code == DEFAULT_LANG else dict(_catalog(DEFAULT_LANG))
    strings.update({str(k): str(v) for k, v in data.items()})
    return strings


def set_lang(lang: str | None) -> str:
    """Switch the interface language; unknown codes select English. Returns the active code."""
    global _active
    code = (lang or DEFAULT_LANG).lower()
    if code.upper() not in available_langs():
        logger.debug("No strings for %r, using %s", lang, DEFAULT_LANG)
        code = DEFAULT_LANG
    _active = code
    return code.upper()


def t(key: str, **kwargs: object) -> str:
    s = _catalog(_active).get(key, key)
    if not kwargs:
        return s
    try:
        return s.format(**kwargs)
    except (KeyError, IndexError):
        return s
