from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from synced_lyrics.i18n import available_langs

logger = logging.getLogger(__name__)


def _config_dir() -> Path:
    xdg = os.getenv("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "synced-lyrics"
    return Path.home() / ".config" / "synced-lyrics"


def _config_file() -> Path:
    return _config_dir() / "config.json"


@dataclass(frozen=True, slots=True)
class TimingTuning:
    """Empirical constants for the LRC repair passes and cross-validation."""

    space_absorb_delta_ms: int = 15
    space_absorb_max_ms: int = 100
    short_part_ms: int = 100
    short_part_ratio: float = 0.5
    stretch_limit_ms: int = 400
    trailing_floor_ms: int = 300
    similarity_threshold: float = 0.5


@dataclass(frozen=True, slots=True)
class SchedulerTuning:
    # offsets are seconds, everything suffixed _ms is milliseconds
    word_sync_offset_s: float = 0.115
    line_sync_offset_s: float = 0.0
    scroll_lead_offset_s: float = 0.5
    micro_scroll_threshold_s: float = 0.3
    animation_lookahead_s: float = 2.0
    line_end_grace_s: float = 0.05
    drift_decay: float = 1.08
    drift_gain: float = 0.4
    drift_reset_ms: float = 100.0
    scroll_anchor_fraction: float = 0.37
    scroll_threshold_px: float = 2.0
    transition_ms: float = 750.0
    min_scroll_ms: float = 200.0
    scroll_margin_ms: float = 50.0
    scroll_cooldown_pad_ms: float = 20.0
    manual_scroll_pause_ms: int = 25_000
    self_scroll_window_ms: int = 2_000
    initial_self_scrolls: int = 2


@dataclass(frozen=True)
class AppConfig:
    config_dir: Path

    # Locale
    lang: str

    # Sources
    provider_priority: tuple[str, ...] | None
    request_timeout_s: float
    blyrics_url: str
    cubey_url: str
    cubey_token: str | None
    lrclib_url: str
    lrclib_client_header: str

    # Tuning
    timing: TimingTuning = field(default_factory=TimingTuning)
    scheduler: SchedulerTuning = field(default_factory=SchedulerTuning)


def load_config() -> AppConfig:
    config_dir = _config_dir()
    data = _load_file(config_dir)

    return AppConfig(
        config_dir=config_dir,
        lang=_load_lang(data),
        provider_priority=_load_priority(data),
        request_timeout_s=float(os.getenv("SYNCED_LYRICS_TIMEOUT", "10.0")),
        blyrics_url=os.getenv(
            "SYNCED_LYRICS_BLYRICS_URL",
            "https://lyrics-api-go-better-lyrics-api-pr-12.up.railway.app/getLyrics",
        ),
        cubey_url=os.getenv("SYNCED_LYRICS_CUBEY_URL", "https://lyrics.api.dacubeking.com/"),
        cubey_token=os.getenv("SYNCED_LYRICS_CUBEY_TOKEN") or None,
        lrclib_url=os.getenv("SYNCED_LYRICS_LRCLIB_URL", "https://lrclib.net/api/get"),
        lrclib_client_header=os.getenv(
            "SYNCED_LYRICS_LRCLIB_CLIENT", "synced-lyrics (https://github.com/synced-lyrics)"
        ),
        timing=_load_timing(data),
    )


def _load_file(config_dir: Path) -> dict:
    cfg_path = config_dir / "config.json"
    if not cfg_path.exists():
        return {}
    try:
        data = json.loads(cfg_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable config %s: %s", cfg_path, e)
        return {}
    return data if isinstance(data, dict) else {}


def _load_lang(data: dict) -> str:
    # Priority: config.json → SYNCED_LYRICS_LANG → "EN"
    raw = str(data.get("lang") or "").upper()
    if raw in available_langs():
        return raw
    env_lang = os.getenv("SYNCED_LYRICS_LANG")
    if env_lang and env_lang.upper() in available_langs():
        return env_lang.upper()
    return "EN"


def _load_priority(data: dict) -> tuple[str, ...] | None:
    raw = data.get("provider_priority")
    if raw is None:
        env = os.getenv("SYNCED_LYRICS_PROVIDERS")
        if not env:
            return None
        raw = env.split(",")
    if not isinstance(raw, list):
        logger.warning("provider_priority must be a list, got %r", raw)
        return None
    return tuple(str(s).strip() for s in raw if str(s).strip())


def _load_timing(data: dict) -> TimingTuning:
    overrides = data.get("timing")
    if not isinstance(overrides, dict):
        return TimingTuning()
    known = set(TimingTuning.__dataclass_fields__)
    kwargs = {k: v for k, v in overrides.items() if k in known}
    for k in set(overrides) - known:
        logger.info("Unknown timing override '%s', skipping", k)
    return TimingTuning(**kwargs)


def save_config_lang(lang: str) -> None:
    cfg_path = _config_file()
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    data = _load_file(cfg_path.parent)
    data["lang"] = lang.upper()
    cfg_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
