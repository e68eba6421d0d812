from __future__ import annotations

import json

import pytest

from synced_lyrics.config import TimingTuning, load_config, save_config_lang
from synced_lyrics.i18n import available_langs, set_lang, t


@pytest.fixture(autouse=True)
def _clean_env(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    for name in ("SYNCED_LYRICS_LANG", "SYNCED_LYRICS_PROVIDERS", "SYNCED_LYRICS_TIMEOUT", "SYNCED_LYRICS_CUBEY_TOKEN"):
        monkeypatch.delenv(name, raising=False)


def _write_config(tmp_path, data) -> None:
    (tmp_path / "synced-lyrics").mkdir(parents=True, exist_ok=True)
    (tmp_path / "synced-lyrics" / "config.json").write_text(json.dumps(data), encoding="utf-8")


class TestI18n:
    """Test i18n t() and set_lang."""

    def test_t_en(self):
        set_lang("EN")
        assert t("lyrics_not_found") == "No lyrics found"
        assert t("lang_saved", lang="RU") == "Language saved: RU"

    def test_t_ru(self):
        set_lang("RU")
        assert t("lyrics_not_found") == "Слова не найдены"
        assert t("lang_saved", lang="EN") == "Язык сохранён: EN"

    def test_t_fallback_to_key(self):
        set_lang("EN")
        assert t("nonexistent_key") == "nonexistent_key"

    def test_unknown_lang_falls_back_to_en(self):
        assert set_lang("DE") == "EN"
        assert t("lyrics_not_found") == "No lyrics found"

    def test_available_langs_from_catalogs(self):
        assert available_langs() == ("EN", "RU")

    def test_missing_format_argument_returns_template(self):
        set_lang("EN")
        assert t("lang_saved") == "Language saved: {lang}"
        assert t("lang_saved", other="x") == "Language saved: {lang}"


class TestConfigLang:
    """Test config --lang and load_config lang priority."""

    def test_save_config_lang_and_load(self):
        save_config_lang("RU")
        assert load_config().lang == "RU"

        save_config_lang("EN")
        assert load_config().lang == "EN"

    def test_save_keeps_other_keys(self, tmp_path):
        _write_config(tmp_path, {"timing": {"similarity_threshold": 0.7}})
        save_config_lang("RU")
        cfg = load_config()
        assert cfg.lang == "RU"
        assert cfg.timing.similarity_threshold == 0.7

    def test_load_lang_priority_config_over_env(self, tmp_path, monkeypatch):
        _write_config(tmp_path, {"lang": "RU"})
        monkeypatch.setenv("SYNCED_LYRICS_LANG", "EN")
        assert load_config().lang == "RU"

    def test_load_lang_env_when_no_config(self, monkeypatch):
        monkeypatch.setenv("SYNCED_LYRICS_LANG", "ru")
        assert load_config().lang == "RU"

    def test_default_lang(self):
        assert load_config().lang == "EN"


class TestConfigSources:
    def test_defaults(self, tmp_path):
        cfg = load_config()
        assert cfg.config_dir == tmp_path / "synced-lyrics"
        assert cfg.provider_priority is None
        assert cfg.request_timeout_s == 10.0
        assert cfg.cubey_token is None
        assert cfg.timing == TimingTuning()

    def test_priority_from_file(self, tmp_path):
        _write_config(tmp_path, {"provider_priority": ["lrclib-synced", " d_yt-lyrics "]})
        assert load_config().provider_priority == ("lrclib-synced", "d_yt-lyrics")

    def test_priority_from_env(self, monkeypatch):
        monkeypatch.setenv("SYNCED_LYRICS_PROVIDERS", "lrclib-synced, blyrics-synced")
        assert load_config().provider_priority == ("lrclib-synced", "blyrics-synced")

    def test_priority_must_be_a_list(self, tmp_path):
        _write_config(tmp_path, {"provider_priority": "lrclib-synced"})
        assert load_config().provider_priority is None

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("SYNCED_LYRICS_TIMEOUT", "2.5")
        monkeypatch.setenv("SYNCED_LYRICS_CUBEY_TOKEN", "tok")
        cfg = load_config()
        assert cfg.request_timeout_s == 2.5
        assert cfg.cubey_token == "tok"

    def test_timing_overrides_skip_unknown_keys(self, tmp_path):
        _write_config(tmp_path, {"timing": {"short_part_ms": 80, "bogus": 1}})
        assert load_config().timing == TimingTuning(short_part_ms=80)

    def test_unreadable_config_is_ignored(self, tmp_path):
        (tmp_path / "synced-lyrics").mkdir()
        (tmp_path / "synced-lyrics" / "config.json").write_text("{not json", encoding="utf-8")
        assert load_config().lang == "EN"
