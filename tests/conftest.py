from __future__ import annotations

import pytest

from synced_lyrics.config import AppConfig
from synced_lyrics.i18n import set_lang


@pytest.fixture
def cfg(tmp_path) -> AppConfig:
    return AppConfig(
        config_dir=tmp_path / "config",
        lang="EN",
        provider_priority=None,
        request_timeout_s=5.0,
        blyrics_url="https://blyrics.test/getLyrics",
        cubey_url="https://cubey.test/",
        cubey_token=None,
        lrclib_url="https://lrclib.test/api/get",
        lrclib_client_header="synced-lyrics tests",
    )


@pytest.fixture(autouse=True)
def _english():
    set_lang("EN")
    yield
    set_lang("EN")
