"""Settings loader and logger helper.

`monkeypatch` is annotated as `Any` to keep the tests typed without pytest
stubs.
"""

from __future__ import annotations

import logging
from typing import Any

from studyblocks.core.settings import Settings, get_logger, load_settings, settings


def test_settings_instance_type() -> None:
    assert isinstance(settings, Settings)


def test_env_overrides_with_cache_clear(monkeypatch: Any) -> None:
    """Env vars take effect after `load_settings.cache_clear()`."""
    monkeypatch.setenv("STUDYBLOCKS_ENV", "prod")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("STUDYBLOCKS_IMAGE_POLICY", "manual")
    monkeypatch.setenv("STUDYBLOCKS_ROLLBACK", "false")
    monkeypatch.setenv("STUDYBLOCKS_MODEL", "fast")

    load_settings.cache_clear()
    try:
        s = load_settings()
        assert s.environment == "prod"
        assert s.log_level == "DEBUG"
        assert s.image_policy == "manual"
        assert s.rollback_failed_mutations is False
        assert s.generator_model == "fast"
    finally:
        load_settings.cache_clear()


def test_lookup_credentials_need_both_values(monkeypatch: Any) -> None:
    monkeypatch.setenv("GOOGLE_API_KEY", "k")
    monkeypatch.delenv("GOOGLE_CSE_ID", raising=False)
    load_settings.cache_clear()
    try:
        assert load_settings().has_lookup_credentials is False
        monkeypatch.setenv("GOOGLE_CSE_ID", "cx")
        load_settings.cache_clear()
        assert load_settings().has_lookup_credentials is True
    finally:
        load_settings.cache_clear()


def test_get_logger_respects_level(monkeypatch: Any) -> None:
    monkeypatch.setenv("LOG_LEVEL", "ERROR")
    load_settings.cache_clear()
    try:
        logger = get_logger("studyblocks.test.level")
        assert logger.level == logging.ERROR
    finally:
        load_settings.cache_clear()
