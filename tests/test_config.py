import logging

import pytest

from unikeys.config import DEFAULT_SETTINGS, Settings, configure_logging, get_settings, reset_settings


def test_defaults_without_environment():
    settings = get_settings()
    assert settings.context == "primary"
    assert settings.pack_rounds == 160000
    assert settings.pbkdf2_rounds == 5000
    assert settings.max_workers is None


def test_settings_are_cached_until_reset(monkeypatch):
    first = get_settings()
    monkeypatch.setenv("UNIKEYS_PBKDF2_ROUNDS", "1234")
    assert get_settings() is first

    reset_settings()
    assert get_settings().pbkdf2_rounds == 1234
    # pack rounds stay independent of derive rounds
    assert get_settings().pack_rounds == DEFAULT_SETTINGS["pack_rounds"]


def test_invalid_values_are_rejected(monkeypatch):
    monkeypatch.setenv("UNIKEYS_CONTEXT", "browser")
    with pytest.raises(ValueError):
        Settings.from_env()

    monkeypatch.setenv("UNIKEYS_CONTEXT", "embedded")
    monkeypatch.setenv("UNIKEYS_MAX_WORKERS", "zero")
    with pytest.raises(ValueError):
        Settings.from_env()


def test_configure_logging_uses_level(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
    monkeypatch.setenv("UNIKEYS_LOG_LEVEL", "debug")
    reset_settings()

    configure_logging()

    assert calls == [{"level": "DEBUG"}]
