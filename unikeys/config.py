"""
Configuration

Settings are read from environment variables once and cached. Defaults
live in DEFAULT_SETTINGS so callers can inspect them without touching
the environment.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

# Execution contexts
CONTEXT_PRIMARY = 'primary'    # native primitives may run in this process
CONTEXT_EMBEDDED = 'embedded'  # expensive work must be delegated to workers

DEFAULT_SETTINGS = {
    'context': CONTEXT_PRIMARY,
    'max_workers': None,       # executor default
    'pack_rounds': 160000,     # PBKDF2 rounds for password-wrapped keys
    'pbkdf2_rounds': 5000,     # PBKDF2 rounds for derive()
    'log_level': 'WARNING',
}

_settings = None


@dataclass
class Settings:
    """Runtime settings for the library."""
    context: str = DEFAULT_SETTINGS['context']
    max_workers: Optional[int] = DEFAULT_SETTINGS['max_workers']
    pack_rounds: int = DEFAULT_SETTINGS['pack_rounds']
    pbkdf2_rounds: int = DEFAULT_SETTINGS['pbkdf2_rounds']
    log_level: str = DEFAULT_SETTINGS['log_level']

    @classmethod
    def from_env(cls) -> 'Settings':
        """
        Build settings from UNIKEYS_* environment variables.

        Raises:
            ValueError: If a variable holds an invalid value
        """
        context = os.environ.get('UNIKEYS_CONTEXT', DEFAULT_SETTINGS['context']).lower()
        if context not in (CONTEXT_PRIMARY, CONTEXT_EMBEDDED):
            raise ValueError(f"UNIKEYS_CONTEXT must be '{CONTEXT_PRIMARY}' or '{CONTEXT_EMBEDDED}'")

        return cls(
            context=context,
            max_workers=_int_env('UNIKEYS_MAX_WORKERS', DEFAULT_SETTINGS['max_workers']),
            pack_rounds=_int_env('UNIKEYS_PACK_ROUNDS', DEFAULT_SETTINGS['pack_rounds']),
            pbkdf2_rounds=_int_env('UNIKEYS_PBKDF2_ROUNDS', DEFAULT_SETTINGS['pbkdf2_rounds']),
            log_level=os.environ.get('UNIKEYS_LOG_LEVEL', DEFAULT_SETTINGS['log_level']).upper(),
        )


def _int_env(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.environ.get(name)
    if raw is None or raw == '':
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive")
    return value


def get_settings() -> Settings:
    """Return the cached settings, reading the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Drop cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for applications embedding the library."""
    logging.basicConfig(level=level or get_settings().log_level)
