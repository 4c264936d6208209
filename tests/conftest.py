import asyncio

import pytest

from unikeys.config import reset_settings
from unikeys.dispatch import shutdown_workers
from unikeys.pki import PrivateKey


@pytest.fixture(scope="session")
def private_key():
    """A 1024-bit key shared by tests that only read from it."""
    return asyncio.run(PrivateKey.generate(strength=1024))


@pytest.fixture(scope="session")
def small_key():
    return asyncio.run(PrivateKey.generate(strength=512))


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    for name in ("UNIKEYS_CONTEXT", "UNIKEYS_MAX_WORKERS", "UNIKEYS_PACK_ROUNDS",
                 "UNIKEYS_PBKDF2_ROUNDS", "UNIKEYS_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def embedded_context(monkeypatch):
    """Make the current process a non-primary context so work is delegated."""
    monkeypatch.setenv("UNIKEYS_CONTEXT", "embedded")
    reset_settings()
    yield
    shutdown_workers()
