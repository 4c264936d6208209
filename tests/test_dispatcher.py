import pytest

from unikeys.dispatch import (
    LocalDispatcher,
    Task,
    WorkerDispatcher,
    is_primary_context,
    is_worker_context,
    select_dispatcher,
)
from unikeys.dispatch import dispatcher as dispatcher_module
from unikeys.errors import DelegationError
from unikeys.pki import derive
from unikeys.pki.pbkdf2 import _derive_local


async def _echo(**data):
    return data


def test_primary_context_runs_locally():
    assert is_primary_context()
    assert not is_worker_context()
    assert isinstance(select_dispatcher(), LocalDispatcher)


def test_embedded_context_delegates(embedded_context):
    assert not is_primary_context()
    assert isinstance(select_dispatcher(), WorkerDispatcher)


def test_worker_context_runs_locally(embedded_context, monkeypatch):
    monkeypatch.setattr(dispatcher_module, "_in_worker", True)
    assert is_worker_context()
    assert isinstance(select_dispatcher(), LocalDispatcher)


@pytest.mark.asyncio
async def test_local_dispatcher_calls_local_coroutine():
    result = await LocalDispatcher().dispatch(Task("unused:path", _echo), {"a": 1})
    assert result == {"a": 1}


@pytest.mark.asyncio
async def test_derive_in_worker_matches_local(embedded_context):
    delegated = await derive("sha256", password="pw", salt="s", iterations=1000, key_length=32)
    local = await _derive_local(hash_kind="sha256", password="pw", salt="s", key_length=32, iterations=1000)

    assert isinstance(dispatcher_module._worker_dispatcher, WorkerDispatcher)
    assert delegated == local
    assert len(delegated) == 32


@pytest.mark.asyncio
async def test_worker_rejection_surfaces_as_delegation_error(monkeypatch):
    local_calls = []

    async def local(**data):
        local_calls.append(data)

    dispatcher = WorkerDispatcher(max_workers=1)
    try:
        with pytest.raises(DelegationError):
            await dispatcher.dispatch(Task("unikeys.no_such_module:task", local), {"x": 1})
    finally:
        dispatcher.shutdown()

    # No silent fallback to local execution
    assert local_calls == []
