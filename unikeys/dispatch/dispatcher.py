"""
Local and Worker Dispatch

Operations are described by a Task: an importable "module:function" path
that a worker process can resolve, plus the in-process coroutine used
when no delegation is needed. Task data must be plain picklable values,
never key handles or callables.
"""

import asyncio
import importlib
import logging
import multiprocessing
from abc import ABC, abstractmethod
from concurrent.futures import ProcessPoolExecutor
from concurrent.futures.process import BrokenProcessPool
from typing import Any, Awaitable, Callable, Dict, NamedTuple, Optional

from ..config import CONTEXT_PRIMARY, get_settings
from ..engine.native import engine
from ..errors import DelegationError, UnikeysError

logger = logging.getLogger(__name__)

# Set by the pool initializer inside worker processes
_in_worker = False

_local_dispatcher = None
_worker_dispatcher = None


def is_primary_context() -> bool:
    """True when this process is configured to run primitives inline."""
    return get_settings().context == CONTEXT_PRIMARY


def is_worker_context() -> bool:
    """True inside a worker process started by WorkerDispatcher."""
    return _in_worker


class Task(NamedTuple):
    path: str
    local: Callable[..., Awaitable[Any]]


class Dispatcher(ABC):
    """Strategy deciding where a task executes."""

    @abstractmethod
    async def dispatch(self, task: Task, data: Dict[str, Any]) -> Any:
        """Run the task with keyword arguments taken from data."""


class LocalDispatcher(Dispatcher):
    """Runs tasks in the calling process."""

    async def dispatch(self, task: Task, data: Dict[str, Any]) -> Any:
        return await task.local(**data)


class WorkerDispatcher(Dispatcher):
    """
    Runs tasks in a pool of spawned worker processes.

    Each worker initializes its own engine before accepting work and
    answers every request with exactly one result or error.
    """

    def __init__(self, max_workers: Optional[int] = None):
        self.max_workers = max_workers
        self._executor = None

    def _pool(self) -> ProcessPoolExecutor:
        if self._executor is None:
            self._executor = ProcessPoolExecutor(
                max_workers=self.max_workers,
                mp_context=multiprocessing.get_context('spawn'),
                initializer=_init_worker,
            )
            logger.info("Started worker pool (max_workers=%s)", self.max_workers or 'default')
        return self._executor

    async def dispatch(self, task: Task, data: Dict[str, Any]) -> Any:
        loop = asyncio.get_running_loop()
        logger.debug("Delegating %s to worker pool", task.path)
        try:
            return await loop.run_in_executor(self._pool(), _run_task, task.path, data)
        except UnikeysError:
            raise
        except BrokenProcessPool as e:
            self.shutdown(wait=False)
            raise DelegationError(f"Worker pool unavailable: {e}")
        except Exception as e:
            raise DelegationError(f"Worker rejected {task.path}: {e}")

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None


def _init_worker() -> None:
    global _in_worker
    _in_worker = True
    asyncio.run(engine.init())


def _run_task(path: str, data: Dict[str, Any]) -> Any:
    module_name, _, func_name = path.partition(':')
    func = getattr(importlib.import_module(module_name), func_name)
    result = func(**data)
    if asyncio.iscoroutine(result):
        result = asyncio.run(result)
    return result


def get_local_dispatcher() -> LocalDispatcher:
    global _local_dispatcher
    if _local_dispatcher is None:
        _local_dispatcher = LocalDispatcher()
    return _local_dispatcher


def get_worker_dispatcher() -> WorkerDispatcher:
    global _worker_dispatcher
    if _worker_dispatcher is None:
        _worker_dispatcher = WorkerDispatcher(get_settings().max_workers)
    return _worker_dispatcher


def select_dispatcher() -> Dispatcher:
    """
    Pick the dispatcher for one call.

    Work is delegated only when this is neither the primary context nor
    a worker; otherwise it runs locally.
    """
    if not is_primary_context() and not is_worker_context():
        return get_worker_dispatcher()
    return get_local_dispatcher()


def shutdown_workers(wait: bool = True) -> None:
    """Stop the shared worker pool, if one was started."""
    global _worker_dispatcher
    if _worker_dispatcher is not None:
        _worker_dispatcher.shutdown(wait=wait)
        _worker_dispatcher = None
