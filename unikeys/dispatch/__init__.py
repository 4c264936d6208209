"""
Dispatch Package

This package decides whether an operation runs in the calling process
or is delegated to a worker process, and implements both strategies.
"""

from .dispatcher import (
    Task,
    Dispatcher,
    LocalDispatcher,
    WorkerDispatcher,
    is_primary_context,
    is_worker_context,
    select_dispatcher,
    shutdown_workers,
)

__all__ = [
    'Task', 'Dispatcher', 'LocalDispatcher', 'WorkerDispatcher',
    'is_primary_context', 'is_worker_context', 'select_dispatcher', 'shutdown_workers',
]
