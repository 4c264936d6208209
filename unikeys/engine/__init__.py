"""
Native Engine Package

This package wraps the pycryptodomex primitives behind a narrow call
contract: every primitive returns an EngineResult instead of raising,
and the process-wide engine must be initialized before first use.
"""

from .hashes import StringTypes, hash_type, digest
from .native import EngineResult, KeyType, PrivateKeyImpl, NativeEngine, engine, pbkdf2

__all__ = [
    'StringTypes', 'hash_type', 'digest',
    'EngineResult', 'KeyType', 'PrivateKeyImpl', 'NativeEngine', 'engine', 'pbkdf2',
]
