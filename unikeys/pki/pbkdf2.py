"""
Password-Based Key Derivation

This module derives symmetric key material from a password with
PBKDF2-HMAC. Calls made from an embedded context are re-issued in a
worker process; primary and worker contexts compute directly.
"""

import logging
from typing import Optional, Union

from ..config import get_settings
from ..dispatch import Task, select_dispatcher
from ..engine import hashes
from ..engine.native import engine, pbkdf2
from ..errors import InvalidParameterError, NativeError

logger = logging.getLogger(__name__)


async def derive(hash_kind: str,
                 password: Union[str, bytes] = None,
                 salt: Union[str, bytes] = None,
                 key_length: int = None,
                 iterations: Optional[int] = None,
                 rounds: Optional[int] = None) -> bytes:
    """
    Derive a key from a password.

    Args:
        hash_kind: HMAC hash name, e.g. 'sha256'
        password: The password; str is UTF-8 encoded
        salt: The salt; str is UTF-8 encoded
        key_length: Length of the derived key in bytes
        iterations: Iteration count (default from settings, 5000)
        rounds: Alias of iterations

    Returns:
        The derived key, exactly key_length bytes

    Raises:
        InvalidParameterError: If the hash or options are invalid;
            nothing is dispatched in that case
        DelegationError: If a worker was needed and failed
    """
    hashes.hash_type(hash_kind)

    if iterations is None:
        iterations = rounds
    for name, value in (('password', password), ('salt', salt)):
        if not isinstance(value, (str, bytes, bytearray)):
            raise InvalidParameterError(f"{name} must be str or bytes")
    if not _positive_int(key_length):
        raise InvalidParameterError("key_length must be a positive integer")
    if iterations is not None and not _positive_int(iterations):
        raise InvalidParameterError("iterations must be a positive integer")

    data = {
        'hash_kind': hash_kind,
        'password': password if isinstance(password, str) else bytes(password),
        'salt': salt if isinstance(salt, str) else bytes(salt),
        'key_length': key_length,
        'iterations': iterations,
    }
    dispatcher = select_dispatcher()
    logger.debug("Deriving %d-byte %s key via %s", key_length, hash_kind, type(dispatcher).__name__)
    return await dispatcher.dispatch(DERIVE_TASK, data)


async def _derive_local(hash_kind: str,
                        password: Union[str, bytes],
                        salt: Union[str, bytes],
                        key_length: int,
                        iterations: Optional[int]) -> bytes:
    hash_type = hashes.hash_type(hash_kind)
    count = iterations or get_settings().pbkdf2_rounds
    result = await engine.call(pbkdf2, hash_type, count, key_length, password, salt)
    derived = result.unwrap()
    if len(derived) != key_length:
        raise NativeError(f"Engine returned {len(derived)} bytes, expected {key_length}")
    return derived


def _positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


DERIVE_TASK = Task('unikeys.pki.pbkdf2:derive', _derive_local)


if __name__ == "__main__":
    import asyncio

    key = asyncio.run(derive('sha256', password='secure_password_example', salt='salt', key_length=32))
    print(f"Derived key: {key.hex()}")
