"""
Hash Selection

Maps the symbolic hash names accepted by the public API onto the
pycryptodomex hash modules used by the engine.
"""

from types import ModuleType

from Cryptodome.Hash import SHA1, SHA256, SHA384, SHA512, SHA3_256, SHA3_384, SHA3_512

from ..errors import InvalidParameterError

StringTypes = {
    'sha1': SHA1,
    'sha256': SHA256,
    'sha384': SHA384,
    'sha512': SHA512,
    'sha3_256': SHA3_256,
    'sha3_384': SHA3_384,
    'sha3_512': SHA3_512,
}


def hash_type(name: str) -> ModuleType:
    """
    Resolve a symbolic hash name to the engine's hash module.

    Args:
        name: One of the keys of StringTypes

    Returns:
        The pycryptodomex hash module

    Raises:
        InvalidParameterError: If the name is not supported
    """
    try:
        return StringTypes[name]
    except (KeyError, TypeError):
        supported = ', '.join(sorted(StringTypes))
        raise InvalidParameterError(f"Unsupported hash '{name}', expected one of: {supported}")


def digest(name: str, data: bytes) -> bytes:
    """Hash data with the named algorithm."""
    return hash_type(name).new(data).digest()
