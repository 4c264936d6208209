"""
Private Key

RSA private keys that hold only their canonical serialized form and
public metadata. Each operation loads a fresh native handle, uses it,
and releases it before returning, so no handle outlives a single call
and no two calls ever share one.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from collections.abc import Mapping
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Union

from Cryptodome.Util.number import long_to_bytes

from .. import codec
from ..config import get_settings
from ..engine import hashes
from ..engine.native import (MAX_WRAP_ROUNDS, MIN_KEY_BITS, KeyType, PrivateKeyImpl, engine,
                             min_pss_bits, valid_rounds)
from ..errors import DecodeError, InvalidParameterError
from .abstract_key import AbstractKey
from .public_key import PublicKey

logger = logging.getLogger(__name__)

Password = Union[str, bytes]


def _release(key: PrivateKeyImpl) -> None:
    key.delete()
    logger.debug("Released key handle")


def _parse_exponent(name: str, value: Union[str, int]) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        number = value
    else:
        try:
            number = int(value, 16)
        except (TypeError, ValueError):
            raise InvalidParameterError(f"Exponent '{name}' must be a hex string")
    if number <= 1:
        raise InvalidParameterError(f"Exponent '{name}' is out of range")
    return number


class PrivateKey(AbstractKey):
    """
    RSA private key.

    Instances are built with unpack(), generate() or unpack_exponents();
    the constructor takes the load/unload pair that produces and releases
    a native handle.
    """

    def __init__(self,
                 load: Callable[[], Awaitable[PrivateKeyImpl]],
                 unload: Callable[[PrivateKeyImpl], None]):
        self.load = load
        self.unload = unload
        self.public_key = None
        self.n = None
        self.e = None
        self.p = None
        self.q = None
        self.bit_strength = None
        self._fingerprint = None

    async def load_properties(self, key: PrivateKeyImpl) -> None:
        """Cache public metadata and the primes from a loaded handle."""
        self.public_key = await PublicKey.from_private(key)
        self.n = self.public_key.n
        self.e = self.public_key.e
        self.p = key.get_p()
        self.q = key.get_q()
        self.bit_strength = self.public_key.bit_strength
        self._fingerprint = self.public_key.fingerprint

    @property
    def fingerprint(self) -> bytes:
        return self._fingerprint

    @asynccontextmanager
    async def _loaded(self) -> AsyncIterator[PrivateKeyImpl]:
        key = await self.load()
        try:
            yield key
        finally:
            self.unload(key)

    async def sign(self,
                   data: bytes,
                   pss_hash: str = 'sha1',
                   mgf1_hash: str = 'sha1',
                   salt_length: Optional[int] = None,
                   salt: Optional[bytes] = None) -> bytes:
        """
        Sign data with RSASSA-PSS.

        Args:
            data: Message to sign
            pss_hash: Hash for the message digest
            mgf1_hash: Hash for the MGF1 mask
            salt_length: Salt size in bytes; None lets the engine use the maximum
            salt: Explicit salt; when given, salt_length is ignored

        Returns:
            The signature bytes
        """
        hash_type = hashes.hash_type(pss_hash)
        mgf1_type = hashes.hash_type(mgf1_hash)
        if salt_length is not None and (not isinstance(salt_length, int) or salt_length < 0):
            raise InvalidParameterError("salt_length must be a non-negative integer")

        async with self._loaded() as key:
            if salt is not None:
                result = await engine.call(key.sign_with_custom_salt, data, hash_type, mgf1_type, salt)
            else:
                result = await engine.call(key.sign, data, hash_type, mgf1_type, salt_length)
        return result.unwrap()

    async def sign_extended(self, data: bytes) -> bytes:
        """
        Produce a self-contained extended signature.

        The signed payload binds this key's fingerprint, the SHA-512 of
        data, the creation time and the packed public key, so the result
        can be verified without fetching the key separately.

        Returns:
            Framed {exts, sign} bytes
        """
        min_bits = min_pss_bits(hashes.hash_type('sha512'))
        if self.bit_strength < min_bits:
            raise InvalidParameterError(f"Extended signatures need a modulus of at least {min_bits} bits")

        target = codec.dump({
            'key': self.fingerprint,
            'sha512': hashes.digest('sha512', data),
            'created_at': datetime.now(timezone.utc),
            'pub_key': self.public_key.packed(),
        })
        signature = await self.sign(target, pss_hash='sha512', mgf1_hash='sha1')
        return codec.dump({'exts': target, 'sign': signature})

    async def decrypt(self, data: bytes, oaep_hash: str = 'sha1') -> bytes:
        """Decrypt RSAES-OAEP ciphertext."""
        hash_type = hashes.hash_type(oaep_hash)
        async with self._loaded() as key:
            result = await engine.call(key.decrypt, data, hash_type)
        return result.unwrap()

    async def pack(self,
                   options: Union[Password, Mapping[str, Any], None] = None,
                   rounds: Optional[int] = None) -> bytes:
        """
        Serialize the key.

        Args:
            options: A password, or a mapping with 'password' and 'rounds'
            rounds: PBKDF2 rounds for password protection (default 160000)

        Returns:
            The canonical form, or the password-protected form if a
            password is given
        """
        password = None
        if isinstance(options, (str, bytes)):
            password = options
        elif isinstance(options, Mapping):
            password = options.get('password')
            rounds = options.get('rounds', rounds)
        elif options is not None:
            raise InvalidParameterError("pack() options must be a password or a mapping")
        if rounds is not None and not valid_rounds(rounds):
            raise InvalidParameterError(f"rounds must be an integer between 1 and {MAX_WRAP_ROUNDS}")

        async with self._loaded() as key:
            return await PrivateKey.pack_boss(key, password=password, rounds=rounds)

    @staticmethod
    async def pack_boss(key: PrivateKeyImpl,
                        password: Optional[Password] = None,
                        rounds: Optional[int] = None) -> bytes:
        """Serialize a loaded handle, optionally under a password."""
        if not password:
            result = await engine.call(key.pack)
        else:
            if rounds is None:
                rounds = get_settings().pack_rounds
            result = await engine.call(key.pack_with_password, password, rounds)
        return result.unwrap()

    @staticmethod
    async def unpack_boss(packed: bytes, password: Optional[Password] = None) -> PrivateKeyImpl:
        """
        Parse a serialized key into a new handle owned by the caller.

        Raises:
            DecodeError: On corrupt data or a wrong password
        """
        if password:
            result = await engine.call(PrivateKeyImpl.unpack_with_password, packed, password)
        else:
            result = await engine.call(PrivateKeyImpl.from_bytes, packed)
        return result.unwrap(DecodeError)

    @classmethod
    async def unpack(cls, options: Any, password: Optional[Password] = None) -> 'PrivateKey':
        """
        Build a key from a handle, raw exponents or a serialized blob.

        Args:
            options: One of
                - a PrivateKeyImpl handle, or {'key': handle}; the handle is consumed
                - {'e': hex, 'p': hex, 'q': hex}
                - serialized bytes, or {'bin': bytes, 'password': ...}
            password: Password for a protected blob

        Returns:
            A new PrivateKey holding no native handle

        Raises:
            DecodeError: If the blob is corrupt or the password is wrong
            InvalidParameterError: If options have none of the shapes above
        """
        key = await cls._resolve_handle(options, password)
        if key.released:
            raise InvalidParameterError("Cannot unpack a released key handle")
        try:
            raw = await cls.pack_boss(key)
            instance = cls(lambda: cls.unpack_boss(raw), _release)
            await instance.load_properties(key)
        finally:
            _release(key)
        logger.debug("Unpacked %d-bit key %s", instance.bit_strength, instance.fingerprint.hex()[:16])
        return instance

    @classmethod
    async def _resolve_handle(cls, options: Any, password: Optional[Password]) -> PrivateKeyImpl:
        if isinstance(options, PrivateKeyImpl):
            return options
        if isinstance(options, (bytes, bytearray, memoryview)):
            return await cls.unpack_boss(bytes(options), password)
        if isinstance(options, Mapping):
            if options.get('key') is not None:
                if not isinstance(options['key'], PrivateKeyImpl):
                    raise InvalidParameterError("'key' must be a native key handle")
                return options['key']
            if options.get('p') is not None and options.get('q') is not None:
                return await cls._exponents_handle(options.get('e'), options['p'], options['q'])
            if options.get('bin') is not None:
                return await cls.unpack_boss(bytes(options['bin']), options.get('password', password))
        raise InvalidParameterError("Cannot unpack a private key from the given options")

    @classmethod
    async def _exponents_handle(cls, e: Union[str, int], p: Union[str, int], q: Union[str, int]) -> PrivateKeyImpl:
        if e is None:
            raise InvalidParameterError("Public exponent 'e' is required")
        packed = codec.dump([
            int(KeyType.PRIVATE),
            long_to_bytes(_parse_exponent('e', e)),
            long_to_bytes(_parse_exponent('p', p)),
            long_to_bytes(_parse_exponent('q', q)),
        ])
        return await cls.unpack_boss(packed)

    @classmethod
    async def unpack_exponents(cls, e: Union[str, int], p: Union[str, int], q: Union[str, int]) -> 'PrivateKey':
        """
        Rebuild a key from hex-encoded e, p and q; n is derived.

        Raises:
            InvalidParameterError: If a value is not a hex string
            DecodeError: If the values do not form a valid RSA key
        """
        return await cls.unpack({'e': e, 'p': p, 'q': q})

    @classmethod
    async def generate(cls, strength: int = 2048) -> 'PrivateKey':
        """
        Generate a new key.

        Args:
            strength: Modulus size in bits (at least 512)

        Returns:
            A fully initialized PrivateKey
        """
        if not isinstance(strength, int) or isinstance(strength, bool) or strength < MIN_KEY_BITS:
            raise InvalidParameterError(f"strength must be an integer of at least {MIN_KEY_BITS}")

        result = await engine.call(PrivateKeyImpl.generate, strength)
        key = result.unwrap()
        logger.info("Generated %d-bit RSA key", strength)
        return await cls.unpack(key)

    def __repr__(self) -> str:
        fingerprint = self._fingerprint.hex() if self._fingerprint else None
        return f"PrivateKey(bits={self.bit_strength}, fingerprint={fingerprint})"
