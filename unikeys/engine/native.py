"""
Native Engine Implementation

This module binds the RSA, PBKDF2 and AES-GCM primitives of pycryptodomex
into the call contract used by the key classes. Primitives never raise on
bad input: they return an EngineResult whose error string is empty on
success, and callers convert failures with EngineResult.unwrap().
"""

import asyncio
import functools
import logging
import secrets
from enum import IntEnum
from types import ModuleType
from typing import Any, Callable, List, NamedTuple, Optional, Union

from Cryptodome.Cipher import AES, PKCS1_OAEP
from Cryptodome.Hash import SHA256
from Cryptodome.Protocol.KDF import PBKDF2
from Cryptodome.PublicKey import RSA
from Cryptodome.Signature import pss
from Cryptodome.Signature.pss import MGF1
from Cryptodome.Util.number import GCD, bytes_to_long, getPrime, inverse, long_to_bytes

from .. import codec
from ..errors import DecodeError, NativeError

logger = logging.getLogger(__name__)

PUBLIC_EXPONENT = 65537
MIN_KEY_BITS = 512

# Password wrapping parameters
WRAP_SALT_SIZE = 16
WRAP_NONCE_SIZE = 12
WRAP_KEY_SIZE = 32  # AES-256
MAX_WRAP_ROUNDS = 10000000  # PBKDF2 ceiling, also bounds rounds read from a blob

_SELF_TEST_DIGEST = 'ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad'


class KeyType(IntEnum):
    """Leading tag of every serialized key blob."""
    PRIVATE = 0
    PUBLIC = 1
    PRIVATE_PASSWORD = 2


class EngineResult(NamedTuple):
    """Outcome of a primitive: an empty error string means success."""
    error: str
    value: Any = None

    @property
    def ok(self) -> bool:
        return self.error == ''

    def unwrap(self, error_class: type = NativeError) -> Any:
        """
        Return the value or raise.

        Args:
            error_class: Exception type raised on failure

        Raises:
            error_class: If the primitive reported an error
        """
        if self.error:
            raise error_class(self.error)
        return self.value


def success(value: Any) -> EngineResult:
    return EngineResult('', value)


def failure(message: str) -> EngineResult:
    return EngineResult(message or 'engine error')


def _guarded(func: Callable) -> Callable:
    """Turn exceptions raised by a primitive on bad input into failed results."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> EngineResult:
        try:
            return func(*args, **kwargs)
        except (ValueError, TypeError, IndexError, KeyError) as e:
            return failure(str(e))
    return wrapper


def valid_rounds(rounds: Any) -> bool:
    """Whether rounds is a usable PBKDF2 iteration count for a wrapped key."""
    return (isinstance(rounds, int) and not isinstance(rounds, bool)
            and 0 < rounds <= MAX_WRAP_ROUNDS)


def _to_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, str):
        return value.encode('utf-8')
    return bytes(value)


def _mgf1(hash_module: ModuleType) -> Callable[[bytes, int], bytes]:
    return lambda seed, length: MGF1(seed, length, hash_module)


def max_salt_length(bit_strength: int, hash_module: ModuleType) -> int:
    """
    Largest PSS salt a modulus of the given size can carry.

    Args:
        bit_strength: Modulus size in bits
        hash_module: Hash used for the PSS digest

    Returns:
        The salt length in bytes

    Raises:
        ValueError: If the modulus is too small for the hash
    """
    em_len = (bit_strength - 1 + 7) // 8
    salt_length = em_len - hash_module.digest_size - 2
    if salt_length < 0:
        raise ValueError(f"{bit_strength}-bit key is too small for a {hash_module.digest_size * 8}-bit hash")
    return salt_length


def min_pss_bits(hash_module: ModuleType) -> int:
    """Smallest modulus, in bits, that fits a PSS encoding with the given hash."""
    return 8 * (hash_module.digest_size + 2) - 6


def _construct(e: int, p: int, q: int) -> RSA.RsaKey:
    """Rebuild a full RSA key from its public exponent and primes."""
    if p == q:
        raise ValueError("RSA primes must differ")
    n = p * q
    lcm = (p - 1) * (q - 1) // GCD(p - 1, q - 1)
    d = inverse(e, lcm)
    # consistency_check verifies p * q == n, primality and e * d == 1 mod lcm
    return RSA.construct((n, e, d, p, q), consistency_check=True)


def _generate_rsa(bits: int) -> RSA.RsaKey:
    if bits >= 1024:
        return RSA.generate(bits, e=PUBLIC_EXPONENT)

    # RSA.generate refuses moduli below 1024 bits
    while True:
        p = getPrime(bits - bits // 2)
        q = getPrime(bits // 2)
        if p == q or (p * q).bit_length() != bits:
            continue
        if GCD(PUBLIC_EXPONENT, (p - 1) * (q - 1)) != 1:
            continue
        return _construct(PUBLIC_EXPONENT, p, q)


def _encode_private(key: RSA.RsaKey) -> bytes:
    return codec.dump([
        int(KeyType.PRIVATE),
        long_to_bytes(key.e),
        long_to_bytes(key.p),
        long_to_bytes(key.q),
    ])


def _decode_fields(packed: bytes) -> List[Any]:
    fields = codec.load(packed)
    if not isinstance(fields, list) or not fields:
        raise DecodeError("Key blob must be a non-empty sequence")
    return fields


def _decode_private(packed: bytes) -> RSA.RsaKey:
    fields = _decode_fields(packed)
    if fields[0] == KeyType.PRIVATE_PASSWORD:
        raise DecodeError("Key blob is password-protected")
    if fields[0] != KeyType.PRIVATE or len(fields) != 4:
        raise DecodeError("Not a private key blob")
    if not all(isinstance(field, bytes) for field in fields[1:]):
        raise DecodeError("Private key fields must be bytes")
    e, p, q = (bytes_to_long(field) for field in fields[1:])
    if min(e, p, q) <= 1:
        raise DecodeError("Invalid RSA parameters")
    return _construct(e, p, q)


def _wrap_key(password: Union[str, bytes], salt: bytes, rounds: int) -> bytes:
    if not password:
        raise ValueError("Password must not be empty")
    return PBKDF2(_to_bytes(password), salt, WRAP_KEY_SIZE, count=rounds, hmac_hash_module=SHA256)


class PrivateKeyImpl:
    """
    Native RSA key handle.

    A handle is owned by exactly one operation and released once with
    delete(). Any access after release raises NativeError.
    """

    def __init__(self, rsa_key: RSA.RsaKey):
        self._key = rsa_key

    @property
    def released(self) -> bool:
        return self._key is None

    def _rsa(self) -> RSA.RsaKey:
        if self._key is None:
            raise NativeError("Key handle used after release")
        return self._key

    def delete(self) -> None:
        """Release the handle. Releasing twice is an error."""
        if self._key is None:
            raise NativeError("Key handle released twice")
        self._key = None

    def get_n(self) -> int:
        return self._rsa().n

    def get_e(self) -> int:
        return self._rsa().e

    def get_p(self) -> int:
        return self._rsa().p

    def get_q(self) -> int:
        return self._rsa().q

    @classmethod
    @_guarded
    def from_bytes(cls, packed: bytes) -> EngineResult:
        """Parse an unencrypted private key blob."""
        return success(cls(_decode_private(packed)))

    @classmethod
    @_guarded
    def unpack_with_password(cls, packed: bytes, password: Union[str, bytes]) -> EngineResult:
        """
        Parse a password-protected private key blob.

        Unencrypted blobs are accepted as well; the password is then unused.
        """
        fields = _decode_fields(packed)
        if fields[0] == KeyType.PRIVATE:
            return success(cls(_decode_private(packed)))
        if fields[0] != KeyType.PRIVATE_PASSWORD or len(fields) != 6:
            raise DecodeError("Not a password-protected key blob")

        _, rounds, salt, nonce, tag, ciphertext = fields
        if not valid_rounds(rounds):
            raise DecodeError(f"Rounds must be an integer between 1 and {MAX_WRAP_ROUNDS}")
        if not all(isinstance(field, bytes) for field in (salt, nonce, tag, ciphertext)):
            raise DecodeError("Malformed password-protected key blob")
        cipher = AES.new(_wrap_key(password, salt, rounds), AES.MODE_GCM, nonce=nonce)
        try:
            plain = cipher.decrypt_and_verify(ciphertext, tag)
        except ValueError:
            raise DecodeError("Wrong password or corrupted key data")
        return success(cls(_decode_private(plain)))

    @classmethod
    @_guarded
    def generate(cls, bits: int) -> EngineResult:
        """Generate a new key with a modulus of exactly `bits` bits."""
        if not isinstance(bits, int) or bits < MIN_KEY_BITS:
            raise ValueError(f"Key strength must be an integer of at least {MIN_KEY_BITS} bits")
        return success(cls(_generate_rsa(bits)))

    @_guarded
    def sign(self,
             data: bytes,
             hash_type: ModuleType,
             mgf1_type: ModuleType,
             salt_length: Optional[int] = None) -> EngineResult:
        """
        RSASSA-PSS signature.

        Args:
            data: Message to sign
            hash_type: Hash for the message digest
            mgf1_type: Hash for the MGF1 mask
            salt_length: Salt size in bytes; None picks the maximum

        Returns:
            EngineResult carrying the signature bytes
        """
        key = self._rsa()
        if salt_length is None:
            salt_length = max_salt_length(key.size_in_bits(), hash_type)
        signer = pss.new(key, mask_func=_mgf1(mgf1_type), salt_bytes=salt_length)
        return success(signer.sign(hash_type.new(data)))

    @_guarded
    def sign_with_custom_salt(self,
                              data: bytes,
                              hash_type: ModuleType,
                              mgf1_type: ModuleType,
                              salt: bytes) -> EngineResult:
        """RSASSA-PSS signature with a caller-supplied salt."""
        salt = bytes(salt)
        signer = pss.new(self._rsa(),
                         mask_func=_mgf1(mgf1_type),
                         salt_bytes=len(salt),
                         rand_func=lambda size: salt[:size])
        return success(signer.sign(hash_type.new(data)))

    @_guarded
    def decrypt(self, data: bytes, hash_type: ModuleType) -> EngineResult:
        """RSAES-OAEP decryption."""
        cipher = PKCS1_OAEP.new(self._rsa(), hashAlgo=hash_type)
        return success(cipher.decrypt(data))

    @_guarded
    def pack(self) -> EngineResult:
        """Serialize to the canonical unencrypted form."""
        return success(_encode_private(self._rsa()))

    @_guarded
    def pack_with_password(self, password: Union[str, bytes], rounds: int) -> EngineResult:
        """
        Serialize and encrypt with AES-256-GCM under a PBKDF2-derived key.

        Args:
            password: Password protecting the blob
            rounds: PBKDF2-HMAC-SHA256 iteration count

        Returns:
            EngineResult carrying the protected blob
        """
        if not valid_rounds(rounds):
            raise ValueError(f"Rounds must be an integer between 1 and {MAX_WRAP_ROUNDS}")
        salt = secrets.token_bytes(WRAP_SALT_SIZE)
        nonce = secrets.token_bytes(WRAP_NONCE_SIZE)
        cipher = AES.new(_wrap_key(password, salt, rounds), AES.MODE_GCM, nonce=nonce)
        ciphertext, tag = cipher.encrypt_and_digest(_encode_private(self._rsa()))
        return success(codec.dump([int(KeyType.PRIVATE_PASSWORD), rounds, salt, nonce, tag, ciphertext]))


@_guarded
def verify_pss(n: int,
               e: int,
               data: bytes,
               signature: bytes,
               hash_type: ModuleType,
               mgf1_type: ModuleType,
               salt_length: Optional[int] = None) -> EngineResult:
    """RSASSA-PSS verification; the result value is True or False."""
    if salt_length is None:
        salt_length = max_salt_length(n.bit_length(), hash_type)
    verifier = pss.new(RSA.construct((n, e)), mask_func=_mgf1(mgf1_type), salt_bytes=salt_length)
    try:
        verifier.verify(hash_type.new(data), signature)
    except (ValueError, TypeError):
        return success(False)
    return success(True)


@_guarded
def encrypt_oaep(n: int, e: int, data: bytes, hash_type: ModuleType) -> EngineResult:
    """RSAES-OAEP encryption with a public key."""
    cipher = PKCS1_OAEP.new(RSA.construct((n, e)), hashAlgo=hash_type)
    return success(cipher.encrypt(data))


@_guarded
def pbkdf2(hash_type: ModuleType,
           rounds: int,
           key_length: int,
           password: Union[str, bytes],
           salt: Union[str, bytes]) -> EngineResult:
    """Raw PBKDF2-HMAC computation."""
    return success(PBKDF2(_to_bytes(password), _to_bytes(salt), key_length,
                          count=rounds, hmac_hash_module=hash_type))


def _self_test() -> None:
    if SHA256.new(b'abc').hexdigest() != _SELF_TEST_DIGEST:
        raise NativeError("Native engine self-test failed")


class NativeEngine:
    """
    Process-wide engine readiness.

    Callers await init() before the first primitive; call() does so
    implicitly and runs the primitive off the event loop.
    """

    def __init__(self):
        self._ready = False

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def init(self) -> None:
        if self._ready:
            return
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, _self_test)
        self._ready = True
        logger.debug("Native engine ready")

    async def call(self, func: Callable[..., EngineResult], *args) -> EngineResult:
        """Run a primitive in the default executor and return its result."""
        await self.init()
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))


engine = NativeEngine()
