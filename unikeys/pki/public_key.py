"""
Public Key

RSA public keys: packed canonical form, fingerprints, PSS verification
and OAEP encryption.
"""

from typing import Optional

from Cryptodome.Hash import SHA256
from Cryptodome.Util.number import bytes_to_long, long_to_bytes

from .. import codec
from ..engine import hashes
from ..engine.native import KeyType, PrivateKeyImpl, encrypt_oaep, engine, verify_pss
from ..errors import DecodeError
from .abstract_key import AbstractKey

# Leading byte of RSA key fingerprints
FINGERPRINT_TAG = b'\x07'


def compute_fingerprint(n: int, e: int) -> bytes:
    """
    Compute the fingerprint of an RSA public key.

    Args:
        n: Modulus
        e: Public exponent

    Returns:
        FINGERPRINT_TAG followed by SHA-256(e || n), 33 bytes
    """
    return FINGERPRINT_TAG + SHA256.new(long_to_bytes(e) + long_to_bytes(n)).digest()


class PublicKey(AbstractKey):
    """Immutable RSA public key."""

    def __init__(self, n: int, e: int):
        self._n = n
        self._e = e
        self._fingerprint = compute_fingerprint(n, e)

    @classmethod
    async def from_private(cls, key: PrivateKeyImpl) -> 'PublicKey':
        """Build the public half of a loaded private key handle."""
        await engine.init()
        return cls(key.get_n(), key.get_e())

    @classmethod
    def unpack(cls, packed: bytes) -> 'PublicKey':
        """
        Decode a public key produced by packed().

        Raises:
            DecodeError: If the blob is not a valid public key
        """
        fields = codec.load(packed)
        if not isinstance(fields, list) or len(fields) != 3 or fields[0] != KeyType.PUBLIC:
            raise DecodeError("Not a public key blob")
        try:
            e, n = bytes_to_long(fields[1]), bytes_to_long(fields[2])
        except (TypeError, ValueError):
            raise DecodeError("Public key parameters must be byte strings")
        if n < 3 or e < 3:
            raise DecodeError("Invalid public key parameters")
        return cls(n, e)

    @property
    def n(self) -> int:
        return self._n

    @property
    def e(self) -> int:
        return self._e

    @property
    def bit_strength(self) -> int:
        return self._n.bit_length()

    @property
    def fingerprint(self) -> bytes:
        return self._fingerprint

    def packed(self) -> bytes:
        """Canonical serialized form."""
        return codec.dump([int(KeyType.PUBLIC), long_to_bytes(self._e), long_to_bytes(self._n)])

    async def verify(self,
                     data: bytes,
                     signature: bytes,
                     pss_hash: str = 'sha1',
                     mgf1_hash: str = 'sha1',
                     salt_length: Optional[int] = None) -> bool:
        """
        Verify an RSASSA-PSS signature.

        Args:
            data: Signed message
            signature: Signature to check
            pss_hash: Hash used for the message digest
            mgf1_hash: Hash used for the MGF1 mask
            salt_length: Salt size used when signing; None means the maximum

        Returns:
            True if the signature is valid, False otherwise
        """
        hash_type = hashes.hash_type(pss_hash)
        mgf1_type = hashes.hash_type(mgf1_hash)
        result = await engine.call(verify_pss, self._n, self._e, data, signature,
                                   hash_type, mgf1_type, salt_length)
        return result.unwrap()

    async def encrypt(self, data: bytes, oaep_hash: str = 'sha1') -> bytes:
        """Encrypt with RSAES-OAEP."""
        hash_type = hashes.hash_type(oaep_hash)
        result = await engine.call(encrypt_oaep, self._n, self._e, data, hash_type)
        return result.unwrap()

    def __eq__(self, other) -> bool:
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self._n == other._n and self._e == other._e

    def __hash__(self) -> int:
        return hash((self._n, self._e))

    def __repr__(self) -> str:
        return f"PublicKey(bits={self.bit_strength}, fingerprint={self._fingerprint.hex()})"
