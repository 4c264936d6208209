"""
Extended Signatures

Parsing and verification of the self-contained signatures produced by
PrivateKey.sign_extended(). The signer's public key travels inside the
signed payload, so verification needs nothing but the signature and
the signed data.
"""

import hmac
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .. import codec
from ..engine import hashes
from ..errors import DecodeError
from .public_key import PublicKey

PSS_HASH = 'sha512'
MGF1_HASH = 'sha1'


@dataclass(frozen=True)
class ExtendedSignature:
    """Decoded contents of an extended signature."""
    key: bytes
    sha512: bytes
    created_at: datetime
    public_key: PublicKey
    exts: bytes
    signature: bytes

    @classmethod
    def parse(cls, packed: bytes) -> 'ExtendedSignature':
        """
        Decode an extended signature without verifying it.

        Raises:
            DecodeError: If the framing or any field is malformed
        """
        outer = codec.load(packed)
        if not isinstance(outer, dict) or not isinstance(outer.get('exts'), bytes) \
                or not isinstance(outer.get('sign'), bytes):
            raise DecodeError("Extended signature must carry 'exts' and 'sign' byte strings")

        payload = codec.load(outer['exts'])
        if not isinstance(payload, dict):
            raise DecodeError("Extended signature payload must be a map")
        try:
            key, digest, created_at, pub_key = (
                payload['key'], payload['sha512'], payload['created_at'], payload['pub_key'])
        except KeyError as e:
            raise DecodeError(f"Extended signature payload is missing {e}")
        if not isinstance(key, bytes) or not isinstance(digest, bytes):
            raise DecodeError("Extended signature key and digest must be byte strings")
        if not isinstance(created_at, datetime):
            raise DecodeError("Extended signature timestamp is malformed")

        return cls(
            key=key,
            sha512=digest,
            created_at=created_at,
            public_key=PublicKey.unpack(pub_key),
            exts=outer['exts'],
            signature=outer['sign'],
        )

    @classmethod
    async def verify(cls, packed: bytes, data: bytes) -> Optional['ExtendedSignature']:
        """
        Verify an extended signature against the signed data.

        Args:
            packed: Output of PrivateKey.sign_extended()
            data: The data that was signed

        Returns:
            The decoded signature if it is valid for data, otherwise None

        Raises:
            DecodeError: If the signature is malformed
        """
        signature = cls.parse(packed)
        if not hmac.compare_digest(signature.key, signature.public_key.fingerprint):
            return None
        if not hmac.compare_digest(signature.sha512, hashes.digest(PSS_HASH, data)):
            return None
        valid = await signature.public_key.verify(signature.exts, signature.signature,
                                                  pss_hash=PSS_HASH, mgf1_hash=MGF1_HASH)
        return signature if valid else None


def extract_key_id(packed: bytes) -> bytes:
    """Return the signer fingerprint of an extended signature without verifying it."""
    return ExtendedSignature.parse(packed).key
