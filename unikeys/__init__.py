"""
unikeys - RSA Key Management and Secure Serialization

This library manages RSA private/public key pairs on top of the
pycryptodomex primitives, with portable binary serialization and
password protection.

Key Features:
- Key generation, packing and unpacking (plain or password-protected)
- RSASSA-PSS signatures and RSAES-OAEP decryption
- Self-verifying extended signatures
- PBKDF2 key derivation with worker-process delegation
- Per-operation key handles that never outlive a single call

"""

__version__ = '0.1.0'
__author__ = 'unikeys Team'

from .errors import (
    UnikeysError,
    InvalidParameterError,
    NativeError,
    DecodeError,
    DelegationError,
)
from .pki import PrivateKey, PublicKey, AbstractKey, KeyType, ExtendedSignature, derive

__all__ = [
    'PrivateKey', 'PublicKey', 'AbstractKey', 'KeyType', 'ExtendedSignature', 'derive',
    'UnikeysError', 'InvalidParameterError', 'NativeError', 'DecodeError', 'DelegationError',
]
