"""
Public Key Infrastructure Package

This package implements RSA private and public keys, password-based
key derivation and extended signatures.
"""

from .abstract_key import AbstractKey
from .public_key import PublicKey
from .private_key import PrivateKey
from .pbkdf2 import derive
from .extended_signature import ExtendedSignature, extract_key_id
from ..engine.native import KeyType

__all__ = ['AbstractKey', 'PublicKey', 'PrivateKey', 'KeyType', 'derive', 'ExtendedSignature', 'extract_key_id']
