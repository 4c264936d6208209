"""
Abstract Key

Capability contract shared by the public and private key classes.
"""

from abc import ABC, abstractmethod

from ..engine.native import KeyType


class AbstractKey(ABC):
    """Base class for RSA keys; subclasses must provide a fingerprint."""

    TYPE_PRIVATE = KeyType.PRIVATE
    TYPE_PUBLIC = KeyType.PUBLIC
    TYPE_PRIVATE_PASSWORD = KeyType.PRIVATE_PASSWORD

    @property
    @abstractmethod
    def fingerprint(self) -> bytes:
        """Stable identifier computed from the public parameters."""
