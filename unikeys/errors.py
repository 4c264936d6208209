"""
Error Types

All failures raised by the library derive from UnikeysError. Parameter
and decoding errors are also ValueErrors, matching how the primitives
underneath report bad input.
"""


class UnikeysError(Exception):
    """Base class for every error raised by unikeys."""


class InvalidParameterError(UnikeysError, ValueError):
    """Unsupported hash name or malformed options; raised before any native or worker call."""


class NativeError(UnikeysError):
    """A native primitive reported failure."""


class DecodeError(UnikeysError, ValueError):
    """A serialized blob could not be decoded (corrupt data or wrong password)."""


class DelegationError(UnikeysError):
    """A worker process rejected the request or could not be reached."""
