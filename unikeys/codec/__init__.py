"""
Serialization Codec Package

This package frames structured values (maps, sequences, byte strings
and timestamps) into compact binary payloads using msgpack.
"""

from .framing import dump, load

__all__ = ['dump', 'load']
