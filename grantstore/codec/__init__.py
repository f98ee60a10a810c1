"""
Value codec package for the grant store.
"""

from .codec import (
    ValueCodec,
    encode_map,
    decode_map,
    TYPE_KEY,
    VALUE_KEY,
)

__all__ = [
    "ValueCodec",
    "encode_map",
    "decode_map",
    "TYPE_KEY",
    "VALUE_KEY",
]
