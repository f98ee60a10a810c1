"""
Common package providing shared helpers for the grant store.
"""

from .utils import (
    as_utc,
    generate_id,
    get_current_time,
    mask_token,
    parse_iso_timestamp,
    chunk_list,
)

__all__ = [
    "as_utc",
    "generate_id",
    "get_current_time",
    "mask_token",
    "parse_iso_timestamp",
    "chunk_list",
]
