"""
Common utilities and helper functions for the grant store.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, List, Optional


DEFAULT_TOKEN_PREFIX_LENGTH = 6


def generate_id(prefix: str = "") -> str:
    """Generate a unique identifier with optional prefix."""
    unique_id = str(uuid.uuid4())
    return f"{prefix}{unique_id}" if prefix else unique_id


def get_current_time() -> datetime:
    """Get the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat a naive datetime as UTC; aware values are returned unchanged."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_iso_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp string.

    Naive timestamps are interpreted as UTC.
    """
    if not timestamp_str:
        return None
    try:
        value = datetime.fromisoformat(timestamp_str)
    except ValueError as e:
        raise ValueError(f"Invalid ISO timestamp format: {timestamp_str}") from e
    return as_utc(value)


def mask_token(token: Optional[str], visible_chars: int = DEFAULT_TOKEN_PREFIX_LENGTH,
               suffix: str = "...") -> str:
    """
    Reduce a token value to a short prefix safe for logs and error messages.

    Short values are masked completely so that no full token ever leaks.
    """
    if not token:
        return ""
    if len(token) <= visible_chars * 2:
        return "*" * min(len(token), visible_chars) + suffix
    return token[:visible_chars] + suffix


def chunk_list(lst: List[Any], chunk_size: int) -> List[List[Any]]:
    """Split a list into chunks of specified size."""
    if chunk_size <= 0:
        raise ValueError("Chunk size must be positive")

    return [lst[i:i + chunk_size] for i in range(0, len(lst), chunk_size)]
