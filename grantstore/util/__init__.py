"""
Utility package for the grant store.
"""

from .resolver import (
    DEFAULT_SCOPE_DELIMITER,
    resolve_grant_type,
    resolve_scopes,
    join_scopes,
)

from .config import (
    load_config_from_env,
    load_config_file,
    parse_bool,
    parse_duration,
    parse_duration_string,
)

__all__ = [
    "DEFAULT_SCOPE_DELIMITER",
    "resolve_grant_type",
    "resolve_scopes",
    "join_scopes",
    "load_config_from_env",
    "load_config_file",
    "parse_bool",
    "parse_duration",
    "parse_duration_string",
]
