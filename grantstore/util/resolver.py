"""
Grant type and scope resolution.

Grant types resolve against an open set: well-known values map onto the
canonical constants and anything else becomes an extension grant type.
Scopes parse as a delimited set.
"""

from typing import Iterable, Optional, Set, Union

from ..types.grant import AuthorizationGrantType


DEFAULT_SCOPE_DELIMITER = ","

_CANONICAL_GRANT_TYPES = {
    grant_type.value: grant_type
    for grant_type in (
        AuthorizationGrantType.AUTHORIZATION_CODE,
        AuthorizationGrantType.CLIENT_CREDENTIALS,
        AuthorizationGrantType.REFRESH_TOKEN,
        AuthorizationGrantType.DEVICE_CODE,
    )
}


def resolve_grant_type(value: Union[str, AuthorizationGrantType]) -> AuthorizationGrantType:
    """
    Resolve a stored grant type string.

    Args:
        value: Grant type string

    Returns:
        The canonical constant for well-known values, otherwise an
        extension grant type carrying exactly the given string

    Raises:
        ValueError: If value is empty
    """
    if isinstance(value, AuthorizationGrantType):
        return value
    if not value:
        raise ValueError("authorization grant type cannot be empty")
    return _CANONICAL_GRANT_TYPES.get(value) or AuthorizationGrantType(value)


def resolve_scopes(value: Optional[str], delimiter: str = DEFAULT_SCOPE_DELIMITER) -> Set[str]:
    """Parse a delimited scope string into a set; blank input yields an empty set."""
    if not value or not value.strip():
        return set()
    return {scope.strip() for scope in value.split(delimiter) if scope.strip()}


def join_scopes(scopes: Optional[Iterable[str]], delimiter: str = DEFAULT_SCOPE_DELIMITER) -> str:
    """
    Flatten a scope set into its stored form, sorted for stable output.

    Raises:
        ValueError: If a scope would not parse back unchanged: it is empty,
            has surrounding whitespace or contains the delimiter
    """
    if not scopes:
        return ""
    for scope in scopes:
        if not scope or scope != scope.strip():
            raise ValueError(f"scope {scope!r} is empty or has surrounding whitespace")
        if delimiter in scope:
            raise ValueError(f"scope {scope!r} contains the delimiter {delimiter!r}")
    return delimiter.join(sorted(scopes))
