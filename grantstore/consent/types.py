"""
Authorization consent types.

A consent records which authorities a principal granted a registered
client. Scope authorities carry the SCOPE_ prefix.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Set
from urllib.parse import quote

from ..util.resolver import join_scopes


SCOPE_AUTHORITY_PREFIX = "SCOPE_"


def consent_key(registered_client_id: str, principal_name: str) -> str:
    """Storage key of a consent; both parts are percent-encoded so ':' cannot collide."""
    return f"{quote(registered_client_id, safe='')}:{quote(principal_name, safe='')}"


@dataclass
class AuthorizationConsent:
    """Authorities a principal has granted to a registered client."""

    registered_client_id: str
    principal_name: str
    authorities: Set[str] = field(default_factory=set)

    def __post_init__(self):
        if not self.registered_client_id:
            raise ValueError("registered_client_id cannot be empty")
        if not self.principal_name:
            raise ValueError("principal_name cannot be empty")
        self.authorities = set(self.authorities or ())

    @property
    def scopes(self) -> Set[str]:
        return {
            authority[len(SCOPE_AUTHORITY_PREFIX):]
            for authority in self.authorities
            if authority.startswith(SCOPE_AUTHORITY_PREFIX)
        }

    def add_scopes(self, scopes: Iterable[str]) -> None:
        self.authorities.update(f"{SCOPE_AUTHORITY_PREFIX}{scope}" for scope in scopes)

    def covers(self, requested_scopes: Iterable[str]) -> bool:
        """Check if every requested scope has already been consented to."""
        return set(requested_scopes) <= self.scopes

    @property
    def key(self) -> str:
        return consent_key(self.registered_client_id, self.principal_name)

    def to_dict(self) -> Dict[str, str]:
        """Flat stored form; authorities become a comma-delimited string."""
        return {
            "registered_client_id": self.registered_client_id,
            "principal_name": self.principal_name,
            "authorities": join_scopes(self.authorities),
        }
