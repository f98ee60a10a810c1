"""
Grant and token types for the grant store.

A Grant is the full record of one OAuth2/OIDC flow instance. It carries
at most one live token per kind; a new issuance replaces the slot.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Union

from ..common.utils import as_utc, generate_id, get_current_time


INVALIDATED_METADATA_KEY = "metadata.token.invalidated"
STATE_ATTRIBUTE = "state"
BEARER = "Bearer"


@dataclass(frozen=True)
class AuthorizationGrantType:
    """
    OAuth2 grant type.

    The grant type space is open: any non-empty string is a valid value,
    and values outside the well-known constants are extension grants.
    """

    value: str

    def __post_init__(self):
        if not self.value:
            raise ValueError("authorization grant type value cannot be empty")

    @property
    def is_extension(self) -> bool:
        return self.value not in _WELL_KNOWN_GRANT_TYPES

    def __str__(self) -> str:
        return self.value


AuthorizationGrantType.AUTHORIZATION_CODE = AuthorizationGrantType("authorization_code")
AuthorizationGrantType.CLIENT_CREDENTIALS = AuthorizationGrantType("client_credentials")
AuthorizationGrantType.REFRESH_TOKEN = AuthorizationGrantType("refresh_token")
AuthorizationGrantType.DEVICE_CODE = AuthorizationGrantType(
    "urn:ietf:params:oauth:grant-type:device_code"
)

_WELL_KNOWN_GRANT_TYPES = frozenset({
    "authorization_code",
    "client_credentials",
    "refresh_token",
    "urn:ietf:params:oauth:grant-type:device_code",
})


class TokenKind(Enum):
    """Token slot kinds, plus the lookup-only STATE pseudo kind."""

    STATE = "state"
    AUTHORIZATION_CODE = "code"
    ACCESS_TOKEN = "access_token"
    REFRESH_TOKEN = "refresh_token"
    ID_TOKEN = "id_token"
    USER_CODE = "user_code"
    DEVICE_CODE = "device_code"

    @classmethod
    def from_value(cls, value: Union[str, "TokenKind"]) -> "TokenKind":
        """Resolve a kind hint given either as a TokenKind or its wire value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            try:
                return cls[str(value).upper()]
            except KeyError:
                raise ValueError(f"Unknown token kind: {value}") from None

    @classmethod
    def slot_kinds(cls) -> List["TokenKind"]:
        """The six kinds a grant can hold a token for."""
        return [kind for kind in cls if kind is not cls.STATE]

    @classmethod
    def probe_order(cls) -> List["TokenKind"]:
        """Order in which indexes are probed when no kind hint is given."""
        return [
            cls.STATE,
            cls.AUTHORIZATION_CODE,
            cls.ACCESS_TOKEN,
            cls.REFRESH_TOKEN,
            cls.ID_TOKEN,
            cls.USER_CODE,
            cls.DEVICE_CODE,
        ]


@dataclass
class Token:
    """
    A token held in one of a grant's slots.

    scopes and token_type only apply to access tokens, claims only to
    ID tokens; anything else would not survive persistence.
    """

    kind: TokenKind
    value: str
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    scopes: Set[str] = field(default_factory=set)
    token_type: Optional[str] = None
    claims: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.kind = TokenKind.from_value(self.kind)
        if self.kind is TokenKind.STATE:
            raise ValueError("state is tracked as a grant attribute, not a token slot")
        if not self.value:
            raise ValueError("token value cannot be empty")

        self.issued_at = as_utc(self.issued_at)
        self.expires_at = as_utc(self.expires_at)
        self.scopes = set(self.scopes or ())
        self.metadata = dict(self.metadata or {})
        self.claims = dict(self.claims or {})

        if self.kind is TokenKind.ACCESS_TOKEN:
            if not self.token_type:
                self.token_type = BEARER
        elif self.scopes or self.token_type:
            raise ValueError(f"scopes and token_type only apply to access tokens, not {self.kind.value}")

        if self.claims and self.kind is not TokenKind.ID_TOKEN:
            raise ValueError(f"claims only apply to ID tokens, not {self.kind.value}")

    def is_expired(self, as_of: Optional[datetime] = None) -> bool:
        """Check if token is expired; tokens without expiry never expire."""
        if self.expires_at is None:
            return False
        return self.expires_at <= (as_of or get_current_time())

    @property
    def is_invalidated(self) -> bool:
        return bool(self.metadata.get(INVALIDATED_METADATA_KEY, False))

    def is_active(self, as_of: Optional[datetime] = None) -> bool:
        return not self.is_invalidated and not self.is_expired(as_of)


@dataclass(frozen=True)
class Grant:
    """
    The authorization record of one OAuth2/OIDC flow.

    Grants are replaced as a whole, never patched; use with_token,
    without_token or invalidate to derive the next version.
    """

    id: str
    registered_client_id: str
    principal_name: str
    authorization_grant_type: AuthorizationGrantType
    authorized_scopes: Set[str] = field(default_factory=set)
    attributes: Dict[str, Any] = field(default_factory=dict)
    tokens: Dict[TokenKind, Token] = field(default_factory=dict)

    def __post_init__(self):
        if not self.id:
            raise ValueError("grant id cannot be empty")
        if not self.registered_client_id:
            raise ValueError("registered_client_id cannot be empty")
        if isinstance(self.authorization_grant_type, str):
            object.__setattr__(self, "authorization_grant_type",
                               AuthorizationGrantType(self.authorization_grant_type))

        object.__setattr__(self, "authorized_scopes", set(self.authorized_scopes or ()))
        object.__setattr__(self, "attributes", dict(self.attributes or {}))
        object.__setattr__(self, "tokens", _index_tokens(self.tokens))

    @property
    def state(self) -> Optional[str]:
        value = self.attributes.get(STATE_ATTRIBUTE)
        return value if isinstance(value, str) and value else None

    def get_token(self, kind: Union[str, TokenKind]) -> Optional[Token]:
        return self.tokens.get(TokenKind.from_value(kind))

    def token_values(self) -> Dict[TokenKind, str]:
        """Map each populated slot kind to its token value."""
        return {kind: token.value for kind, token in self.tokens.items()}

    def with_token(self, token: Token) -> "Grant":
        """Return a copy of this grant with the token's slot replaced."""
        tokens = dict(self.tokens)
        tokens[token.kind] = token
        return replace(self, tokens=tokens)

    def without_token(self, kind: Union[str, TokenKind]) -> "Grant":
        tokens = dict(self.tokens)
        tokens.pop(TokenKind.from_value(kind), None)
        return replace(self, tokens=tokens)

    def with_attributes(self, **attributes) -> "Grant":
        merged = dict(self.attributes)
        merged.update(attributes)
        return replace(self, attributes=merged)

    def invalidate(self, kind: Union[str, TokenKind]) -> "Grant":
        """Return a copy with the given token flagged as invalidated."""
        token = self.get_token(kind)
        if token is None:
            return self
        metadata = dict(token.metadata)
        metadata[INVALIDATED_METADATA_KEY] = True
        return self.with_token(replace(token, metadata=metadata))


def _index_tokens(tokens: Union[Mapping[Any, Token], Iterable[Token], None]) -> Dict[TokenKind, Token]:
    if not tokens:
        return {}
    items = tokens.values() if isinstance(tokens, Mapping) else tokens

    indexed: Dict[TokenKind, Token] = {}
    for token in items:
        if token.kind in indexed:
            raise ValueError(f"grant already holds a {token.kind.value} token")
        indexed[token.kind] = token
    if isinstance(tokens, Mapping):
        for key, token in tokens.items():
            if TokenKind.from_value(key) is not token.kind:
                raise ValueError(f"token of kind {token.kind.value} stored under slot {key}")
    return indexed


def create_grant(registered_client_id: str,
                 principal_name: str,
                 grant_type: Union[str, AuthorizationGrantType],
                 scopes: Optional[Iterable[str]] = None,
                 attributes: Optional[Dict[str, Any]] = None,
                 tokens: Optional[Iterable[Token]] = None,
                 grant_id: Optional[str] = None) -> Grant:
    """
    Create a new Grant with a freshly generated id.

    Args:
        registered_client_id: Id of the registered client
        principal_name: Authenticated subject
        grant_type: Grant type value or string
        scopes: Authorized scopes
        attributes: Session state to carry with the grant
        tokens: Initial tokens
        grant_id: Explicit id, generated when omitted

    Returns:
        Grant instance
    """
    return Grant(
        id=grant_id or generate_id(),
        registered_client_id=registered_client_id,
        principal_name=principal_name,
        authorization_grant_type=grant_type,
        authorized_scopes=set(scopes or ()),
        attributes=dict(attributes or {}),
        tokens=list(tokens or ()),
    )


def create_token(kind: Union[str, TokenKind],
                 value: str,
                 validity_duration: Optional[timedelta] = timedelta(hours=1),
                 issued_at: Optional[datetime] = None,
                 **kwargs) -> Token:
    """
    Create a token issued now (or at issued_at) expiring after validity_duration.

    A validity_duration of None creates a token that does not expire.
    """
    issued = issued_at or get_current_time()
    return Token(
        kind=TokenKind.from_value(kind),
        value=value,
        issued_at=issued,
        expires_at=issued + validity_duration if validity_duration is not None else None,
        **kwargs,
    )
