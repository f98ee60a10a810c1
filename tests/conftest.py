"""
Shared fixtures for grantstore tests.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from grantstore import (
    AuthorizationGrantType,
    AuthorizationMapper,
    ClientDescriptor,
    Grant,
    MemoryAuthorizationStore,
    MemoryClientLookup,
    Token,
    TokenKind,
)
from grantstore.metrics import StoreMetrics


T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """Fixed reference time for expiry calculations"""
    return T0


@pytest.fixture
def clients():
    """Client registry holding two registered clients"""
    return MemoryClientLookup([
        ClientDescriptor(id="client-1", client_id="web-app", client_name="Web App",
                         scopes={"openid", "profile", "email"},
                         grant_types={"authorization_code", "refresh_token"}),
        ClientDescriptor(id="client-2", client_id="tv-app", client_name="TV App",
                         grant_types={"urn:ietf:params:oauth:grant-type:device_code"}),
    ])


@pytest.fixture
def mapper(clients):
    return AuthorizationMapper(clients)


@pytest.fixture
def metrics():
    return StoreMetrics()


@pytest.fixture
def store(mapper, metrics):
    return MemoryAuthorizationStore(mapper, metrics=metrics)


@pytest.fixture
def make_grant(now):
    """Factory building grants with the requested token slots populated"""

    def _make(grant_id="grant-1",
              client_id="client-1",
              principal="alice",
              grant_type=AuthorizationGrantType.AUTHORIZATION_CODE,
              scopes=("openid", "profile"),
              attributes=None,
              **token_values):
        tokens = []
        for name, value in token_values.items():
            kind = TokenKind[name.upper()]
            extra = {}
            if kind is TokenKind.ACCESS_TOKEN:
                extra["scopes"] = set(scopes)
            if kind is TokenKind.ID_TOKEN:
                extra["claims"] = {"sub": principal, "aud": ["web-app"], "iat": now}
            tokens.append(Token(
                kind=kind,
                value=value,
                issued_at=now,
                expires_at=now + timedelta(hours=1),
                metadata={"origin": "test"},
                **extra,
            ))
        return Grant(
            id=grant_id,
            registered_client_id=client_id,
            principal_name=principal,
            authorization_grant_type=grant_type,
            authorized_scopes=set(scopes),
            attributes=attributes if attributes is not None else {},
            tokens=tokens,
        )

    return _make


@pytest.fixture
def full_grant(now):
    """Grant with every slot populated and every supported value type in its maps"""
    return Grant(
        id="grant-full",
        registered_client_id="client-1",
        principal_name="alice",
        authorization_grant_type=AuthorizationGrantType.AUTHORIZATION_CODE,
        authorized_scopes={"openid", "profile", "email"},
        attributes={
            "state": "state-abc-123",
            "redirect_uri": "https://app.example.com/callback",
            "nonce": None,
            "remember_me": True,
            "max_age": 3600,
            "acr_score": 0.75,
            "price": Decimal("12.50"),
            "requested_scopes": {"openid", "profile"},
            "frozen_scopes": frozenset({"email"}),
            "amr": ["pwd", "otp"],
            "authorization_request": {
                "response_type": "code",
                "scopes": {"openid"},
                "extra": {"prompt": ["login", "consent"]},
            },
            "auth_time": T0 - timedelta(minutes=2),
            "original_grant_type": AuthorizationGrantType("urn:custom:x"),
        },
        tokens=[
            Token(TokenKind.AUTHORIZATION_CODE, "code-value-0001", T0, T0 + timedelta(minutes=5),
                  metadata={"metadata.token.invalidated": True}),
            Token(TokenKind.ACCESS_TOKEN, "access-value-0001", T0, T0 + timedelta(hours=1),
                  metadata={"metadata.token.claims": {"sub": "alice", "scope": ["openid"]}},
                  scopes={"openid", "profile"}, token_type="Bearer"),
            Token(TokenKind.REFRESH_TOKEN, "refresh-value-0001", T0, T0 + timedelta(days=7)),
            Token(TokenKind.ID_TOKEN, "idtoken-value-0001", T0, T0 + timedelta(hours=1),
                  claims={"sub": "alice", "aud": ["web-app"], "auth_time": T0, "email_verified": False}),
            Token(TokenKind.USER_CODE, "user-value-0001", T0, T0 + timedelta(minutes=10)),
            Token(TokenKind.DEVICE_CODE, "device-value-0001", T0, None),
        ],
    )
