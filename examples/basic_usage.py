"""
Basic grantstore usage example.

This example walks one authorization code flow through the store:
- Saving a grant at the authorization endpoint
- Exchanging the code for access and refresh tokens
- Looking the grant up by token value
- Sweeping expired grants
"""

import asyncio
import logging
from datetime import timedelta

from grantstore import (
    ClientDescriptor,
    ExpirySweeper,
    MemoryClientLookup,
    StoreConfig,
    TokenKind,
    create_authorization_store,
    create_grant,
    create_token,
)
from grantstore.common.utils import get_current_time, mask_token


async def basic_example():
    """Demonstrate basic grantstore usage"""
    print("Basic grantstore Example")
    print("=" * 30)

    # 1. Register the client and create the store
    clients = MemoryClientLookup([
        ClientDescriptor(id="client-1", client_id="basic-example-client", scopes={"openid", "profile"}),
    ])
    store = create_authorization_store(StoreConfig(), clients)
    print(f"✓ Created {type(store).__name__}")

    try:
        # 2. Authorization endpoint: save the grant with its code and state
        now = get_current_time()
        grant = create_grant(
            "client-1",
            "alice",
            "authorization_code",
            scopes={"openid", "profile"},
            attributes={"state": "af0ifjsldkj", "redirect_uri": "https://app.example.com/cb"},
            tokens=[create_token(TokenKind.AUTHORIZATION_CODE, "SplxlOBeZQQYbYS6WxSbIA",
                                 timedelta(minutes=5), issued_at=now)],
        )
        await store.save(grant)
        print(f"✓ Saved grant {grant.id}")

        # 3. Callback: find the grant again by its state
        found = await store.find_by_token("af0ifjsldkj")
        print(f"✓ State resolved to grant {found.id}")

        # 4. Token endpoint: consume the code and issue tokens
        exchanged = (
            found.invalidate(TokenKind.AUTHORIZATION_CODE)
            .with_token(create_token(TokenKind.ACCESS_TOKEN, "2YotnFZFEjr1zCsicMWpAA",
                                     timedelta(hours=1), issued_at=now, scopes={"openid"}))
            .with_token(create_token(TokenKind.REFRESH_TOKEN, "tGzv3JOkF0XG5Qx2TlKWIA",
                                     timedelta(days=7), issued_at=now))
        )
        await store.save(exchanged)
        print("✓ Issued access and refresh tokens")

        # 5. Resource server: look up by access token
        by_token = await store.find_by_token("2YotnFZFEjr1zCsicMWpAA", TokenKind.ACCESS_TOKEN)
        access = by_token.get_token(TokenKind.ACCESS_TOKEN)
        print(f"✓ Token {mask_token(access.value)} is active: {access.is_active()}")

        # 6. Sweep as of two hours from now: the expired access token takes the whole grant with it
        sweeper = ExpirySweeper(store)
        deleted = await sweeper.delete_expired(now + timedelta(hours=2))
        print(f"✓ Sweep removed {deleted} grant(s)")

        remaining = await store.find_by_token("tGzv3JOkF0XG5Qx2TlKWIA")
        print(f"✓ Refresh token still resolvable: {remaining is not None}")

    finally:
        await store.close()
        print("✓ Closed store")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(basic_example())
