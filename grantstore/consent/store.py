"""
Authorization consent storage.

Consents are keyed by (registered client id, principal name). Reading a
consent back requires the registered client to still exist.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

import redis.asyncio as redis

from ..errors import ClientNotFoundError
from ..types.client import ClientLookup
from ..util.resolver import resolve_scopes
from .types import AuthorizationConsent, consent_key


logger = logging.getLogger(__name__)


class ConsentStore(ABC):
    """Abstract base class for consent storage"""

    def __init__(self, client_lookup: ClientLookup):
        self.client_lookup = client_lookup

    @abstractmethod
    async def _put(self, key: str, data: Dict[str, str]) -> None:
        pass

    @abstractmethod
    async def _get(self, key: str) -> Optional[Dict[str, str]]:
        pass

    @abstractmethod
    async def _delete(self, key: str) -> bool:
        pass

    async def close(self) -> None:
        """Close the consent store and release resources"""
        pass

    async def save(self, consent: AuthorizationConsent) -> None:
        """Save a consent, replacing any previous one for the same client and principal"""
        if consent is None:
            raise ValueError("consent cannot be None")
        await self._put(consent.key, consent.to_dict())
        logger.debug(f"Saved consent of {consent.principal_name} for client {consent.registered_client_id}")

    async def remove(self, consent: AuthorizationConsent) -> bool:
        """Remove a consent; removing an unknown consent is a no-op"""
        if consent is None:
            raise ValueError("consent cannot be None")
        return await self._delete(consent.key)

    async def find_by_id(self, registered_client_id: str, principal_name: str) -> Optional[AuthorizationConsent]:
        """
        Find the consent a principal gave a client.

        Raises:
            ClientNotFoundError: If the registered client no longer exists
        """
        if not registered_client_id:
            raise ValueError("registered_client_id cannot be empty")
        if not principal_name:
            raise ValueError("principal_name cannot be empty")

        data = await self._get(consent_key(registered_client_id, principal_name))
        if not data:
            return None
        if (data.get("registered_client_id") != registered_client_id
                or data.get("principal_name") != principal_name):
            logger.warning(f"Consent stored under the key of {principal_name} for client "
                           f"{registered_client_id} belongs to someone else, ignoring it")
            return None

        if self.client_lookup.find_client(data["registered_client_id"]) is None:
            raise ClientNotFoundError(data["registered_client_id"])

        return AuthorizationConsent(
            registered_client_id=data["registered_client_id"],
            principal_name=data["principal_name"],
            authorities=resolve_scopes(data.get("authorities")),
        )


class MemoryConsentStore(ConsentStore):
    """In-memory consent store for development and testing"""

    def __init__(self, client_lookup: ClientLookup):
        super().__init__(client_lookup)
        self._consents: Dict[str, Dict[str, str]] = {}
        self._lock = asyncio.Lock()

    async def _put(self, key: str, data: Dict[str, str]) -> None:
        async with self._lock:
            self._consents[key] = dict(data)

    async def _get(self, key: str) -> Optional[Dict[str, str]]:
        async with self._lock:
            data = self._consents.get(key)
            return dict(data) if data is not None else None

    async def _delete(self, key: str) -> bool:
        async with self._lock:
            return self._consents.pop(key, None) is not None


class RedisConsentStore(ConsentStore):
    """Redis consent store; each consent is a hash at {prefix}:consent:{key}, see consent_key"""

    def __init__(self, client_lookup: ClientLookup,
                 url: str = "redis://localhost:6379/0",
                 prefix: str = "grantstore",
                 client=None):
        super().__init__(client_lookup)
        self.url = url
        self.prefix = prefix.rstrip(":")
        self._client = client

    async def _get_client(self):
        if self._client is None:
            self._client = redis.from_url(self.url, decode_responses=True)
        return self._client

    def _key(self, key: str) -> str:
        return f"{self.prefix}:consent:{key}"

    async def _put(self, key: str, data: Dict[str, str]) -> None:
        client = await self._get_client()
        pipe = client.pipeline(transaction=True)
        pipe.delete(self._key(key))
        pipe.hset(self._key(key), mapping=data)
        await pipe.execute()

    async def _get(self, key: str) -> Optional[Dict[str, str]]:
        client = await self._get_client()
        data = await client.hgetall(self._key(key))
        return data or None

    async def _delete(self, key: str) -> bool:
        client = await self._get_client()
        return (await client.delete(self._key(key))) == 1

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
