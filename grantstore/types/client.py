"""
Registered client lookup.

The grant store does not own client configuration; it only needs to
resolve a registered client id when rebuilding a grant.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Set


logger = logging.getLogger(__name__)


@dataclass
class ClientDescriptor:
    """The parts of a registered client the grant store cares about."""

    id: str
    client_id: str
    client_name: str = ""
    scopes: Set[str] = field(default_factory=set)
    grant_types: Set[str] = field(default_factory=set)


class ClientLookup(ABC):
    """Resolves a registered client id to its descriptor."""

    @abstractmethod
    def find_client(self, registered_client_id: str) -> Optional[ClientDescriptor]:
        """
        Find a registered client.

        Args:
            registered_client_id: Internal id of the registered client

        Returns:
            ClientDescriptor if found, None otherwise
        """
        pass


class MemoryClientLookup(ClientLookup):
    """In-memory client registry for development and testing."""

    def __init__(self, clients: Optional[Iterable[ClientDescriptor]] = None):
        self._clients: Dict[str, ClientDescriptor] = {}
        self._lock = threading.RLock()
        for client in clients or ():
            self.register(client)

    def register(self, client: ClientDescriptor) -> None:
        with self._lock:
            self._clients[client.id] = client
        logger.debug(f"Registered client {client.client_id}")

    def unregister(self, registered_client_id: str) -> bool:
        with self._lock:
            return self._clients.pop(registered_client_id, None) is not None

    def find_client(self, registered_client_id: str) -> Optional[ClientDescriptor]:
        with self._lock:
            return self._clients.get(registered_client_id)
