"""In-process client registry.

Holds :class:`src.agency_crm.models.Client` records for the HTTP API. Durable
storage is not part of this service; the registry is the seam where a
database-backed implementation would plug in.
"""

import logging
import threading
import uuid
from typing import Any, Optional

from .errors import ClientAlreadyExists
from .models import Client, ClientCreate

logger = logging.getLogger(__name__)


class ClientRegistry:
    """
    Thread-safe in-memory store of clients keyed by id.

    Emails are unique (case-insensitive).
    """

    def __init__(self) -> None:
        self._clients: dict[str, Client] = {}
        self._lock = threading.Lock()

    def _find_by_email_unlocked(self, email: str) -> Optional[Client]:
        wanted = email.strip().lower()
        for client in self._clients.values():
            if client.email.lower() == wanted:
                return client
        return None

    def add(self, data: ClientCreate) -> Client:
        """Store a new client.

        Args:
            data: Validated creation payload.

        Returns:
            Client: Stored record with a generated id.

        Raises:
            ClientAlreadyExists: If the email is already registered.
        """
        with self._lock:
            if self._find_by_email_unlocked(data.email):
                raise ClientAlreadyExists(f"Client with email {data.email} already exists")

            client = Client(
                id=uuid.uuid4().hex,
                company_name=data.company_name.strip(),
                contact_name=data.contact_name.strip(),
                email=data.email.strip(),
                phone=data.phone,
                status=data.status,
            )
            self._clients[client.id] = client

        logger.debug(f"Registered client {client.company_name!r} ({client.id})")
        return client

    def get(self, client_id: str) -> Optional[Client]:
        with self._lock:
            return self._clients.get(client_id)

    def find_by_email(self, email: str) -> Optional[Client]:
        with self._lock:
            return self._find_by_email_unlocked(email)

    def list_clients(self) -> list[Client]:
        """Return all clients, oldest first."""
        with self._lock:
            return sorted(self._clients.values(), key=lambda c: c.created_at)

    def update(self, client_id: str, **changes: Any) -> Optional[Client]:
        """Apply field changes to a client.

        Args:
            client_id: Client id.
            **changes: Pythonic field names and new values.

        Returns:
            Optional[Client]: Updated record, or None if the id is unknown.

        Raises:
            ClientAlreadyExists: If ``email`` changes to one held by another
                client.
        """
        with self._lock:
            current = self._clients.get(client_id)
            if current is None:
                return None

            new_email = changes.get("email")
            if new_email:
                owner = self._find_by_email_unlocked(new_email)
                if owner is not None and owner.id != client_id:
                    raise ClientAlreadyExists(f"Client with email {new_email} already exists")

            updated = current.model_copy(update=changes)
            self._clients[client_id] = updated
            return updated

    def delete(self, client_id: str) -> bool:
        """Remove a client.

        The client's Drive folder is left in place.

        Returns:
            bool: True if a record was removed, False if the id is unknown.
        """
        with self._lock:
            removed = self._clients.pop(client_id, None)

        if removed is None:
            return False
        logger.debug(f"Removed client {removed.company_name!r} ({client_id})")
        return True
