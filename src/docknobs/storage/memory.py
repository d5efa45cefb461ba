"""In-memory storage hook implementation."""

from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from collections import OrderedDict
from typing import Any

from docknobs.config import ConnectionOptions

logger = logging.getLogger(__name__)


class MemoryStore:
    """Async in-memory document store.

    Documents are kept per kind in insertion order and copied on the way in
    and out, so callers never share state with the store.
    """

    def __init__(self, address: str = "memory://", options: ConnectionOptions | None = None):
        self.address = address
        self.options = options or ConnectionOptions()
        self._storage: dict[str, OrderedDict[str, dict[str, Any]]] = {}
        self._lock = asyncio.Lock()
        self._closed = False

    @classmethod
    async def connect(cls, address: str, options: ConnectionOptions) -> MemoryStore:
        """Create a store for an address (store factory signature)."""
        return cls(address, options)

    def _generate_id(self) -> str:
        """Generate a unique identity for a document."""
        return uuid.uuid4().hex

    async def persist(self, kind: str, fields: dict[str, Any]) -> str:
        """Insert or replace a document."""
        async with self._lock:
            identity = fields.get("_id") or self._generate_id()
            document = copy.deepcopy(fields)
            document["_id"] = identity
            self._storage.setdefault(kind, OrderedDict())[identity] = document
            logger.debug("Persisted %s '%s'", kind, identity)
            return identity

    async def delete(self, kind: str, identity: str) -> None:
        """Delete a document, ignoring unknown identities."""
        async with self._lock:
            documents = self._storage.get(kind)
            if documents is not None and documents.pop(identity, None) is not None:
                logger.debug("Deleted %s '%s'", kind, identity)

    async def lookup(self, kind: str, identity: str) -> dict[str, Any] | None:
        """Return a copy of a stored document, or None."""
        async with self._lock:
            document = self._storage.get(kind, {}).get(identity)
            return copy.deepcopy(document) if document is not None else None

    async def count(self, kind: str) -> int:
        """Count stored documents of a kind."""
        async with self._lock:
            return len(self._storage.get(kind, {}))

    async def close(self) -> None:
        """Mark the store closed. Stored documents are kept."""
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed
