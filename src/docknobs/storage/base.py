"""Storage hook protocol definition."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class StorageHook(Protocol):
    """The narrow contract docknobs needs from a backing store.

    Documents are persisted as plain dictionaries of coerced field values.
    Once a document has been persisted its identity travels in the ``_id``
    entry, so persisting fields that carry ``_id`` replaces that document.

    Implementations may also provide an ``async close()`` coroutine, which the
    connection manager awaits when the connection is closed.

    Example:
        ```python
        class DictStore:
            def __init__(self):
                self.data = {}

            async def persist(self, kind, fields):
                identity = fields.get("_id") or str(len(self.data) + 1)
                self.data[(kind, identity)] = {**fields, "_id": identity}
                return identity

            async def delete(self, kind, identity):
                self.data.pop((kind, identity), None)

            async def lookup(self, kind, identity):
                return self.data.get((kind, identity))
        ```
    """

    async def persist(self, kind: str, fields: dict[str, Any]) -> str:
        """Insert or replace a document and return its identity."""
        ...

    async def delete(self, kind: str, identity: str) -> None:
        """Delete a document by identity. Deleting a missing identity is not an error."""
        ...

    async def lookup(self, kind: str, identity: str) -> dict[str, Any] | None:
        """Return the stored fields of a document, or None when not found."""
        ...
