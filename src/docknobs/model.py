"""Model handles: a document kind bound to a connection."""

from __future__ import annotations

import logging
import weakref
from typing import TYPE_CHECKING, Any

from docknobs.document import DocumentInstance
from docknobs.exceptions import NotConnectedError
from docknobs.schema import default_registry
from docknobs.transitions import ConnectionState
from docknobs.validation import ValidatorEngine

if TYPE_CHECKING:
    from docknobs.connection import ConnectionManager
    from docknobs.fields import FieldDefinition
    from docknobs.schema import SchemaRegistry

logger = logging.getLogger(__name__)


class ModelHandle:
    """Binds a registered document kind to a connection manager.

    The handle creates documents of its kind and carries their persistence
    operations. It keeps only a weak reference to the connection manager;
    the manager belongs to whoever opened it.

    Field definitions are captured when the handle is bound, so a later
    re-registration of the kind does not change existing handles.
    """

    def __init__(
        self,
        kind: str,
        fields: tuple[FieldDefinition, ...],
        connection: ConnectionManager,
    ):
        self.kind = kind
        self.fields = fields
        self.engine = ValidatorEngine()
        self._connection_ref = weakref.ref(connection)

    @classmethod
    def bind(
        cls,
        kind: str,
        connection: ConnectionManager,
        registry: SchemaRegistry | None = None,
    ) -> ModelHandle:
        """Bind a document kind to a connected manager.

        Args:
            kind: Registered document kind name
            connection: A connection manager in the connected state
            registry: Schema registry to look the kind up in (default registry if None)

        Raises:
            UnknownKindError: If the kind is not registered
            NotConnectedError: If the manager is not connected
        """
        registry = registry if registry is not None else default_registry
        fields = registry.lookup(kind)
        if not connection.is_connected:
            raise NotConnectedError(connection.state.value, f"bind {kind}")
        logger.debug("Bound model '%s' to %s", kind, connection.name)
        return cls(kind, fields, connection)

    @property
    def connection(self) -> ConnectionManager:
        """The bound connection manager.

        Raises:
            NotConnectedError: If the manager no longer exists
        """
        connection = self._connection_ref()
        if connection is None:
            raise NotConnectedError(ConnectionState.DISCONNECTED.value, self.kind)
        return connection

    @property
    def field_names(self) -> list[str]:
        return [field.name for field in self.fields]

    def get_definition(self, name: str) -> FieldDefinition | None:
        for field in self.fields:
            if field.name == name:
                return field
        return None

    def create(self, **values: Any) -> DocumentInstance:
        """Create a new, unsaved document with defaults applied.

        Args:
            **values: Optional initial raw field values (not coerced yet)
        """
        document = DocumentInstance(self)
        for name, value in values.items():
            document.set_field(name, value)
        return document

    __call__ = create

    async def find_by_id(self, identity: str) -> DocumentInstance | None:
        """Load a persisted document by identity.

        Returns:
            The document, or None if the store has no document with that identity
        """
        data = await self.connection.execute("lookup", self.kind, identity)
        if data is None:
            return None
        return DocumentInstance.from_store(self, identity, data)

    async def remove_by_id(self, identity: str) -> None:
        """Delete a persisted document by identity."""
        await self.connection.execute("delete", self.kind, identity)

    async def _persist(self, fields: dict[str, Any]) -> str:
        return await self.connection.execute("persist", self.kind, fields)

    async def _delete(self, identity: str) -> None:
        await self.connection.execute("delete", self.kind, identity)

    def __repr__(self) -> str:
        return f"ModelHandle({self.kind!r}, fields={self.field_names})"
