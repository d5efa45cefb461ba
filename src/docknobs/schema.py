"""Schema definitions and the registry of document kinds.

A schema is an ordered sequence of :class:`~docknobs.fields.FieldDefinition`
registered under a document kind name. The :class:`Schema` builder offers a
fluent API for declaring fields; :class:`SchemaRegistry` stores the result.

Example:
    ```python
    from docknobs import Schema, SchemaRegistry

    registry = SchemaRegistry()
    registry.register(
        "User",
        Schema("User")
        .field("name", "string")
        .field("age", "number")
        .field("active", "boolean")
        .field("date", "timestamp", default=datetime.now),
    )
    registry.lookup("User")  # (FieldDefinition(name='name', ...), ...)
    ```
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from docknobs.exceptions import ConfigurationError, DuplicateFieldError, UnknownKindError
from docknobs.fields import MISSING, FieldDefinition, FieldType, Validator

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

logger = logging.getLogger(__name__)


class Schema:
    """Fluent builder for an ordered set of field definitions.

    Duplicate names are not rejected here; the registry checks uniqueness
    when the schema is registered.
    """

    def __init__(self, name: str, description: str | None = None):
        self.name = name
        self.description = description
        self.fields: list[FieldDefinition] = []

    def field(
        self,
        name: str,
        field_type: FieldType | str = FieldType.STRING,
        required: bool = False,
        default: Any = MISSING,
        validators: Iterable[Validator] | None = None,
        description: str | None = None,
    ) -> Schema:
        """Add a field definition (fluent API).

        Args:
            name: Field name
            field_type: Field type (FieldType enum or its name)
            required: Whether the field is required
            default: Default producer (callable) or static default value
            validators: Validators checked in order after coercion
            description: Field description

        Returns:
            Self for chaining
        """
        self.fields.append(
            FieldDefinition(
                name=name,
                field_type=FieldType.parse(field_type),
                default=default,
                required=required,
                validators=tuple(validators or ()),
                description=description,
            )
        )
        return self

    def __iter__(self):
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def to_dict(self) -> dict[str, Any]:
        """Convert schema to dictionary representation."""
        return {
            "name": self.name,
            "description": self.description,
            "fields": {field.name: field.to_dict() for field in self.fields},
        }

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> Schema:
        """Create a schema from a configuration dictionary.

        Fields may be given as a mapping of name to options or as a list of
        option dictionaries each carrying a ``name``. A bare string value is
        read as the field type.

        Args:
            name: Document kind name
            data: Dictionary with a ``fields`` entry and optional ``description``

        Returns:
            Schema instance

        Raises:
            ConfigurationError: If a field entry is malformed or names an unknown type
        """
        schema = cls(name, description=data.get("description"))
        fields = data.get("fields") or {}
        if isinstance(fields, dict):
            entries = [
                _field_entry(name, field_name, options) for field_name, options in fields.items()
            ]
        else:
            entries = [_field_entry(name, None, options) for options in fields]

        for entry in entries:
            try:
                schema.field(
                    name=entry["name"],
                    field_type=entry.get("type") or FieldType.STRING,
                    required=bool(entry.get("required", False)),
                    default=entry.get("default", MISSING),
                    description=entry.get("description"),
                )
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid field '{entry['name']}' in schema '{name}': {e}",
                    context={"kind": name, "field_name": entry["name"]},
                ) from e
        return schema


class SchemaRegistry:
    """Thread-safe registry of field definitions by document kind.

    Registered definitions are stored as tuples and never mutated.
    Registering the same kind again replaces the earlier definition.

    Args:
        name: Name for this registry instance (for logging/debugging)
    """

    def __init__(self, name: str = "schemas"):
        self._name = name
        self._schemas: dict[str, tuple[FieldDefinition, ...]] = {}
        self._lock = threading.RLock()

    @property
    def name(self) -> str:
        """Get registry name."""
        return self._name

    def register(
        self,
        kind: str,
        fields: Schema | Sequence[FieldDefinition],
    ) -> tuple[FieldDefinition, ...]:
        """Register the field definitions of a document kind.

        Args:
            kind: Document kind name
            fields: A Schema builder or a sequence of FieldDefinition

        Returns:
            The stored, immutable field definitions

        Raises:
            DuplicateFieldError: If two fields share a name
        """
        definitions = tuple(fields)
        seen: set[str] = set()
        for definition in definitions:
            if definition.name in seen:
                raise DuplicateFieldError(kind, definition.name)
            seen.add(definition.name)

        with self._lock:
            if kind in self._schemas:
                logger.debug("Replacing schema '%s' in %s", kind, self._name)
            self._schemas[kind] = definitions
        logger.debug("Registered schema '%s' with %d fields", kind, len(definitions))
        return definitions

    def register_from_dict(self, kind: str, data: dict[str, Any]) -> tuple[FieldDefinition, ...]:
        """Register a kind from a configuration dictionary (see Schema.from_dict)."""
        return self.register(kind, Schema.from_dict(kind, data))

    def lookup(self, kind: str) -> tuple[FieldDefinition, ...]:
        """Get the field definitions of a document kind.

        Raises:
            UnknownKindError: If the kind has not been registered
        """
        with self._lock:
            if kind not in self._schemas:
                raise UnknownKindError(kind, list(self._schemas))
            return self._schemas[kind]

    def unregister(self, kind: str) -> tuple[FieldDefinition, ...]:
        """Remove and return the definitions of a document kind.

        Raises:
            UnknownKindError: If the kind has not been registered
        """
        with self._lock:
            if kind not in self._schemas:
                raise UnknownKindError(kind, list(self._schemas))
            return self._schemas.pop(kind)

    def kinds(self) -> list[str]:
        """List registered kinds in registration order."""
        with self._lock:
            return list(self._schemas)

    def clear(self) -> None:
        with self._lock:
            self._schemas.clear()

    def __contains__(self, kind: str) -> bool:
        with self._lock:
            return kind in self._schemas

    def __len__(self) -> int:
        with self._lock:
            return len(self._schemas)

    def __repr__(self) -> str:
        return f"SchemaRegistry({self._name!r}, {len(self)} kinds)"


default_registry = SchemaRegistry("default")


def _field_entry(kind: str, field_name: str | None, options: Any) -> dict[str, Any]:
    """Normalize one configured field to a dictionary with a ``name``.

    ``None`` (a bare YAML key) means a string field with no options and a
    bare string is read as the field type.
    """
    if options is None:
        options = {}
    elif isinstance(options, str):
        options = {"type": options}
    elif not isinstance(options, dict):
        raise ConfigurationError(
            f"Field '{field_name}' in schema '{kind}' must be a mapping or a type name, "
            f"got {type(options).__name__}",
            context={"kind": kind, "field_name": field_name},
        )
    entry = dict(options)
    if field_name is not None:
        entry["name"] = field_name
    if not entry.get("name"):
        raise ConfigurationError(
            f"Field in schema '{kind}' has no name", context={"kind": kind}
        )
    return entry
