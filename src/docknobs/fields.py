"""Field types and field definitions for document schemas.

A :class:`FieldDefinition` describes one field of a document kind: its
declared :class:`FieldType`, an optional default, whether it is required and
an ordered list of :class:`Validator` rules checked after coercion.

Example:
    ```python
    from docknobs.fields import FieldDefinition, FieldType, Validator

    end = FieldDefinition(
        name="end",
        field_type=FieldType.TIMESTAMP,
        validators=(
            Validator(
                lambda value, doc: doc.get("start") is None or doc["start"] < value,
                "{VALUE} must be after the start date",
            ),
        ),
    )
    ```
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping


class _Missing:
    """Sentinel type for values that were never set."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


class FieldType(Enum):
    """Enumeration of supported field types.

    Attributes:
        STRING: Text values, any input is accepted via string conversion
        NUMBER: Integer or floating point numbers
        BOOLEAN: True/False values
        TIMESTAMP: Date and time values
    """

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"

    @classmethod
    def parse(cls, value: FieldType | str) -> FieldType:
        """Resolve a FieldType from an enum member, value or member name.

        Args:
            value: FieldType, or a name such as "number" / "NUMBER"

        Returns:
            The matching FieldType

        Raises:
            ValueError: If the name does not match any type
        """
        if isinstance(value, FieldType):
            return value
        name = str(value).strip()
        for member in cls:
            if name.lower() in (member.value, member.name.lower()):
                return member
        raise ValueError(f"Invalid field type: {value}")

    @property
    def display_name(self) -> str:
        """Type name used in cast error messages."""
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    FieldType.STRING: "String",
    FieldType.NUMBER: "Number",
    FieldType.BOOLEAN: "Boolean",
    FieldType.TIMESTAMP: "Date",
}


@dataclass(frozen=True)
class Validator:
    """A declared validation rule: a predicate plus a message template.

    The predicate receives the coerced field value and a read-only mapping of
    the candidate document's coerced values, and returns True when valid.
    The message may reference ``{VALUE}`` and ``{PATH}``.
    """

    predicate: Callable[[Any, Mapping[str, Any]], bool]
    message: str = "Validator failed for path `{PATH}` with value `{VALUE}`"

    def format_message(self, path: str, value: Any) -> str:
        """Render the message template for a failing value."""
        return self.message.replace("{VALUE}", str(value)).replace("{PATH}", path)


@dataclass(frozen=True)
class FieldDefinition:
    """Definition of a single schema field.

    Attributes:
        name: Field name, unique within its schema
        field_type: Declared type the raw value is coerced to
        default: Callable producing a default, or a static default value
        required: Whether an absent value without a default is an error
        validators: Rules checked in order after successful coercion
        description: Optional human-readable description
    """

    name: str
    field_type: FieldType = FieldType.STRING
    default: Any = MISSING
    required: bool = False
    validators: tuple[Validator, ...] = field(default_factory=tuple)
    description: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "field_type", FieldType.parse(self.field_type))
        object.__setattr__(self, "validators", tuple(self.validators))

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING

    def produce_default(self) -> Any:
        """Invoke the default producer, or copy a static default."""
        if callable(self.default):
            return self.default()
        return copy.deepcopy(self.default)

    def to_dict(self) -> dict[str, Any]:
        """Describe the field as a plain dictionary."""
        return {
            "type": self.field_type.value,
            "required": self.required,
            "has_default": self.has_default,
            "validators": len(self.validators),
            "description": self.description,
        }
