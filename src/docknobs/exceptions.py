"""Exception hierarchy for docknobs.

All errors derive from :class:`DocknobsError`, which carries an optional
context dictionary with structured details about the failure. Category bases
(:class:`ValidationError`, :class:`NotFoundError`, :class:`OperationError`,
:class:`ResourceError`, :class:`ConfigurationError`) let callers catch a whole
family of failures at once.

Field-level errors (:class:`CastError`, :class:`RequiredFieldError`,
:class:`ValidatorFailureError`) are never raised on their own by ``save()``;
they are collected into a :class:`SaveValidationError`.

Example:
    ```python
    from docknobs.exceptions import SaveValidationError

    try:
        await user.save()
    except SaveValidationError as e:
        for path, error in e.errors.items():
            print(path, error.message)
    ```
"""

from __future__ import annotations

from typing import Any, Mapping


class DocknobsError(Exception):
    """Base exception for all docknobs errors.

    Args:
        message: Human-readable error message
        context: Optional dictionary with error context (field names, IDs, etc.)
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ValidationError(DocknobsError):
    """Raised when data or schema definitions fail validation."""

    pass


class NotFoundError(DocknobsError):
    """Raised when a requested item is not found."""

    pass


class OperationError(DocknobsError):
    """Raised when an operation fails or is not allowed."""

    pass


class ResourceError(DocknobsError):
    """Raised when a resource (connection, store) is unavailable."""

    pass


class ConfigurationError(DocknobsError):
    """Raised when configuration is invalid or missing."""

    pass


class DuplicateFieldError(ValidationError):
    """Raised when a schema declares the same field name twice."""

    def __init__(self, kind: str, field_name: str):
        self.kind = kind
        self.field_name = field_name
        super().__init__(
            f"Schema '{kind}' declares field '{field_name}' more than once",
            context={"kind": kind, "field_name": field_name},
        )


class UnknownKindError(NotFoundError):
    """Raised when a document kind has not been registered."""

    def __init__(self, kind: str, available: list[str] | None = None):
        self.kind = kind
        self.available = available or []
        message = f"Schema '{kind}' has not been registered"
        if self.available:
            message += f". Registered kinds: {', '.join(self.available)}"
        super().__init__(message, context={"kind": kind, "available": self.available})


class UnknownFieldError(ValidationError):
    """Raised when setting a field that the schema does not declare."""

    def __init__(self, kind: str, field_name: str):
        self.kind = kind
        self.field_name = field_name
        super().__init__(
            f"Field '{field_name}' is not declared by schema '{kind}'",
            context={"kind": kind, "field_name": field_name},
        )


class FieldError(ValidationError):
    """Base class for errors attached to a single document field.

    Attributes:
        path: Name of the failing field
        value: The raw (or coerced) value that failed
        kind: Short error category ("cast", "required", "user defined")
    """

    kind = "field"

    def __init__(self, message: str, path: str, value: Any = None):
        self.path = path
        self.value = value
        super().__init__(message, context={"path": path, "kind": self.kind})


class CastError(FieldError):
    """Raised when a raw value cannot be converted to the declared type."""

    kind = "cast"

    def __init__(self, type_name: str, value: Any, path: str):
        self.type_name = type_name
        super().__init__(
            f'Cast to {type_name} failed for value "{value}" at path "{path}"',
            path=path,
            value=value,
        )


class RequiredFieldError(FieldError):
    """Raised when a required field has no value and no default."""

    kind = "required"

    def __init__(self, path: str):
        super().__init__(f"Path `{path}` is required.", path=path)


class ValidatorFailureError(FieldError):
    """Raised when a custom validator rejects a coerced value."""

    kind = "user defined"


class SaveValidationError(ValidationError):
    """Raised when a document fails coercion or validation on save.

    Attributes:
        errors: Mapping from field name to the field's error
    """

    def __init__(self, kind: str, errors: Mapping[str, FieldError]):
        self.kind = kind
        self.errors = dict(errors)
        details = ", ".join(f"{path}: {error.message}" for path, error in self.errors.items())
        super().__init__(
            f"{kind} validation failed: {details}",
            context={"kind": kind, "paths": list(self.errors)},
        )


class NotConnectedError(ResourceError):
    """Raised when an operation needs a connected manager and it is not."""

    def __init__(self, state: str, operation: str | None = None):
        self.state = state
        self.operation = operation
        target = f"'{operation}'" if operation else "operation"
        super().__init__(
            f"Cannot run {target}: connection is {state}",
            context={"state": state, "operation": operation},
        )


class ConnectionClosedError(ResourceError):
    """Raised when an operation is aborted because the connection closed."""

    def __init__(self, operation: str | None = None):
        self.operation = operation
        target = f"'{operation}'" if operation else "Operation"
        super().__init__(
            f"{target} aborted: connection closed",
            context={"operation": operation},
        )


class ConnectionFailedError(ResourceError):
    """Raised when establishing a connection fails."""

    def __init__(self, address: str, message: str):
        self.address = address
        super().__init__(
            f"Failed to connect to '{address}': {message}",
            context={"address": address},
        )


__all__ = [
    "DocknobsError",
    "ValidationError",
    "NotFoundError",
    "OperationError",
    "ResourceError",
    "ConfigurationError",
    "DuplicateFieldError",
    "UnknownKindError",
    "UnknownFieldError",
    "FieldError",
    "CastError",
    "RequiredFieldError",
    "ValidatorFailureError",
    "SaveValidationError",
    "NotConnectedError",
    "ConnectionClosedError",
    "ConnectionFailedError",
]
