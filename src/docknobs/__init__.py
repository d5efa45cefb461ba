"""docknobs - schema-validated document client.

An object-document mapping layer with connection-state management, type
coercion and declarative validation, persisting through a pluggable storage
hook.

Modules:
    fields: Field types, field definitions and validator rules
    schema: Fluent schema builder and the registry of document kinds
    validation: Type coercion and the validator engine
    document: Document instances with lazy validation and save/remove
    model: Model handles binding a document kind to a connection
    connection: Connection lifecycle, state subscriptions, store operations
    transitions: Connection states and their allowed transitions
    storage: Storage hook protocol, in-memory store and store factory
    config: Connection options and settings loading
    exceptions: Error hierarchy

Quick Example:

    ```python
    from datetime import datetime
    from docknobs import ConnectionManager, Schema, after_field

    connection = ConnectionManager()
    await connection.open("memory://localhost")

    Appointment = connection.model(
        "Appointment",
        Schema("Appointment")
        .field("label", "string")
        .field("start", "timestamp")
        .field("end", "timestamp",
               validators=[after_field("start", "{VALUE} must be after the start date")]),
    )

    appointment = Appointment.create(start=datetime(2024, 1, 2), end=datetime(2024, 1, 3))
    await appointment.save()
    await connection.close()
    ```
"""

from docknobs.config import ConnectionOptions, Settings, load_settings
from docknobs.connection import (
    ConnectionManager,
    StateChange,
    Subscription,
    connect,
    get_default_connection,
)
from docknobs.document import DocumentInstance
from docknobs.exceptions import (
    CastError,
    ConfigurationError,
    ConnectionClosedError,
    ConnectionFailedError,
    DocknobsError,
    DuplicateFieldError,
    FieldError,
    NotConnectedError,
    RequiredFieldError,
    SaveValidationError,
    UnknownFieldError,
    UnknownKindError,
    ValidatorFailureError,
)
from docknobs.fields import MISSING, FieldDefinition, FieldType, Validator
from docknobs.model import ModelHandle
from docknobs.schema import Schema, SchemaRegistry, default_registry
from docknobs.storage import MemoryStore, StorageHook, create_store, register_store
from docknobs.transitions import ConnectionState, InvalidTransitionError
from docknobs.validation import Coercer, ValidatorEngine, after_field, validator

__version__ = "0.1.0"

__all__ = [
    # Schema
    "FieldType",
    "FieldDefinition",
    "Validator",
    "MISSING",
    "Schema",
    "SchemaRegistry",
    "default_registry",
    # Validation
    "Coercer",
    "ValidatorEngine",
    "validator",
    "after_field",
    # Documents and models
    "DocumentInstance",
    "ModelHandle",
    # Connections
    "ConnectionManager",
    "ConnectionState",
    "StateChange",
    "Subscription",
    "connect",
    "get_default_connection",
    # Storage
    "StorageHook",
    "MemoryStore",
    "create_store",
    "register_store",
    # Config
    "ConnectionOptions",
    "Settings",
    "load_settings",
    # Errors
    "DocknobsError",
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
    "InvalidTransitionError",
]
