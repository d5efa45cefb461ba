"""Document instances: one in-memory record bound to a model.

Values are stored raw when set and only coerced and validated on ``save()``,
so documents can be built up incrementally. Field values are reachable by
attribute, by key or through ``get_field``/``set_field``:

    ```python
    user = User.create()
    user.age = "this is not a number"
    try:
        await user.save()
    except SaveValidationError as e:
        e.errors["age"].message
        # 'Cast to Number failed for value "this is not a number" at path "age"'
    user.errors.keys()  # dict_keys(['age'])
    ```
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from docknobs.exceptions import SaveValidationError, UnknownFieldError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from docknobs.exceptions import FieldError
    from docknobs.model import ModelHandle

logger = logging.getLogger(__name__)


class DocumentInstance:
    """A mutable document of one kind, tracking per-field errors.

    Attributes:
        errors: Mapping from field name to the error found by the last save
            or validate; empty when the document is valid
    """

    def __init__(self, model: ModelHandle):
        self._model = model
        self._raw: dict[str, Any] = {}
        self._values: dict[str, Any] = {
            field.name: field.produce_default() for field in model.fields if field.has_default
        }
        self._errors: dict[str, FieldError] = {}
        self._id: str | None = None
        self._persisted = False

    @classmethod
    def from_store(cls, model: ModelHandle, identity: str, data: dict[str, Any]) -> DocumentInstance:
        """Rebuild a persisted document from stored fields."""
        document = cls(model)
        document._values = {name: data.get(name) for name in model.field_names}
        document._id = data.get("_id") or identity
        document._persisted = True
        return document

    @property
    def kind(self) -> str:
        return self._model.kind

    @property
    def model(self) -> ModelHandle:
        return self._model

    @property
    def id(self) -> str | None:
        """Identity assigned by the store, None until first saved."""
        return self._id

    @property
    def is_persisted(self) -> bool:
        return self._persisted

    @property
    def errors(self) -> dict[str, FieldError]:
        return dict(self._errors)

    def _check_field(self, name: str) -> None:
        if self._model.get_definition(name) is None:
            raise UnknownFieldError(self._model.kind, name)

    def set_field(self, name: str, value: Any) -> None:
        """Store a raw value; coercion happens at save time.

        Raises:
            UnknownFieldError: If the schema does not declare the field
        """
        self._check_field(name)
        self._raw[name] = value

    def get_field(self, name: str, default: Any = None) -> Any:
        """Get the raw value set since the last save, else the stored value."""
        self._check_field(name)
        if name in self._raw:
            return self._raw[name]
        return self._values.get(name, default)

    def __getitem__(self, name: str) -> Any:
        try:
            return self.get_field(name)
        except UnknownFieldError as e:
            raise KeyError(name) from e

    def __setitem__(self, name: str, value: Any) -> None:
        self.set_field(name, value)

    def __contains__(self, name: str) -> bool:
        return name in self._raw or name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._model.field_names)

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal attribute lookup fails
        if name.startswith("_"):
            raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")
        if name in self._model.field_names:
            return self.get_field(name)
        raise AttributeError(f"'{type(self).__name__}' object has no field '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        if not name.startswith("_") and name in self._model.field_names:
            self.set_field(name, value)
        else:
            super().__setattr__(name, value)

    def to_dict(self) -> dict[str, Any]:
        """Current field values, raw values overlaying stored ones."""
        data: dict[str, Any] = {}
        if self._id is not None:
            data["_id"] = self._id
        for name in self._model.field_names:
            if name in self._raw:
                data[name] = self._raw[name]
            elif name in self._values:
                data[name] = self._values[name]
        return data

    def validate(self) -> SaveValidationError | None:
        """Coerce and validate without persisting.

        Updates ``errors`` and returns the aggregate error, or None when the
        document is valid.
        """
        result = self._model.engine.validate_document(self._model.fields, self._raw, self._values)
        self._errors = result.errors
        if result.valid:
            return None
        return SaveValidationError(self._model.kind, result.errors)

    async def save(self) -> DocumentInstance:
        """Coerce, validate and persist the document.

        Every field is coerced and validated; all failures are collected. On
        failure nothing is persisted and the errors are attached to the
        document.

        Returns:
            Self, with ``id`` set

        Raises:
            SaveValidationError: If any field failed coercion or validation
            NotConnectedError: If the connection is not open
            ConnectionClosedError: If the connection closed during the save
        """
        self._errors = {}
        result = self._model.engine.validate_document(self._model.fields, self._raw, self._values)
        if not result.valid:
            self._errors = result.errors
            raise SaveValidationError(self._model.kind, result.errors)

        fields = dict(result.values)
        if self._id is not None:
            fields["_id"] = self._id
        identity = await self._model._persist(fields)

        self._id = identity
        self._values = result.values
        self._raw = {}
        self._persisted = True
        logger.debug("Saved %s '%s'", self._model.kind, identity)
        return self

    async def remove(self) -> None:
        """Delete the document from the store; a no-op if it was never persisted."""
        if not self._persisted or self._id is None:
            return
        await self._model._delete(self._id)
        self._persisted = False
        logger.debug("Removed %s '%s'", self._model.kind, self._id)

    def __repr__(self) -> str:
        return f"DocumentInstance({self._model.kind!r}, {self.to_dict()!r})"
