"""Declarative validator rules and the engine that runs them.

Validators run after coercion, in declaration order, against the coerced
value and a read-only view of the whole candidate document. The first failing
validator of a field produces that field's error.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from docknobs.exceptions import RequiredFieldError, ValidatorFailureError
from docknobs.fields import MISSING, Validator

from .coercer import Coercer
from .result import DocumentResult

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from docknobs.exceptions import FieldError
    from docknobs.fields import FieldDefinition

logger = logging.getLogger(__name__)


def validator(
    predicate: Callable[[Any, Mapping[str, Any]], bool],
    message: str | None = None,
) -> Validator:
    """Build a Validator from a predicate and an optional message template."""
    if message is None:
        return Validator(predicate)
    return Validator(predicate, message)


def after_field(other: str, message: str | None = None) -> Validator:
    """Require the value to be strictly greater than another field's value.

    The rule passes when either side is absent, leaving presence checks to
    ``required``.

    Args:
        other: Name of the field to compare against
        message: Message template, defaults to "{VALUE} must be after <other>"
    """
    def _is_after(value: Any, document: Mapping[str, Any]) -> bool:
        reference = document.get(other)
        return reference is None or reference < value

    return Validator(_is_after, message or f"{{VALUE}} must be after {other}")


class ValidatorEngine:
    """Runs field validators against coerced documents."""

    def __init__(self, coercer: Coercer | None = None):
        self.coercer = coercer or Coercer()

    def validate(
        self,
        field: FieldDefinition,
        value: Any,
        document: Mapping[str, Any],
    ) -> ValidatorFailureError | None:
        """Run a field's validators in declaration order.

        Args:
            field: Definition of the field being validated
            value: The coerced value
            document: Read-only view of the candidate document's values

        Returns:
            The first failure, or None when every validator passes
        """
        if value is None:
            return None

        for rule in field.validators:
            try:
                passed = bool(rule.predicate(value, document))
            except Exception as e:
                return ValidatorFailureError(
                    f'Validator failed for path "{field.name}": {e!s}',
                    path=field.name,
                    value=value,
                )
            if not passed:
                return ValidatorFailureError(
                    rule.format_message(field.name, value),
                    path=field.name,
                    value=value,
                )
        return None

    def validate_document(
        self,
        fields: Iterable[FieldDefinition],
        raw_values: Mapping[str, Any],
        defaults: Mapping[str, Any] | None = None,
    ) -> DocumentResult:
        """Coerce and validate every field of a candidate document.

        Coercion runs for all fields first so validators can see the coerced
        values of their siblings. A field that fails coercion is not
        validator-checked; its cast or required error is its only error.

        Args:
            fields: Field definitions in declaration order
            raw_values: Raw values set on the document
            defaults: Values already produced for fields that were not set

        Returns:
            DocumentResult with coerced values and per-field errors
        """
        fields = list(fields)
        defaults = defaults or {}
        result = DocumentResult()

        for field in fields:
            if field.name not in raw_values and field.name in defaults:
                value = defaults[field.name]
                if value is None and field.required:
                    result.errors[field.name] = RequiredFieldError(field.name)
                else:
                    result.values[field.name] = value
                continue
            coerced = self.coercer.coerce(field, raw_values.get(field.name, MISSING))
            if coerced.valid:
                result.values[field.name] = coerced.value
            else:
                result.errors[field.name] = coerced.error  # type: ignore[assignment]

        document = MappingProxyType(dict(result.values))
        for field in fields:
            if field.name in result.errors or not field.validators:
                continue
            error: FieldError | None = self.validate(field, result.values[field.name], document)
            if error is not None:
                result.errors[field.name] = error

        # Keep errors in declaration order regardless of which phase found them
        order = {field.name: index for index, field in enumerate(fields)}
        result.errors = dict(sorted(result.errors.items(), key=lambda item: order[item[0]]))

        if result.errors:
            logger.debug("Validation found errors on %s", list(result.errors))
        return result
