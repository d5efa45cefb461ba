"""Type coercion with predictable, consistent behavior.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any

from docknobs.exceptions import CastError, RequiredFieldError
from docknobs.fields import MISSING, FieldType

from .result import ValidationResult

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from docknobs.fields import FieldDefinition

logger = logging.getLogger(__name__)

_TRUE_STRINGS = ("true", "1")
_FALSE_STRINGS = ("false", "0")


class Coercer:
    """Converts raw input values into declared field types.

    Always returns ValidationResult, never raises exceptions. Failures carry a
    CastError or RequiredFieldError whose message is part of the public
    contract.
    """

    def coerce(self, field: FieldDefinition, raw: Any = MISSING) -> ValidationResult:
        """Coerce a raw value for a field.

        Args:
            field: Definition of the field being coerced
            raw: Raw input value, MISSING when the field was never set

        Returns:
            ValidationResult with the typed value or the field error
        """
        if self._is_absent(field, raw):
            if field.has_default:
                # Produced defaults are trusted and not coerced further
                value = field.produce_default()
                if value is None and field.required:
                    return ValidationResult.failure(None, RequiredFieldError(field.name))
                return ValidationResult.success(value)
            if field.required:
                return ValidationResult.failure(None, RequiredFieldError(field.name))
            return ValidationResult.success(None)

        try:
            coerced = self._coerce_value(raw, field.field_type)
        except (ValueError, TypeError, OverflowError, OSError) as e:
            logger.debug("Cast of %r to %s failed for '%s': %s",
                         raw, field.field_type.name, field.name, e)
            return ValidationResult.failure(
                raw, CastError(field.field_type.display_name, raw, field.name)
            )
        return ValidationResult.success(coerced)

    def coerce_all(
        self,
        fields: Iterable[FieldDefinition],
        raw_values: Mapping[str, Any],
    ) -> dict[str, ValidationResult]:
        """Coerce every field, collecting all failures.

        Args:
            fields: Field definitions in declaration order
            raw_values: Mapping of field names to raw values; absent names
                are treated as never set

        Returns:
            Dictionary of field names to ValidationResults
        """
        return {
            field.name: self.coerce(field, raw_values.get(field.name, MISSING))
            for field in fields
        }

    def _is_absent(self, field: FieldDefinition, raw: Any) -> bool:
        if raw is MISSING or raw is None:
            return True
        # Blank strings carry no value for non-string types
        if field.field_type is not FieldType.STRING and isinstance(raw, str):
            return raw.strip() == ""
        return False

    def _coerce_value(self, value: Any, target_type: FieldType) -> Any:
        """Perform the actual coercion.

        Raises:
            ValueError: If the value cannot be converted
        """
        if target_type is FieldType.STRING:
            if isinstance(value, str):
                return value
            elif isinstance(value, bytes):
                return value.decode("utf-8", errors="replace")
            elif isinstance(value, (datetime, date)):
                return value.isoformat()
            return str(value)

        elif target_type is FieldType.NUMBER:
            if isinstance(value, bool):
                return 1 if value else 0
            elif isinstance(value, int):
                return value
            elif isinstance(value, float):
                if math.isnan(value):
                    raise ValueError("NaN is not a number")
                return value
            elif isinstance(value, str):
                value = value.strip()
                try:
                    return int(value)
                except ValueError:
                    result = float(value)
                if math.isnan(result):
                    raise ValueError("NaN is not a number")
                return result
            raise TypeError(f"Cannot convert {type(value).__name__} to number")

        elif target_type is FieldType.BOOLEAN:
            if isinstance(value, bool):
                return value
            elif isinstance(value, int) and value in (0, 1):
                return value == 1
            elif isinstance(value, str):
                value = value.strip().lower()
                if value in _TRUE_STRINGS:
                    return True
                elif value in _FALSE_STRINGS:
                    return False
            raise ValueError(f"{value!r} is not a valid boolean")

        elif target_type is FieldType.TIMESTAMP:
            if isinstance(value, datetime):
                return _to_utc(value)
            elif isinstance(value, date):
                return _to_utc(datetime(value.year, value.month, value.day))
            elif isinstance(value, bool):
                raise TypeError("Cannot convert bool to timestamp")
            elif isinstance(value, (int, float)):
                # Unix timestamp in seconds
                return datetime.fromtimestamp(value, tz=timezone.utc)
            elif isinstance(value, str):
                value = value.strip()
                if value.endswith(("Z", "z")):
                    value = value[:-1] + "+00:00"
                return _to_utc(datetime.fromisoformat(value))
            raise TypeError(f"Cannot convert {type(value).__name__} to timestamp")

        # Unknown type - pass through unchanged
        return value  # type: ignore[unreachable]


def _to_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC; naive values are read as local time."""
    return value.astimezone(timezone.utc)
