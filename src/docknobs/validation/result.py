"""Result types for coercion and validation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from docknobs.exceptions import FieldError


@dataclass
class ValidationResult:
    """Outcome of coercing or validating a single field.

    Coercion never raises; it returns one of these. A failed result carries
    the field error that will be reported to the caller.
    """

    valid: bool
    value: Any  # The (possibly coerced) value
    error: FieldError | None = None

    def __bool__(self) -> bool:
        """Allow 'if result:' usage to check validity."""
        return self.valid

    @classmethod
    def success(cls, value: Any) -> ValidationResult:
        return cls(valid=True, value=value)

    @classmethod
    def failure(cls, value: Any, error: FieldError) -> ValidationResult:
        return cls(valid=False, value=value, error=error)


@dataclass
class DocumentResult:
    """Outcome of running coercion and validation over a whole document.

    Attributes:
        values: Coerced values for every field that coerced successfully
        errors: Mapping from field name to its single error
    """

    values: dict[str, Any] = field(default_factory=dict)
    errors: dict[str, FieldError] = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return not self.errors

    def __bool__(self) -> bool:
        return self.valid
