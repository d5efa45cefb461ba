"""Coercion and validation of document fields.

- Coercer converts raw values to declared field types
- ValidatorEngine runs declared validator rules after coercion
- ValidationResult / DocumentResult carry outcomes without raising
"""

from .coercer import Coercer
from .result import DocumentResult, ValidationResult
from .validators import ValidatorEngine, after_field, validator

__all__ = [
    "Coercer",
    "ValidatorEngine",
    "ValidationResult",
    "DocumentResult",
    "validator",
    "after_field",
]
