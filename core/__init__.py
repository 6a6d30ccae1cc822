"""Core schema types, validation rules and errors for onboarding wizards."""

from .schema import FieldKind, FieldSpec, ValidationRule, WizardSchema, WizardStep
from .validation import first_invalid_step, validate, validate_field

__all__ = [
    "FieldKind",
    "FieldSpec",
    "ValidationRule",
    "WizardSchema",
    "WizardStep",
    "first_invalid_step",
    "validate",
    "validate_field",
]
