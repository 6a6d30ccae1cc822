"""Field- and step-level rule evaluation for the onboarding wizards.

Everything in this module is pure: callers pass the field values, the flow
schema and the step the user has reached, and get an error map back. Errors
are computed for every field in scope whether or not the user touched it;
deciding which errors to *show* is left to the session/UI layer.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping
from datetime import date
from typing import Any

import config
from core.regexes import EMAIL_RE, PINCODE_RE, WEBSITE_RE, strip_non_digits
from core.schema import FieldSpec, NumericRange, ValidationRule, WizardSchema


def is_blank(value: object | None) -> bool:
    """Return ``True`` when ``value`` should count as not filled in."""

    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, frozenset)):
        return not any(not is_blank(item) for item in value)
    return False


def _coerce_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        cleaned = value.strip()
        if cleaned.lstrip("-").isdigit():
            try:
                return int(cleaned)
            except ValueError:
                # "--1990" or non-ASCII digits such as "²"
                return None
    return None


def _range_message(spec: FieldSpec, bounds: NumericRange, upper: int | None) -> str:
    rule = spec.rule
    if rule.numeric_message:
        return rule.numeric_message.format(minimum=bounds.minimum, maximum=upper, label=spec.label)
    if bounds.minimum is not None and upper is not None:
        return f"{spec.label} must be between {bounds.minimum} and {upper}"
    if bounds.minimum is not None:
        return f"{spec.label} must be at least {bounds.minimum}"
    return f"{spec.label} must be at most {upper}"


def _check_numeric(spec: FieldSpec, value: object, today: date) -> str | None:
    bounds = spec.rule.numeric_range
    assert bounds is not None
    upper = bounds.upper_bound(today)
    number = _coerce_int(value)
    if number is None:
        return _range_message(spec, bounds, upper)
    if bounds.minimum is not None and number < bounds.minimum:
        return _range_message(spec, bounds, upper)
    if upper is not None and number > upper:
        return _range_message(spec, bounds, upper)
    return None


def validate_field(spec: FieldSpec, value: object | None, *, today: date | None = None) -> str | None:
    """Return the error message for ``value`` under ``spec`` or ``None``."""

    rule = spec.rule
    collection_rule = rule.non_empty_collection or spec.is_collection
    if is_blank(value):
        if rule.required or rule.non_empty_collection:
            if collection_rule:
                return f"Select at least one {spec.label.lower()}"
            return f"{spec.label} is required"
        return None

    if isinstance(value, (list, tuple, set, frozenset)):
        # Collections only carry the non-empty constraint.
        return None

    text = str(value).strip()
    if rule.pattern is not None and not rule.pattern.match(text):
        return rule.pattern_message or f"Invalid {spec.label.lower()}"
    if rule.min_length is not None:
        measured = rule.normalizer(text) if rule.normalizer else text
        if len(measured) < rule.min_length:
            return rule.min_length_message or f"{spec.label} must be at least {rule.min_length} characters"
    if rule.numeric_range is not None:
        return _check_numeric(spec, value, today or date.today())
    return None


def validate(
    fields: Mapping[str, Any],
    schema: WizardSchema,
    up_to_step: int,
    *,
    today: date | None = None,
) -> dict[str, str]:
    """Validate every field owned by steps ``1..up_to_step``.

    Args:
        fields: Current draft values keyed by field name.
        schema: Flow schema describing steps, fields and rules.
        up_to_step: Highest step (1-based) whose fields are in scope.
        today: Reference date for year bounds; defaults to ``date.today()``.

    Returns:
        Mapping of field name to message for every failing field.
    """

    reference = today or date.today()
    scope = min(up_to_step, schema.total_steps)
    errors: dict[str, str] = {}
    for spec in schema.fields_up_to(scope):
        message = validate_field(spec, fields.get(spec.name), today=reference)
        if message:
            errors[spec.name] = message
    return errors


def first_invalid_step(errors: Collection[str], schema: WizardSchema) -> int | None:
    """Return the lowest step index owning one of ``errors``."""

    owners = [schema.step_for_field(name) for name in errors]
    return min(owners) if owners else None


def required_rule() -> ValidationRule:
    return ValidationRule(required=True)


def email_rule(*, required: bool = True) -> ValidationRule:
    return ValidationRule(required=required, pattern=EMAIL_RE, pattern_message="Invalid email format")


def phone_rule(label: str = "Phone number", *, required: bool = True) -> ValidationRule:
    return ValidationRule(
        required=required,
        min_length=config.PHONE_MIN_DIGITS,
        min_length_message=f"{label} must have at least {config.PHONE_MIN_DIGITS} digits",
        normalizer=strip_non_digits,
    )


def year_rule(*, required: bool = True) -> ValidationRule:
    return ValidationRule(
        required=required,
        numeric_range=NumericRange(minimum=config.MIN_ESTABLISHED_YEAR, max_current_year=True),
        numeric_message="Year must be between {minimum} and {maximum}",
    )


def collection_rule() -> ValidationRule:
    return ValidationRule(non_empty_collection=True)


def pincode_rule(*, required: bool = True) -> ValidationRule:
    return ValidationRule(
        required=required,
        pattern=PINCODE_RE,
        pattern_message="Valid 6-digit PIN code is required",
    )


def website_rule(*, required: bool = False) -> ValidationRule:
    return ValidationRule(required=required, pattern=WEBSITE_RE, pattern_message="Invalid website address")


def password_rule(*, required: bool = False) -> ValidationRule:
    return ValidationRule(
        required=required,
        min_length=config.PASSWORD_MIN_LENGTH,
        min_length_message=f"Password must be at least {config.PASSWORD_MIN_LENGTH} characters",
    )


__all__ = [
    "collection_rule",
    "email_rule",
    "first_invalid_step",
    "is_blank",
    "password_rule",
    "phone_rule",
    "pincode_rule",
    "required_rule",
    "validate",
    "validate_field",
    "website_rule",
    "year_rule",
]
