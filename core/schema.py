"""Typed field and step schema shared by every onboarding wizard flow."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from core.errors import SchemaError, UnknownFieldError


class FieldKind(StrEnum):
    """Input kinds understood by the validation engine and the UI."""

    TEXT = "text"
    TEXTAREA = "textarea"
    EMAIL = "email"
    PHONE = "phone"
    YEAR = "year"
    NUMBER = "number"
    DATE = "date"
    CHOICE = "choice"
    MULTI_CHOICE = "multi_choice"
    PASSWORD = "password"
    HIDDEN = "hidden"


@dataclass(frozen=True)
class NumericRange:
    """Inclusive numeric bounds; ``max_current_year`` caps at today's year."""

    minimum: int | None = None
    maximum: int | None = None
    max_current_year: bool = False

    def upper_bound(self, today: date) -> int | None:
        if self.max_current_year:
            return today.year
        return self.maximum


@dataclass(frozen=True)
class ValidationRule:
    """Declarative per-field contract evaluated by ``core.validation``.

    ``normalizer`` runs before ``min_length`` so that, for example, phone
    numbers are measured in digits. ``pattern`` is matched against the
    stripped raw value.
    """

    required: bool = False
    pattern: re.Pattern[str] | None = None
    pattern_message: str | None = None
    min_length: int | None = None
    min_length_message: str | None = None
    normalizer: Callable[[str], str] | None = None
    numeric_range: NumericRange | None = None
    numeric_message: str | None = None
    non_empty_collection: bool = False


@dataclass(frozen=True)
class FieldSpec:
    """A single typed wizard field.

    ``name`` is the Python-side identifier; ``alias`` is the REST field name
    used in request and response payloads.
    """

    name: str
    label: str
    kind: FieldKind = FieldKind.TEXT
    rule: ValidationRule = field(default_factory=ValidationRule)
    alias: str | None = None
    options: tuple[str, ...] = ()
    default: Any = None
    help: str | None = None

    @property
    def wire_name(self) -> str:
        return self.alias or self.name

    @property
    def is_collection(self) -> bool:
        return self.kind is FieldKind.MULTI_CHOICE

    def initial_value(self) -> Any:
        if self.is_collection:
            return frozenset(self.default or ())
        if self.default is None:
            return ""
        return self.default


@dataclass(frozen=True)
class WizardStep:
    """Static metadata describing an individual wizard step."""

    key: str
    title: str
    fields: tuple[FieldSpec, ...] = ()
    terminal: bool = False
    description: str | None = None

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.fields)


class WizardSchema:
    """Ordered, closed set of steps and fields for one wizard flow.

    Step indices are 1-based to match the wizard's ``step_index``.
    ``verified_email_field`` names an email field that must be confirmed
    with a one-time code before its step counts as valid.
    """

    def __init__(
        self,
        flow: str,
        steps: tuple[WizardStep, ...],
        *,
        verified_email_field: str | None = None,
    ) -> None:
        if not steps:
            raise SchemaError(f"Flow '{flow}' needs at least one step")
        terminal_positions = [pos for pos, step in enumerate(steps, start=1) if step.terminal]
        if terminal_positions != [len(steps)]:
            raise SchemaError(f"Flow '{flow}' must have exactly one terminal step and it must be last")
        owners: dict[str, int] = {}
        specs: dict[str, FieldSpec] = {}
        for position, step in enumerate(steps, start=1):
            for spec in step.fields:
                if spec.name in owners:
                    raise SchemaError(
                        f"Field '{spec.name}' is owned by steps {owners[spec.name]} and {position} in flow '{flow}'"
                    )
                owners[spec.name] = position
                specs[spec.name] = spec
        aliases = [spec.wire_name for spec in specs.values()]
        if len(set(aliases)) != len(aliases):
            raise SchemaError(f"Flow '{flow}' declares duplicate wire names")
        if verified_email_field is not None and verified_email_field not in specs:
            raise SchemaError(f"Flow '{flow}' has no field '{verified_email_field}' to verify")
        self.flow = flow
        self.steps = steps
        self.verified_email_field = verified_email_field
        self._owners = MappingProxyType(owners)
        self._specs = MappingProxyType(specs)
        self._by_alias = MappingProxyType({spec.wire_name: spec for spec in specs.values()})

    def __repr__(self) -> str:
        return f"WizardSchema(flow={self.flow!r}, steps={[step.key for step in self.steps]!r})"

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(self._specs)

    def step(self, index: int) -> WizardStep:
        if not 1 <= index <= self.total_steps:
            raise IndexError(f"Step {index} is outside 1..{self.total_steps}")
        return self.steps[index - 1]

    def field(self, name: str) -> FieldSpec:
        try:
            return self._specs[name]
        except KeyError:
            raise UnknownFieldError(name, self.flow) from None

    def field_for_alias(self, alias: str) -> FieldSpec | None:
        return self._by_alias.get(alias)

    def step_for_field(self, name: str) -> int:
        """Return the 1-based index of the step that owns ``name``."""

        try:
            return self._owners[name]
        except KeyError:
            raise UnknownFieldError(name, self.flow) from None

    def fields_up_to(self, step_index: int) -> Iterator[FieldSpec]:
        """Yield the fields owned by steps ``1..step_index`` in declaration order."""

        for step in self.steps[: max(step_index, 0)]:
            yield from step.fields

    def defaults(self) -> dict[str, Any]:
        return {name: spec.initial_value() for name, spec in self._specs.items()}

    def specs(self) -> Mapping[str, FieldSpec]:
        return self._specs


__all__ = [
    "FieldKind",
    "FieldSpec",
    "NumericRange",
    "ValidationRule",
    "WizardSchema",
    "WizardStep",
]
