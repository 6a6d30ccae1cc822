"""Wizard flows: schemas, draft sessions and the step engine."""

from __future__ import annotations

import importlib
from typing import Any

from .documents import Attachment, DocumentSlot, build_attachment
from .step_registry import WIZARD_SCHEMAS, WizardFlow, get_schema, resolve_flow

__all__ = [
    "Attachment",
    "DocumentSlot",
    "WIZARD_SCHEMAS",
    "WizardFlow",
    "build_attachment",
    "get_schema",
    "resolve_flow",
]


# ``wizard.engine`` imports the submission client, which imports
# ``wizard.documents``; load these lazily to keep package import acyclic.
_LAZY_EXPORTS: dict[str, str] = {
    "DraftSession": "session",
    "SessionSnapshot": "session",
    "SubmissionState": "session",
    "StepProgress": "engine",
    "SubmissionOutcome": "engine",
    "SubmissionStatus": "engine",
    "WizardEngine": "engine",
}


def __getattr__(name: str) -> Any:
    """Load engine and session attributes on first access."""

    module_name = _LAZY_EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__} has no attribute {name}")
    module = importlib.import_module(f"{__name__}.{module_name}")
    value: Any = getattr(module, name)
    globals()[name] = value
    return value


def __dir__() -> list[str]:  # pragma: no cover - convenience for REPLs
    return sorted(set(__all__) | set(_LAZY_EXPORTS))
