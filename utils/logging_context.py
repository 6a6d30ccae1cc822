"""Context variables that tag every log record with the active wizard draft.

Records carry ``session_id``, ``flow`` and ``wizard_step`` attributes, whether
they pass through the root handler filter or are created by the installed
record factory. The format line prints all three, so one student registration
or agent edit can be followed across gate, navigation and submission logs.

``session_id`` is the draft's id rather than a browser session, ``flow`` names
the wizard (``student-register``, ``agent-create``, ``agent-edit``) and
``wizard_step`` is the 1-based step index. Callers holding a
:class:`~wizard.session.DraftSession` use :func:`draft_context`, which binds
all three at once; :func:`log_context` overrides single values. Blank or
``None`` values render as ``-``.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import Any, Iterator

_DEFAULT_LOG_FORMAT = (
    "%(asctime)s %(levelname)s [session=%(session_id)s flow=%(flow)s step=%(wizard_step)s] %(name)s: %(message)s"
)

_session_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("session_id", default="-")
_wizard_step_var: contextvars.ContextVar[str] = contextvars.ContextVar("wizard_step", default="-")
_flow_var: contextvars.ContextVar[str] = contextvars.ContextVar("flow", default="-")
_DEFAULT_RECORD_FACTORY = logging.getLogRecordFactory()
_RECORD_FACTORY_INSTALLED = False


def _apply_context(record: logging.LogRecord) -> None:
    record.session_id = _session_id_var.get("-")
    record.wizard_step = _wizard_step_var.get("-")
    record.flow = _flow_var.get("-")


class _ContextFilter(logging.Filter):
    """Inject contextual fields into log records for consistent formatting."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401 - logging protocol
        _apply_context(record)
        return True


def _coerce(value: object | None) -> str:
    if value is None:
        return "-"
    stripped = str(value).strip()
    return stripped or "-"


def configure_logging(*, level: int = logging.INFO) -> None:
    """Ensure the root logger formats records with contextual metadata."""

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=_DEFAULT_LOG_FORMAT)
        root = logging.getLogger()
    for handler in root.handlers:
        formatter = handler.formatter or logging.Formatter(_DEFAULT_LOG_FORMAT)
        handler.setFormatter(formatter)
    has_filter = any(isinstance(flt, _ContextFilter) for flt in root.filters)
    if not has_filter:
        root.addFilter(_ContextFilter())
    global _RECORD_FACTORY_INSTALLED
    if not _RECORD_FACTORY_INSTALLED:
        default_factory = _DEFAULT_RECORD_FACTORY

        def _record_factory(*args: object, **kwargs: object) -> logging.LogRecord:
            record = default_factory(*args, **kwargs)
            _apply_context(record)
            return record

        logging.setLogRecordFactory(_record_factory)
        _RECORD_FACTORY_INSTALLED = True


def set_session_id(session_id: str | None) -> None:
    """Bind a draft session identifier for subsequent log records."""

    configure_logging()
    _session_id_var.set(_coerce(session_id))


def set_flow(flow: str | None) -> None:
    """Bind the active wizard flow (``student-register``, ``agent-create`` ...)."""

    _flow_var.set(_coerce(flow))


@contextmanager
def log_context(
    *,
    session_id: str | None = None,
    wizard_step: object | None = None,
    flow: str | None = None,
) -> Iterator[None]:
    """Temporarily override logging context variables."""

    tokens: list[tuple[contextvars.ContextVar[str], contextvars.Token[str]]] = []
    if session_id is not None:
        tokens.append((_session_id_var, _session_id_var.set(_coerce(session_id))))
    if wizard_step is not None:
        tokens.append((_wizard_step_var, _wizard_step_var.set(_coerce(wizard_step))))
    if flow is not None:
        tokens.append((_flow_var, _flow_var.set(_coerce(flow))))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


@contextmanager
def draft_context(draft: Any, *, step: int | None = None) -> Iterator[None]:
    """Bind session, flow and step of a wizard draft for the enclosed block.

    ``draft`` only needs ``session_id``, ``schema.flow`` and ``step_index``;
    ``step`` overrides the step, e.g. while moving to the next one.
    """

    with log_context(
        session_id=draft.session_id,
        flow=str(draft.schema.flow),
        wizard_step=draft.step_index if step is None else step,
    ):
        yield
