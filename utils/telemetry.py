"""OpenTelemetry bootstrap and span helpers for the onboarding client."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Dict, Mapping

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter
from opentelemetry.sdk.trace.sampling import (
    ALWAYS_OFF,
    ALWAYS_ON,
    ParentBased,
    Sampler,
    TraceIdRatioBased,
)
from opentelemetry.trace import Span, Status, StatusCode

LOGGER = logging.getLogger("placement_onboarding.telemetry")

_INITIALISED = False
_PROVIDER_MARKER = "_placement_onboarding_configured"


@dataclass(frozen=True)
class OtlpConfig:
    """OTLP exporter settings resolved from ``OTEL_EXPORTER_OTLP_*``."""

    protocol: str
    endpoint: str
    headers: Mapping[str, str] | None = None
    timeout: int | None = None
    insecure: bool | None = None


def _parse_headers(raw: str | None) -> Dict[str, str]:
    """Parse ``key=value`` pairs separated by commas."""

    headers: Dict[str, str] = {}
    for fragment in (raw or "").split(","):
        key, sep, value = fragment.partition("=")
        if sep and key.strip():
            headers[key.strip()] = value.strip()
    return headers


def _coerce_ratio(raw: str, *, default: float) -> float:
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        LOGGER.warning("Invalid OTEL_TRACES_SAMPLER_ARG '%s'; using default %.2f", raw, default)
        return default
    return max(0.0, min(1.0, value))


def _build_sampler() -> Sampler:
    sampler_name = os.getenv("OTEL_TRACES_SAMPLER", "").strip().lower()
    ratio = _coerce_ratio(os.getenv("OTEL_TRACES_SAMPLER_ARG", "").strip(), default=1.0)
    if sampler_name in {"", "parentbased_traceidratio"}:
        return ParentBased(TraceIdRatioBased(ratio))
    if sampler_name == "traceidratio":
        return TraceIdRatioBased(ratio)
    if sampler_name == "always_on":
        return ALWAYS_ON
    if sampler_name == "always_off":
        return ALWAYS_OFF
    LOGGER.warning("Unknown OTEL_TRACES_SAMPLER '%s'; defaulting to parentbased_traceidratio", sampler_name)
    return ParentBased(TraceIdRatioBased(1.0))


def _build_otlp_config() -> OtlpConfig | None:
    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "").strip()
    if not endpoint:
        LOGGER.info("OTLP endpoint not configured; telemetry exporter will not be created")
        return None
    timeout: int | None = None
    timeout_raw = os.getenv("OTEL_EXPORTER_OTLP_TIMEOUT", "").strip()
    if timeout_raw:
        try:
            timeout = int(float(timeout_raw))
        except ValueError:
            LOGGER.warning("Invalid OTEL_EXPORTER_OTLP_TIMEOUT '%s'; ignoring", timeout_raw)
    insecure_flag = os.getenv("OTEL_EXPORTER_OTLP_INSECURE", "").strip().lower()
    return OtlpConfig(
        protocol=os.getenv("OTEL_EXPORTER_OTLP_PROTOCOL", "http/protobuf").strip().lower(),
        endpoint=endpoint,
        headers=_parse_headers(os.getenv("OTEL_EXPORTER_OTLP_HEADERS")) or None,
        timeout=timeout,
        insecure=True if insecure_flag in {"1", "true", "yes"} else None,
    )


def _create_otlp_exporter() -> SpanExporter | None:
    config = _build_otlp_config()
    if config is None:
        return None

    if config.protocol in {"grpc", "grpc/protobuf"}:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter as GrpcExporter

        return GrpcExporter(
            endpoint=config.endpoint,
            headers=tuple(config.headers.items()) if config.headers else None,
            timeout=config.timeout,
            insecure=config.insecure,
        )

    from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter as HttpExporter

    if config.protocol not in {"http", "http/protobuf"}:
        LOGGER.warning(
            "Unsupported OTEL_EXPORTER_OTLP_PROTOCOL '%s'; falling back to http/protobuf",
            config.protocol,
        )
    return HttpExporter(
        endpoint=config.endpoint,
        headers=dict(config.headers) if config.headers else None,
        timeout=config.timeout,
    )


def setup_tracing(*, force: bool = False) -> None:
    """Configure the global tracer provider if telemetry is enabled."""

    global _INITIALISED
    if _INITIALISED and not force:
        return

    if os.getenv("OTEL_TRACES_ENABLED", "1").strip().lower() in {"0", "false", "off"}:
        LOGGER.info("Telemetry disabled via OTEL_TRACES_ENABLED")
        return

    exporter = _create_otlp_exporter()
    if exporter is None:
        LOGGER.debug("No OTLP exporter configured; skipping telemetry bootstrap")
        return

    if not force and getattr(trace.get_tracer_provider(), _PROVIDER_MARKER, False):
        LOGGER.debug("Telemetry already initialised; skipping setup")
        return

    service_name = os.getenv("OTEL_SERVICE_NAME", "placement-onboarding")
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}), sampler=_build_sampler())
    provider.add_span_processor(BatchSpanProcessor(exporter))
    setattr(provider, _PROVIDER_MARKER, True)
    trace.set_tracer_provider(provider)

    _INITIALISED = True
    LOGGER.info("OpenTelemetry tracing initialised for service '%s'", service_name)


def mark_span_failed(span: Span, exc: BaseException, *, description: str | None = None) -> None:
    """Record ``exc`` on ``span`` and flag the span as failed."""

    span.record_exception(exc)
    span.set_status(Status(StatusCode.ERROR, description or str(exc)))


__all__ = ["OtlpConfig", "mark_span_failed", "setup_tracing"]
