"""Error reporting and tracing setup for the Samaya client core."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

import httpx
import sentry_sdk
from sentry_sdk.integrations.httpx import HttpxIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from .config import Settings

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import TracerProvider

_tracer_provider: Optional["TracerProvider"] = None
_otel_initialized = False


def _scrub_event(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any]:
    # Bearer tokens must never leave the device.
    request = event.get("request") or {}
    headers = request.get("headers")
    if isinstance(headers, dict):
        for key in list(headers):
            if key.lower() == "authorization":
                headers[key] = "[Filtered]"
    return event


def init_sentry(settings: Settings, release: str | None = None) -> bool:
    """Initialize Sentry when a DSN is configured. Returns whether it was enabled."""
    if not settings.sentry_dsn:
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=release or settings.app_version,
        integrations=[
            HttpxIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        send_default_pii=False,
        before_send=_scrub_event,
        traces_sample_rate=0.1,
    )
    logger.info("Sentry initialized for environment: %s", settings.environment)
    return True


def init_otel(settings: Settings, service_name: Optional[str] = None) -> bool:
    """
    Initialize OpenTelemetry tracing.

    Opt-in through ``settings.otel_enabled``. The exporter reads its endpoint
    and headers from the standard ``OTEL_EXPORTER_OTLP_*`` variables. Returns
    True when initialized, False when disabled or failed.
    """
    global _tracer_provider, _otel_initialized

    if _otel_initialized:
        return True

    if not settings.otel_enabled:
        logger.info("OpenTelemetry disabled for environment: %s", settings.environment)
        return False

    try:
        from opentelemetry import trace
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        svc_name = service_name or settings.otel_service_name
        resource = Resource.create(
            {
                SERVICE_NAME: svc_name,
                SERVICE_VERSION: settings.app_version,
                "deployment.environment": settings.environment,
            }
        )

        _tracer_provider = TracerProvider(resource=resource)
        trace.set_tracer_provider(_tracer_provider)
        _tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))

        _otel_initialized = True
        logger.info("OpenTelemetry initialized: service=%s", svc_name)
        return True
    except Exception as exc:
        logger.error("Failed to initialize OpenTelemetry: %s", exc, exc_info=True)
        return False


def instrument_http_client(client: httpx.AsyncClient) -> httpx.AsyncClient:
    """Attach OpenTelemetry spans to an httpx client when tracing is on."""
    if not _otel_initialized:
        return client
    try:
        from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

        HTTPXClientInstrumentor.instrument_client(client)
    except Exception as exc:
        logger.error("Failed to instrument HTTP client: %s", exc, exc_info=True)
    return client
