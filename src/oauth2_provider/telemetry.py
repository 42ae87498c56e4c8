"""Structured logging and tracing for the OAuth2 provider.

Every facade operation runs in an OpenTelemetry span named ``oauth2.<op>``.
Grant data is attached to the active span under the ``oauth2.`` prefix
(client id, accessor id, grant type), and a failing operation records the
protocol error and problem name on its span. Log events carry the trace
and span ids of the span they were emitted in.

Without an OpenTelemetry SDK installed the spans are no-ops.
"""

from __future__ import annotations

import functools
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, ParamSpec, TypeVar

import structlog
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from .errors import OAuth2ProviderError

if TYPE_CHECKING:
    from collections.abc import Generator, MutableMapping

    from .config import TelemetryConfig

P = ParamSpec("P")
T = TypeVar("T")

ATTRIBUTE_PREFIX = "oauth2."

_tracer: trace.Tracer | None = None
_logger: structlog.BoundLogger | None = None


def get_tracer() -> trace.Tracer:
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer("oauth2-provider", "0.1.0")
    return _tracer


def get_logger() -> structlog.BoundLogger:
    global _logger
    if _logger is None:
        _logger = structlog.get_logger("oauth2-provider")
    return _logger


def _span_attributes(attributes: dict[str, Any]) -> dict[str, Any]:
    return {
        f"{ATTRIBUTE_PREFIX}{key}": value
        for key, value in attributes.items()
        if value is not None
    }


def annotate_span(**attributes: Any) -> None:
    """Attach grant data to the active span.

    Keys are prefixed with ``oauth2.``; None values are skipped so absent
    request parameters leave no attribute behind.
    """
    span = trace.get_current_span()
    for key, value in _span_attributes(attributes).items():
        span.set_attribute(key, value)


def add_trace_context(
    logger: Any,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """structlog processor adding the active span's trace and span ids."""
    context = trace.get_current_span().get_span_context()
    if context.is_valid:
        event_dict["trace_id"] = format(context.trace_id, "032x")
        event_dict["span_id"] = format(context.span_id, "016x")
    return event_dict


def configure_telemetry(config: TelemetryConfig) -> None:
    """Install the JSON log pipeline and the provider tracer.

    With telemetry disabled, spans become no-ops and structlog keeps its
    current configuration.
    """
    global _tracer, _logger

    if not config.enabled:
        _tracer = trace.NoOpTracer()
        return

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            add_trace_context,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping()[config.log_level]
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _tracer = trace.get_tracer(config.service_name, "0.1.0")
    _logger = structlog.get_logger(config.service_name)


@contextmanager
def trace_operation(
    name: str,
    *,
    attributes: dict[str, Any] | None = None,
) -> Generator[trace.Span, None, None]:
    """Run a block inside a provider span.

    Args:
        name: Span name.
        attributes: Grant data for the span, prefixed with ``oauth2.``.

    Yields:
        The active span.
    """
    with get_tracer().start_as_current_span(
        name,
        attributes=_span_attributes(attributes or {}),
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        try:
            yield span
        except OAuth2ProviderError as e:
            span.set_attribute(f"{ATTRIBUTE_PREFIX}error", str(e.code))
            span.set_attribute(f"{ATTRIBUTE_PREFIX}problem", str(e.problem))
            # only 5xx problems mark the span as failed
            if e.status_code >= 500:
                span.set_status(Status(StatusCode.ERROR, e.message))
                span.record_exception(e)
            raise
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise


def traced(
    name: str | None = None,
    **attributes: Any,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorator running a function inside :func:`trace_operation`.

    Args:
        name: Span name, the function name when omitted.
        **attributes: Static span attributes, e.g. ``grant_type``.
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        span_name = name or func.__name__

        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            with trace_operation(span_name, attributes=attributes):
                return func(*args, **kwargs)

        return wrapper

    return decorator
