"""Span identity and lifecycle for one AWS operation call.

The span name is ``<service>.request``, its resource is
``<service>.<operation>`` and its service is either the configured override
or ``aws.<service>``.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import Span, SpanKind, Status, StatusCode

from awstrace import context as callctx
from awstrace.config import TraceConfig

logger = logging.getLogger(__name__)

SERVICE_PREFIX = "aws"
SPAN_TYPE_HTTP = "http"

TAG_AWS_AGENT = "aws.agent"
TAG_AWS_SERVICE = "aws.service"
TAG_AWS_OPERATION = "aws.operation"
TAG_AWS_REGION = "aws.region"
TAG_AWS_REQUEST_ID = "aws.request_id"

TAG_HTTP_METHOD = "http.method"
TAG_HTTP_URL = "http.url"
TAG_HTTP_STATUS_CODE = "http.status_code"

TAG_RESOURCE_NAME = "resource.name"
TAG_SERVICE_NAME = "service.name"
TAG_SPAN_TYPE = "span.type"
TAG_EVENT_SAMPLE_RATE = "_dd1.sr.eausr"


def service_name(cfg: TraceConfig, service_id: str) -> str:
    if cfg.service_name:
        return cfg.service_name
    return f"{SERVICE_PREFIX}.{service_id}"


@dataclass(frozen=True)
class RecordIdentity:
    """Name, resource and initial tags derived from per-call metadata."""

    name: str
    resource: str
    service: str
    tags: dict[str, Any] = field(default_factory=dict)


def build_identity(cfg: TraceConfig, service_id: str, operation: str, region: str) -> RecordIdentity:
    """Derive span identity and initial tags for one call.

    Args:
        cfg: Tracing configuration of the attachment
        service_id: AWS service id (e.g. "SQS")
        operation: Operation name (e.g. "ListQueues")
        region: Signing region

    Returns:
        RecordIdentity with name, resource, service and initial tags
    """
    resource = f"{service_id}.{operation}"
    service = service_name(cfg, service_id)
    tags: dict[str, Any] = {
        TAG_SPAN_TYPE: SPAN_TYPE_HTTP,
        TAG_RESOURCE_NAME: resource,
        TAG_SERVICE_NAME: service,
        TAG_AWS_REGION: region,
        TAG_AWS_OPERATION: operation,
        TAG_AWS_SERVICE: service_id,
    }
    if cfg.analytics_enabled:
        tags[TAG_EVENT_SAMPLE_RATE] = cfg.analytics_rate
    return RecordIdentity(
        name=f"{service_id}.request",
        resource=resource,
        service=service,
        tags=tags,
    )


def guarded(action: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run an instrumentation operation; log and swallow its failures.

    Tracing must never change the outcome of the call it observes.
    """
    try:
        return fn(*args, **kwargs)
    except Exception as exc:
        logger.warning(
            f"awstrace: {action} failed: {exc!r}",
            extra={"event": "awstrace.guard", "action": action},
        )
        return None


def set_tag(span: Span, key: str, value: Any) -> None:
    """Set one attribute on span; None values are skipped."""
    if value is None:
        return
    guarded(f"set_tag({key})", span.set_attribute, key, value)


def set_tags(span: Span, tags: Optional[dict[str, Any]]) -> None:
    """Set every non-None attribute in tags on span."""
    for key, value in (tags or {}).items():
        set_tag(span, key, value)


def start_record(
    cfg: TraceConfig,
    identity: RecordIdentity,
    ctx: Optional[Context],
    start_ns: int,
) -> tuple[Optional[Span], Context]:
    """Open the span and return it with a child context that carries it.

    The child context makes the span the active parent for nested spans and
    binds it as this call's record. If the tracer fails, the span is None
    and the context binds no record, so enrichment further down is a no-op.
    """
    tracer = trace.get_tracer(__name__, tracer_provider=cfg.tracer_provider)
    span = guarded(
        "start_span",
        tracer.start_span,
        identity.name,
        context=ctx,
        kind=SpanKind.CLIENT,
        attributes=identity.tags,
        start_time=start_ns,
    )
    if span is None:
        return None, callctx.with_record(ctx, None)
    return span, callctx.with_record(trace.set_span_in_context(span, ctx), span)


def finish_record(span: Span, error: Optional[BaseException] = None) -> None:
    """Close span, recording error as its completion cause."""
    if error is not None:
        guarded("record_exception", span.record_exception, error)
        guarded(
            "set_status",
            span.set_status,
            Status(StatusCode.ERROR, f"{type(error).__name__}: {error}"),
        )
    guarded("end", span.end)
