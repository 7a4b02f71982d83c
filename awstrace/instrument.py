"""Tracing hooks for boto3/botocore clients.

Usage:
    import boto3
    from awstrace import instrument_client
    from awstrace.config import with_service_name

    sqs = boto3.client("sqs", region_name="us-east-1")
    instrument_client(sqs, with_service_name("checkout"))
    sqs.list_queues()

The same three stages as the middleware stack, placed on botocore's
event system (``client.meta.events``):
- provide-client-params: binds the start timestamp to the request context
- before-call: opens the span; after-call / after-call-error close it
- request-created / after-call: tag wire request and response fields

Per-call state lives in botocore's request context dict, which is created
fresh for every API call.
"""

import logging
import time
from typing import Any, Optional

from botocore.exceptions import ClientError
from opentelemetry import context as otel_context
from opentelemetry.context import create_key
from opentelemetry.trace import Span

from awstrace.config import Option, TraceConfig, build_config
from awstrace.enrichment import request_tags, response_metadata_tags, response_tags
from awstrace.record import build_identity, finish_record, guarded, set_tags, start_record

logger = logging.getLogger(__name__)

_SPAN_START_KEY = create_key("awstrace-span-start")
_RECORD_KEY = create_key("awstrace-record")

_UNIQUE_ID_PREFIX = "awstrace"


class BotocoreTraceHooks:
    """Event handlers tracing every API call made through one botocore client."""

    def __init__(self, cfg: TraceConfig, exceptions: Any = None):
        self.cfg = cfg
        self._exceptions = exceptions

    def events(self) -> list[tuple[str, Any, bool]]:
        """Return (event, handler, register_first) for every hook."""
        return [
            ("provide-client-params.*.*", self.capture_start, True),
            ("before-call.*.*", self.start_call, True),
            ("request-created.*.*", self.enrich_request, False),
            ("after-call.*.*", self.finish_call, False),
            ("after-call-error.*.*", self.finish_call_error, False),
        ]

    def capture_start(self, context: Optional[dict] = None, **kwargs: Any) -> None:
        if context is not None:
            context[_SPAN_START_KEY] = time.time_ns()

    def start_call(self, model: Any = None, context: Optional[dict] = None, **kwargs: Any) -> None:
        # Must return None: a response here would short-circuit the call.
        if context is None or model is None:
            return None
        guarded("start_call", self._start_call, model, context)
        return None

    def _start_call(self, model: Any, context: dict) -> None:
        operation = model.name
        service_id = str(model.service_model.service_id)
        region = context.get("client_region") or ""

        start_ns = context.get(_SPAN_START_KEY)
        if not isinstance(start_ns, int):
            logger.debug(
                "awstrace: no start timestamp in context, using current time",
                extra={"event": "awstrace.start.fallback", "operation": operation},
            )
            start_ns = time.time_ns()

        identity = build_identity(self.cfg, service_id, operation, region)
        span, _ = start_record(self.cfg, identity, otel_context.get_current(), start_ns)
        if span is not None:
            context[_RECORD_KEY] = span

    def enrich_request(self, request: Any = None, **kwargs: Any) -> None:
        span = _record_from(getattr(request, "context", None))
        if span is None or not span.is_recording():
            return
        set_tags(span, guarded("request_tags", request_tags, request))

    def finish_call(
        self,
        http_response: Any = None,
        parsed: Any = None,
        model: Any = None,
        context: Optional[dict] = None,
        **kwargs: Any,
    ) -> None:
        span = _pop_record(context)
        if span is None:
            return

        if span.is_recording():
            set_tags(span, guarded("response_tags", response_tags, http_response))
            set_tags(span, guarded("metadata_tags", response_metadata_tags, parsed))

        status = getattr(http_response, "status_code", None)
        error = None
        if isinstance(status, int) and status >= 300:
            error = guarded("service_error", self._service_error, parsed, model, context)
        finish_record(span, error)

    def finish_call_error(
        self,
        exception: Optional[BaseException] = None,
        context: Optional[dict] = None,
        **kwargs: Any,
    ) -> None:
        span = _pop_record(context)
        if span is None:
            return
        if exception is not None and span.is_recording():
            set_tags(span, guarded("metadata_tags", response_metadata_tags, getattr(exception, "response", None)))
        finish_record(span, exception)

    def _service_error(self, parsed: Any, model: Any, context: Optional[dict]) -> BaseException:
        """Build the ClientError the client is about to raise for this response."""
        parsed = parsed if isinstance(parsed, dict) else {}
        code = (context or {}).get("error_code_override") or parsed.get("Error", {}).get("Code")
        error_class = ClientError
        if self._exceptions is not None:
            error_class = self._exceptions.from_code(code)
        return error_class(parsed, getattr(model, "name", ""))


def instrument_client(client: Any, *opts: Option) -> BotocoreTraceHooks:
    """Register the tracing hooks on a boto3/botocore client.

    Instrumenting the same client again replaces the earlier hooks.

    Args:
        client: A boto3 or botocore client
        *opts: Tracing options, applied in order

    Returns:
        The registered BotocoreTraceHooks

    Raises:
        pydantic.ValidationError: If the options produce an invalid config
    """
    cfg = build_config(*opts)
    hooks = BotocoreTraceHooks(cfg, getattr(client, "exceptions", None))

    emitter = client.meta.events
    uninstrument_client(client)
    for event, handler, first in hooks.events():
        register = emitter.register_first if first else emitter.register
        register(event, handler, unique_id=_unique_id(event))

    logger.debug(
        "awstrace.instrument",
        extra={
            "event": "awstrace.instrument",
            "service_name_override": cfg.service_name,
            "analytics_enabled": cfg.analytics_enabled,
        },
    )
    return hooks


def uninstrument_client(client: Any) -> None:
    """Remove hooks registered by instrument_client; no-op if there are none."""
    emitter = client.meta.events
    for event, _, _ in BotocoreTraceHooks(build_config()).events():
        emitter.unregister(event, unique_id=_unique_id(event))


def _unique_id(event: str) -> str:
    return f"{_UNIQUE_ID_PREFIX}.{event}"


def _record_from(context: Any) -> Optional[Span]:
    if not isinstance(context, dict):
        return None
    value = context.get(_RECORD_KEY)
    return value if isinstance(value, Span) else None


def _pop_record(context: Any) -> Optional[Span]:
    span = _record_from(context)
    if span is not None:
        context.pop(_RECORD_KEY, None)
    return span
