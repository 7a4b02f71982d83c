"""Tracing middleware for AWS client pipelines.

Usage:
    from awstrace import append_middleware, load_default_config, Client
    from awstrace.config import with_service_name

    cfg = load_default_config(region="us-east-1")
    append_middleware(cfg, with_service_name("checkout"))
    sqs = Client("sqs", cfg)
    sqs.call("ListQueues", {})

Three middleware cooperate per call:
- InitTraceMiddleware (initialize, BEFORE): binds the start timestamp to the context
- StartTraceMiddleware (initialize, AFTER): opens the span, delegates, closes it
- DeserializeTraceMiddleware (deserialize, BEFORE): tags wire request/response fields

All per-call state travels in the context handed to ``next``; the only
shared value is the frozen TraceConfig.
"""

import logging
import time
from typing import Optional

from opentelemetry.context import Context

from awstrace import context as callctx
from awstrace.client import ClientConfig
from awstrace.config import Option, TraceConfig, build_config
from awstrace.enrichment import error_tags, metadata_tags, request_tags, response_tags
from awstrace.middleware import (
    DeserializeInput,
    Handler,
    InitializeInput,
    Metadata,
    MiddlewareFunc,
    Output,
    Position,
    Stack,
)
from awstrace.record import build_identity, finish_record, guarded, set_tags, start_record

logger = logging.getLogger(__name__)

INIT_TRACE_MIDDLEWARE_ID = "InitTraceMiddleware"
START_TRACE_MIDDLEWARE_ID = "StartTraceMiddleware"
DESERIALIZE_TRACE_MIDDLEWARE_ID = "DeserializeTraceMiddleware"


def append_middleware(client_config: ClientConfig, *opts: Option) -> "TraceMiddleware":
    """Add the tracing middleware to a client configuration's API options.

    Calling this again on the same configuration replaces the earlier
    attachment. Calls already in flight are unaffected.

    Args:
        client_config: Client configuration whose api_options will be extended
        *opts: Tracing options, applied in order

    Returns:
        The attached TraceMiddleware

    Raises:
        pydantic.ValidationError: If the options produce an invalid config
    """
    cfg = build_config(*opts)
    tm = TraceMiddleware(cfg)

    kept = [
        opt for opt in client_config.api_options
        if not isinstance(getattr(opt, "__self__", None), TraceMiddleware)
    ]
    if len(kept) != len(client_config.api_options):
        logger.debug(
            "awstrace.attach.replaced",
            extra={"event": "awstrace.attach.replaced"},
        )
    kept.extend([tm.init_trace_middleware, tm.start_trace_middleware, tm.deserialize_trace_middleware])
    client_config.api_options = kept

    logger.debug(
        "awstrace.attach",
        extra={
            "event": "awstrace.attach",
            "service_name_override": cfg.service_name,
            "analytics_enabled": cfg.analytics_enabled,
        },
    )
    return tm


class TraceMiddleware:
    """Registers the three tracing middleware onto a Stack."""

    def __init__(self, cfg: TraceConfig):
        self.cfg = cfg

    def init_trace_middleware(self, stack: Stack) -> None:
        stack.initialize.add(
            MiddlewareFunc(INIT_TRACE_MIDDLEWARE_ID, self._capture_start), Position.BEFORE
        )

    def start_trace_middleware(self, stack: Stack) -> None:
        stack.initialize.add(
            MiddlewareFunc(START_TRACE_MIDDLEWARE_ID, self._trace_call), Position.AFTER
        )

    def deserialize_trace_middleware(self, stack: Stack) -> None:
        stack.deserialize.add(
            MiddlewareFunc(DESERIALIZE_TRACE_MIDDLEWARE_ID, self._enrich), Position.BEFORE
        )

    def _capture_start(
        self, ctx: Optional[Context], in_: InitializeInput, next_: Handler
    ) -> tuple[Output, Metadata]:
        # Bind the timestamp now; the span is started once the metadata is known.
        ctx = callctx.with_span_start(ctx, time.time_ns())
        return next_(ctx, in_)

    def _trace_call(
        self, ctx: Optional[Context], in_: InitializeInput, next_: Handler
    ) -> tuple[Output, Metadata]:
        operation = callctx.get_operation_name(ctx)
        service_id = callctx.get_service_id(ctx)
        region = callctx.get_region(ctx)

        start_ns, found = callctx.span_start_or_now(ctx)
        if not found:
            logger.debug(
                "awstrace: no start timestamp in context, using current time",
                extra={"event": "awstrace.start.fallback", "operation": operation},
            )

        identity = build_identity(self.cfg, service_id, operation, region)
        span, span_ctx = start_record(self.cfg, identity, ctx, start_ns)
        if span is None:
            return next_(span_ctx, in_)

        try:
            out, metadata = next_(span_ctx, in_)
        except BaseException as exc:
            finish_record(span, exc)
            raise
        finish_record(span)
        return out, metadata

    def _enrich(
        self, ctx: Optional[Context], in_: DeserializeInput, next_: Handler
    ) -> tuple[Output, Metadata]:
        span = callctx.record_from(ctx)
        if span is None or not span.is_recording():
            return next_(ctx, in_)

        set_tags(span, guarded("request_tags", request_tags, in_.request))

        try:
            out, metadata = next_(ctx, in_)
        except BaseException as exc:
            # Service errors (botocore ClientError) carry the parsed ResponseMetadata.
            set_tags(span, guarded("error_tags", error_tags, exc))
            raise

        set_tags(span, guarded("response_tags", response_tags, getattr(out, "raw_response", None)))
        set_tags(span, guarded("metadata_tags", metadata_tags, metadata))
        return out, metadata
