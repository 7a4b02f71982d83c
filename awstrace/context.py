"""Per-call context values for the AWS middleware pipeline.

Values are stored on an OpenTelemetry ``Context``, which is immutable:
every write returns a new context, so one call can never see another
call's values. Keys are minted with ``create_key`` and stay private to
this module.
"""

import time
from typing import Optional

from opentelemetry.context import Context, create_key, get_value, set_value
from opentelemetry.trace import Span

_SPAN_START_KEY = create_key("awstrace-span-start")
_RECORD_KEY = create_key("awstrace-record")
_OPERATION_NAME_KEY = create_key("awstrace-operation-name")
_SERVICE_ID_KEY = create_key("awstrace-service-id")
_REGION_KEY = create_key("awstrace-region")


def with_span_start(ctx: Optional[Context], start_ns: int) -> Context:
    """Return a child context carrying the span start timestamp (ns)."""
    return set_value(_SPAN_START_KEY, start_ns, ctx)


def span_start_from(ctx: Optional[Context]) -> Optional[int]:
    """Return the span start timestamp bound to ctx, if any."""
    value = get_value(_SPAN_START_KEY, ctx)
    if isinstance(value, int):
        return value
    return None


def span_start_or_now(ctx: Optional[Context]) -> tuple[int, bool]:
    """Return (start_ns, found).

    Falls back to the current time when no start timestamp was bound.
    """
    start = span_start_from(ctx)
    if start is None:
        return time.time_ns(), False
    return start, True


def with_record(ctx: Optional[Context], span: Optional[Span]) -> Context:
    """Return a child context carrying the span opened for this call.

    Binding None hides any record inherited from an enclosing call.
    """
    return set_value(_RECORD_KEY, span, ctx)


def record_from(ctx: Optional[Context]) -> Optional[Span]:
    """Return the span opened for this call, or None.

    Only spans bound with with_record are returned; an unrelated active
    span (e.g. the caller's parent) is never picked up.
    """
    value = get_value(_RECORD_KEY, ctx)
    if isinstance(value, Span):
        return value
    return None


def with_service_metadata(
    ctx: Optional[Context],
    service_id: str,
    operation_name: str,
    region: str,
) -> Context:
    """Bind service id, operation name and region to a child context."""
    ctx = set_value(_SERVICE_ID_KEY, service_id, ctx)
    ctx = set_value(_OPERATION_NAME_KEY, operation_name, ctx)
    return set_value(_REGION_KEY, region, ctx)


def get_operation_name(ctx: Optional[Context]) -> str:
    return get_value(_OPERATION_NAME_KEY, ctx) or ""


def get_service_id(ctx: Optional[Context]) -> str:
    return get_value(_SERVICE_ID_KEY, ctx) or ""


def get_region(ctx: Optional[Context]) -> str:
    return get_value(_REGION_KEY, ctx) or ""
