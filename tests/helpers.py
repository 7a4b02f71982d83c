"""Shared helpers for driving pipelines in tests."""

from typing import Any, Callable, Iterable, Optional

import httpx

from awstrace import context as callctx
from awstrace.middleware import Metadata, MiddlewareFunc, Output, Position, Stack

TEST_REGION = "us-east-1"


def aws_json_handler(
    result: Optional[dict[str, Any]] = None,
    status_code: int = 200,
    request_id: Optional[str] = "req-0001",
    seen: Optional[list[httpx.Request]] = None,
) -> Callable[[httpx.Request], httpx.Response]:
    """httpx MockTransport handler answering like an AWS JSON service."""

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        headers = {"Content-Type": "application/x-amz-json-1.0"}
        if request_id:
            headers["x-amzn-RequestId"] = request_id
        return httpx.Response(status_code, json=result or {}, headers=headers)

    return handler


def run_stack(
    api_options: Iterable[Callable[[Stack], None]],
    transport: Callable[[Any, Any], tuple[Output, Metadata]],
    request: Any = None,
    service_id: str = "SQS",
    operation: str = "ListQueues",
    region: str = TEST_REGION,
    ctx: Any = None,
) -> tuple[Output, Metadata]:
    """Drive a bare Stack with service metadata registered, like a client would."""
    stack = Stack(f"{service_id}.{operation}")

    def register(c, in_, next_):
        return next_(callctx.with_service_metadata(c, service_id, operation, region), in_)

    stack.initialize.add(MiddlewareFunc("RegisterServiceMetadata", register), Position.BEFORE)
    for apply in api_options:
        apply(stack)
    return stack.handle(ctx, {}, transport, lambda: request)
