"""Middleware pipeline for AWS operation calls."""

from awstrace.context import get_operation_name, get_region, get_service_id

from .stack import (
    BuildInput,
    DeserializeInput,
    DuplicateMiddlewareError,
    FinalizeInput,
    Handler,
    InitializeInput,
    Metadata,
    Middleware,
    MiddlewareFunc,
    Output,
    Position,
    SerializeInput,
    Stack,
    Step,
    UnknownMiddlewareError,
    get_request_id_metadata,
    set_request_id_metadata,
)

__all__ = [
    "BuildInput",
    "DeserializeInput",
    "DuplicateMiddlewareError",
    "FinalizeInput",
    "Handler",
    "InitializeInput",
    "Metadata",
    "Middleware",
    "MiddlewareFunc",
    "Output",
    "Position",
    "SerializeInput",
    "Stack",
    "Step",
    "UnknownMiddlewareError",
    "get_operation_name",
    "get_region",
    "get_request_id_metadata",
    "get_service_id",
    "set_request_id_metadata",
]
