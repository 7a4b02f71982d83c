"""Step-ordered middleware stack for a single AWS operation call.

A call flows through five steps in fixed order:

    initialize -> serialize -> build -> finalize -> deserialize -> transport

Each step holds an ordered list of middleware. ``Position.BEFORE`` inserts at
the front of the step (runs first, wraps everything else at that step);
``Position.AFTER`` appends (runs last, closest to the next step).

A middleware receives ``(ctx, input, next)`` and must return whatever
``next(ctx, input)`` returns, as ``(Output, Metadata)``. Errors are raised,
never returned.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from opentelemetry.context import Context

logger = logging.getLogger(__name__)


class Position(str, Enum):
    """Relative position of a middleware within its step."""

    BEFORE = "before"
    AFTER = "after"


class DuplicateMiddlewareError(ValueError):
    """Raised when a middleware id is already registered in a step."""


class UnknownMiddlewareError(KeyError):
    """Raised when removing a middleware id that is not registered."""


# ── Step inputs / outputs ─────────────────────────────────────────────────────


@dataclass
class InitializeInput:
    parameters: Any


@dataclass
class SerializeInput:
    parameters: Any
    request: Any


@dataclass
class BuildInput:
    request: Any


@dataclass
class FinalizeInput:
    request: Any


@dataclass
class DeserializeInput:
    request: Any


@dataclass
class Output:
    """Output returned by every step.

    ``result`` is the decoded operation result; ``raw_response`` is the
    transport-level response once the call has been sent.
    """

    result: Any = None
    raw_response: Any = None


class Metadata:
    """Per-call key/value bag returned alongside step outputs."""

    def __init__(self) -> None:
        self._values: dict[Any, Any] = {}

    def get(self, key: Any, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: Any, value: Any) -> None:
        self._values[key] = value

    def has(self, key: Any) -> bool:
        return key in self._values

    def __repr__(self) -> str:
        return f"Metadata({self._values!r})"


_REQUEST_ID_KEY = "awstrace.request_id"


def get_request_id_metadata(metadata: Optional[Metadata]) -> Optional[str]:
    """Return the service request id recorded on metadata, if any."""
    if not isinstance(metadata, Metadata):
        return None
    value = metadata.get(_REQUEST_ID_KEY)
    if isinstance(value, str) and value:
        return value
    return None


def set_request_id_metadata(metadata: Metadata, request_id: str) -> None:
    metadata.set(_REQUEST_ID_KEY, request_id)


# ── Handlers and middleware ───────────────────────────────────────────────────

Handler = Callable[[Optional[Context], Any], tuple[Output, Metadata]]


class Middleware(Protocol):
    id: str

    def handle(self, ctx: Optional[Context], in_: Any, next_: Handler) -> tuple[Output, Metadata]:
        ...


@dataclass
class MiddlewareFunc:
    """Adapts a plain function into a named middleware."""

    id: str
    fn: Callable[[Optional[Context], Any, Handler], tuple[Output, Metadata]]

    def handle(self, ctx: Optional[Context], in_: Any, next_: Handler) -> tuple[Output, Metadata]:
        return self.fn(ctx, in_, next_)


@dataclass
class Step:
    """Ordered list of middleware for one pipeline step."""

    name: str
    _middleware: list[Middleware] = field(default_factory=list)

    def add(self, middleware: Middleware, position: Position = Position.AFTER) -> None:
        """Register middleware at the front (BEFORE) or back (AFTER) of the step.

        Raises:
            DuplicateMiddlewareError: If the id is already registered
        """
        if self.get(middleware.id) is not None:
            raise DuplicateMiddlewareError(
                f"middleware {middleware.id!r} already registered in step {self.name!r}"
            )
        if position == Position.BEFORE:
            self._middleware.insert(0, middleware)
        else:
            self._middleware.append(middleware)

    def remove(self, middleware_id: str) -> Middleware:
        for index, middleware in enumerate(self._middleware):
            if middleware.id == middleware_id:
                return self._middleware.pop(index)
        raise UnknownMiddlewareError(middleware_id)

    def get(self, middleware_id: str) -> Optional[Middleware]:
        for middleware in self._middleware:
            if middleware.id == middleware_id:
                return middleware
        return None

    def ids(self) -> list[str]:
        return [m.id for m in self._middleware]

    def decorate(self, terminal: Handler) -> Handler:
        """Wrap terminal with this step's middleware, first entry outermost."""
        handler = terminal
        for middleware in reversed(self._middleware):
            handler = _bind(middleware, handler)
        return handler


def _bind(middleware: Middleware, next_: Handler) -> Handler:
    def handler(ctx: Optional[Context], in_: Any) -> tuple[Output, Metadata]:
        return middleware.handle(ctx, in_, next_)

    return handler


class Stack:
    """The five-step middleware stack for one operation call."""

    def __init__(self, operation_id: str):
        self.id = operation_id
        self.initialize = Step("initialize")
        self.serialize = Step("serialize")
        self.build = Step("build")
        self.finalize = Step("finalize")
        self.deserialize = Step("deserialize")

    def steps(self) -> list[Step]:
        return [self.initialize, self.serialize, self.build, self.finalize, self.deserialize]

    def handle(
        self,
        ctx: Optional[Context],
        parameters: Any,
        transport: Callable[[Optional[Context], Any], tuple[Output, Metadata]],
        new_request: Callable[[], Any],
    ) -> tuple[Output, Metadata]:
        """Run parameters through every step and the transport.

        Args:
            ctx: Call context (immutable; middleware derive children from it)
            parameters: Operation input parameters
            transport: Innermost handler; receives the wire request
            new_request: Factory for the empty wire request handed to serialize

        Returns:
            Tuple of (Output, Metadata) from the outermost initialize middleware
        """

        def send(ctx: Optional[Context], in_: DeserializeInput) -> tuple[Output, Metadata]:
            return transport(ctx, in_.request)

        deserialize = self.deserialize.decorate(send)

        def to_deserialize(ctx: Optional[Context], in_: FinalizeInput) -> tuple[Output, Metadata]:
            return deserialize(ctx, DeserializeInput(request=in_.request))

        finalize = self.finalize.decorate(to_deserialize)

        def to_finalize(ctx: Optional[Context], in_: BuildInput) -> tuple[Output, Metadata]:
            return finalize(ctx, FinalizeInput(request=in_.request))

        build = self.build.decorate(to_finalize)

        def to_build(ctx: Optional[Context], in_: SerializeInput) -> tuple[Output, Metadata]:
            return build(ctx, BuildInput(request=in_.request))

        serialize = self.serialize.decorate(to_build)

        def to_serialize(ctx: Optional[Context], in_: InitializeInput) -> tuple[Output, Metadata]:
            return serialize(ctx, SerializeInput(parameters=in_.parameters, request=new_request()))

        initialize = self.initialize.decorate(to_serialize)

        logger.debug(
            "middleware.stack.handle",
            extra={
                "event": "middleware.stack.handle",
                "operation_id": self.id,
                "steps": {step.name: step.ids() for step in self.steps()},
            },
        )
        return initialize(ctx, InitializeInput(parameters=parameters))
