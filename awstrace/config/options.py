"""Tracing configuration and the option functions that build it.

Options are applied in order over the defaults; the last one to touch a
field wins. The resulting ``TraceConfig`` is frozen and shared read-only by
every call through the client it is attached to.
"""

import math
from typing import Any, Callable, Optional

from opentelemetry.trace import TracerProvider
from pydantic import BaseModel, ConfigDict, Field, field_validator

from awstrace.config import env

Option = Callable[[dict[str, Any]], None]


class TraceConfig(BaseModel):
    """Immutable tracing configuration for one attachment."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    analytics_rate: float = Field(
        default=math.nan,
        description="Event sample rate tagged on every span (NaN = do not tag)",
    )
    service_name: str = Field(
        default="",
        description="Service name override (empty = aws.<service id>)",
    )
    tracer_provider: Optional[TracerProvider] = Field(
        default=None,
        description="Tracer provider to use (None = global provider)",
    )

    @field_validator("analytics_rate")
    @classmethod
    def _check_rate(cls, value: float) -> float:
        if math.isnan(value):
            return value
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"analytics_rate must be within [0, 1] or NaN, got {value}")
        return value

    @property
    def analytics_enabled(self) -> bool:
        return not math.isnan(self.analytics_rate)


def defaults() -> dict[str, Any]:
    """Default option values, with environment overrides applied."""
    return {
        "analytics_rate": env.get_default_analytics_rate(),
        "service_name": env.get_default_service_name() or "",
        "tracer_provider": None,
    }


def build_config(*opts: Option) -> TraceConfig:
    """Apply opts over the defaults and validate.

    Raises:
        pydantic.ValidationError: If a resulting value is out of range
    """
    values = defaults()
    for opt in opts:
        opt(values)
    return TraceConfig(**values)


def with_service_name(name: str) -> Option:
    """Override the service name reported on every span."""

    def apply(values: dict[str, Any]) -> None:
        values["service_name"] = name

    return apply


def with_analytics(on: bool) -> Option:
    """Enable (rate 1.0) or disable (NaN) analytics tagging."""

    def apply(values: dict[str, Any]) -> None:
        values["analytics_rate"] = 1.0 if on else math.nan

    return apply


def with_analytics_rate(rate: Optional[float]) -> Option:
    """Set the analytics rate; None disables tagging."""

    def apply(values: dict[str, Any]) -> None:
        values["analytics_rate"] = math.nan if rate is None else float(rate)

    return apply


def with_tracer_provider(provider: TracerProvider) -> Option:
    def apply(values: dict[str, Any]) -> None:
        values["tracer_provider"] = provider

    return apply
