"""Tracing configuration."""

from awstrace.config import env
from awstrace.config.options import (
    Option,
    TraceConfig,
    build_config,
    with_analytics,
    with_analytics_rate,
    with_service_name,
    with_tracer_provider,
)

__all__ = [
    "env",
    "Option",
    "TraceConfig",
    "build_config",
    "with_analytics",
    "with_analytics_rate",
    "with_service_name",
    "with_tracer_provider",
]
