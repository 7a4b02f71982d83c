"""OpenTelemetry tracing for AWS service client pipelines."""

__version__ = "0.1.0"

from awstrace.client import (  # noqa: E402
    Client,
    ClientConfig,
    load_default_config,
)
from awstrace.config import (  # noqa: E402
    TraceConfig,
    with_analytics,
    with_analytics_rate,
    with_service_name,
    with_tracer_provider,
)
from awstrace.instrument import (  # noqa: E402
    BotocoreTraceHooks,
    instrument_client,
    uninstrument_client,
)
from awstrace.tracing import TraceMiddleware, append_middleware  # noqa: E402
from awstrace.transport import RequestSendError  # noqa: E402

__all__ = [
    "__version__",
    "BotocoreTraceHooks",
    "Client",
    "ClientConfig",
    "RequestSendError",
    "TraceConfig",
    "TraceMiddleware",
    "append_middleware",
    "instrument_client",
    "load_default_config",
    "uninstrument_client",
    "with_analytics",
    "with_analytics_rate",
    "with_service_name",
    "with_tracer_provider",
]
