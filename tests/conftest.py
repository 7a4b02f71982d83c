"""Pytest configuration and fixtures."""

from typing import Any, Callable

import httpx
import pytest
from botocore.credentials import Credentials
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from awstrace.client import ClientConfig
from awstrace.otel import init_tracing

from helpers import TEST_REGION


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tracing defaults independent of the developer's environment."""
    monkeypatch.delenv("AWSTRACE_ANALYTICS_ENABLED", raising=False)
    monkeypatch.delenv("AWSTRACE_SERVICE_NAME", raising=False)


@pytest.fixture()
def span_exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture()
def tracer_provider(span_exporter: InMemorySpanExporter) -> TracerProvider:
    """Non-global provider so tests never fight over the global one."""
    provider = init_tracing(service_name="awstrace-tests", span_exporter=span_exporter)
    try:
        yield provider
    finally:
        provider.shutdown()


@pytest.fixture()
def make_client_config() -> Callable[..., ClientConfig]:
    """Build a ClientConfig whose HTTP traffic goes to an httpx MockTransport."""

    def make(handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any) -> ClientConfig:
        return ClientConfig(
            region=kwargs.pop("region", TEST_REGION),
            credentials=kwargs.pop("credentials", Credentials("AKIDEXAMPLE", "secret")),
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
            **kwargs,
        )

    return make
