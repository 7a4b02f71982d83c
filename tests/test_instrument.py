"""Tests for tracing real boto3 clients through botocore events."""

import time

import boto3
import pytest
from botocore.exceptions import ClientError
from botocore.stub import Stubber
from opentelemetry.trace import SpanKind, StatusCode

from awstrace import instrument_client, uninstrument_client, with_service_name, with_tracer_provider
from awstrace.config import build_config
from awstrace.instrument import BotocoreTraceHooks

from helpers import TEST_REGION


@pytest.fixture()
def sqs():
    client = boto3.session.Session().client(
        "sqs",
        region_name=TEST_REGION,
        aws_access_key_id="AKIDEXAMPLE",
        aws_secret_access_key="secret",
    )
    yield client
    client.close()


def _only_span(span_exporter):
    spans = span_exporter.get_finished_spans()
    assert len(spans) == 1, f"expected exactly one span, got {[s.name for s in spans]}"
    return spans[0]


def test_instrumented_call_produces_span(sqs, tracer_provider, span_exporter) -> None:
    """A stubbed ListQueues call on a boto3 client is traced end to end."""
    instrument_client(sqs, with_tracer_provider(tracer_provider))

    with Stubber(sqs) as stubber:
        stubber.add_response(
            "list_queues",
            {"QueueUrls": [], "ResponseMetadata": {"RequestId": "rid-boto", "HTTPStatusCode": 200}},
        )
        sqs.list_queues()

    span = _only_span(span_exporter)
    attrs = dict(span.attributes)
    assert span.name == "SQS.request"
    assert span.kind == SpanKind.CLIENT
    assert attrs["resource.name"] == "SQS.ListQueues"
    assert attrs["service.name"] == "aws.SQS"
    assert attrs["aws.region"] == TEST_REGION
    assert attrs["http.status_code"] == 200
    assert attrs["aws.request_id"] == "rid-boto"
    assert span.status.status_code == StatusCode.UNSET
    assert span.end_time is not None


def test_instrumented_service_error(sqs, tracer_provider, span_exporter) -> None:
    """A service error response ends the span as failed with its request id."""
    instrument_client(sqs, with_tracer_provider(tracer_provider))

    with Stubber(sqs) as stubber:
        stubber.add_client_error(
            "get_queue_url",
            service_error_code="QueueDoesNotExist",
            service_message="no such queue",
            http_status_code=400,
            response_meta={"RequestId": "rid-missing"},
        )
        with pytest.raises(ClientError):
            sqs.get_queue_url(QueueName="missing")

    span = _only_span(span_exporter)
    attrs = dict(span.attributes)
    assert span.status.status_code == StatusCode.ERROR
    assert "QueueDoesNotExist" in span.status.description
    assert attrs["http.status_code"] == 400
    assert attrs["aws.request_id"] == "rid-missing"


def test_start_time_taken_before_request_build(sqs, tracer_provider, span_exporter) -> None:
    """The span starts when the call's parameters are first seen."""
    instrument_client(sqs, with_tracer_provider(tracer_provider))

    def slow_param_build(**kwargs):
        time.sleep(0.05)

    sqs.meta.events.register("before-parameter-build.sqs.ListQueues", slow_param_build)

    before = time.time_ns()
    with Stubber(sqs) as stubber:
        stubber.add_response("list_queues", {"QueueUrls": []})
        sqs.list_queues()

    span = _only_span(span_exporter)
    assert before <= span.start_time
    assert span.end_time - span.start_time >= 40_000_000


def test_parent_span_inherited(sqs, tracer_provider, span_exporter) -> None:
    """The call span is a child of the caller's active span."""
    instrument_client(sqs, with_tracer_provider(tracer_provider))
    tracer = tracer_provider.get_tracer("tests")

    with tracer.start_as_current_span("parent.request") as parent:
        with Stubber(sqs) as stubber:
            stubber.add_response("list_queues", {"QueueUrls": []})
            sqs.list_queues()

    spans = {s.name: s for s in span_exporter.get_finished_spans()}
    assert spans["SQS.request"].parent.span_id == parent.get_span_context().span_id


def test_reinstrument_replaces_hooks(sqs, tracer_provider, span_exporter) -> None:
    """Instrumenting twice traces each call once, with the latest options."""
    instrument_client(sqs, with_tracer_provider(tracer_provider), with_service_name("old"))
    instrument_client(sqs, with_tracer_provider(tracer_provider), with_service_name("new"))

    with Stubber(sqs) as stubber:
        stubber.add_response("list_queues", {"QueueUrls": []})
        sqs.list_queues()

    assert dict(_only_span(span_exporter).attributes)["service.name"] == "new"


def test_uninstrument_removes_hooks(sqs, tracer_provider, span_exporter) -> None:
    """After uninstrument_client no spans are produced."""
    instrument_client(sqs, with_tracer_provider(tracer_provider))
    uninstrument_client(sqs)

    with Stubber(sqs) as stubber:
        stubber.add_response("list_queues", {"QueueUrls": []})
        sqs.list_queues()

    assert span_exporter.get_finished_spans() == ()


def test_transport_error_ends_span(sqs, tracer_provider, span_exporter) -> None:
    """after-call-error closes the span with the raised exception."""
    hooks = BotocoreTraceHooks(build_config(with_tracer_provider(tracer_provider)))
    model = sqs.meta.service_model.operation_model("ListQueues")
    context = {"client_region": TEST_REGION}
    err = ConnectionError("endpoint unreachable")

    hooks.capture_start(context=context)
    assert hooks.start_call(model=model, context=context) is None
    hooks.finish_call_error(exception=err, context=context)

    span = _only_span(span_exporter)
    assert span.status.status_code == StatusCode.ERROR
    assert [e.attributes["exception.type"] for e in span.events] == ["ConnectionError"]


def test_hooks_ignore_calls_they_did_not_open(span_exporter) -> None:
    """Closing hooks without an opened span do nothing."""
    hooks = BotocoreTraceHooks(build_config())

    hooks.finish_call(http_response=None, parsed={}, context={})
    hooks.finish_call_error(exception=RuntimeError("x"), context=None)
    hooks.enrich_request(request=object())

    assert span_exporter.get_finished_spans() == ()
