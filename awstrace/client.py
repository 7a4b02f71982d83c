"""AWS client built on the middleware stack and botocore's protocol layer.

Every call builds a fresh Stack, registers the built-in middleware
(service metadata, botocore serializer, SigV4 signer, botocore response
parser) and then applies ``ClientConfig.api_options`` in order.

The service model, endpoint and modeled exceptions come from a regular
boto3 client for the same service, so any protocol botocore supports
(json, query, rest-json, rest-xml, ec2) goes through unchanged.
"""

import logging
import platform
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import boto3
import botocore
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest, HeadersDict, create_request_object, prepare_request_dict
from botocore.credentials import Credentials
from botocore.parsers import create_parser
from botocore.serialize import create_serializer
from opentelemetry import context as otel_context
from opentelemetry.context import Context

from awstrace import __version__
from awstrace import context as callctx
from awstrace.middleware import (
    DeserializeInput,
    FinalizeInput,
    Handler,
    InitializeInput,
    Metadata,
    MiddlewareFunc,
    Output,
    Position,
    SerializeInput,
    Stack,
    set_request_id_metadata,
)
from awstrace.transport import HTTPResponse, HTTPXTransport

logger = logging.getLogger(__name__)

APIOption = Callable[[Stack], None]
StackHandler = Callable[[Optional[Context], Any, Handler], tuple[Output, Metadata]]


@dataclass
class ClientConfig:
    """Shared client configuration.

    ``api_options`` are applied to every operation's stack, in order.
    ``session`` is the boto3 session used to load service models; a
    fresh default session is used when unset.
    """

    region: str
    credentials: Optional[Credentials] = None
    endpoint_url: Optional[str] = None
    api_options: list[APIOption] = field(default_factory=list)
    http_client: Optional[Any] = None
    session: Optional[boto3.session.Session] = None


def load_default_config(
    region: Optional[str] = None,
    profile_name: Optional[str] = None,
) -> ClientConfig:
    """Resolve region and credentials the way the AWS SDK does.

    Priority for region: explicit argument, then the boto3 session
    (AWS_REGION / AWS_DEFAULT_REGION / shared config).

    Raises:
        ValueError: If no region can be resolved
    """
    session = boto3.session.Session(profile_name=profile_name)
    resolved_region = region or session.region_name
    if not resolved_region:
        raise ValueError(
            "AWS region is required. Pass region= or set AWS_REGION / AWS_DEFAULT_REGION."
        )

    credentials = session.get_credentials()
    frozen = None
    if credentials is not None:
        ro = credentials.get_frozen_credentials()
        frozen = Credentials(ro.access_key, ro.secret_key, ro.token)
    else:
        logger.warning(
            "No AWS credentials resolved; requests will be sent unsigned",
            extra={"event": "client.config.no_credentials"},
        )

    return ClientConfig(region=resolved_region, credentials=frozen, session=session)


def user_agent() -> str:
    return (
        f"awstrace/{__version__} python/{platform.python_version()} "
        f"botocore/{botocore.__version__}"
    )


class Client:
    """Client for one AWS service (e.g. "sqs", "dynamodb").

    Usage:
        with Client("sqs", cfg) as sqs:
            sqs.call("ListQueues", {})
    """

    def __init__(self, service_name: str, config: ClientConfig):
        self.config = config
        session = config.session or boto3.session.Session()
        self._boto = session.client(
            service_name,
            region_name=config.region,
            endpoint_url=config.endpoint_url,
        )

        model = self._boto.meta.service_model
        self.service_model = model
        self.service_id = str(model.service_id)
        self.signing_name = model.signing_name
        self.endpoint_url = self._boto.meta.endpoint_url

        protocol = getattr(model, "resolved_protocol", None) or model.protocol
        self._serializer_impl = create_serializer(protocol, include_validation=True)
        self._parser = create_parser(protocol)
        self._transport = HTTPXTransport(config.http_client)

    def call(
        self,
        operation: str,
        params: Optional[dict[str, Any]] = None,
        ctx: Optional[Context] = None,
    ) -> dict[str, Any]:
        """Invoke operation with params.

        Args:
            operation: Operation name (e.g. "ListQueues")
            params: Operation input, validated against the service model
            ctx: Parent context (default: the current OpenTelemetry context)

        Returns:
            Parsed result with a ResponseMetadata entry

        Raises:
            botocore.exceptions.ParamValidationError: If params do not match the model
            botocore.exceptions.ClientError: If the service returned an error response
            RequestSendError: If the request could not be sent
        """
        stack = self._build_stack(operation)
        parent = ctx if ctx is not None else otel_context.get_current()
        out, _metadata = stack.handle(parent, params or {}, self._transport, lambda: None)
        return out.result

    def close(self) -> None:
        """Release the HTTP client if this client created it."""
        self._transport.close()

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _build_stack(self, operation: str) -> Stack:
        stack = Stack(f"{self.service_id}.{operation}")
        operation_model = self.service_model.operation_model(operation)

        stack.initialize.add(
            MiddlewareFunc("RegisterServiceMetadata", self._register_metadata(operation)),
            Position.BEFORE,
        )
        stack.serialize.add(MiddlewareFunc("OperationSerializer", self._serializer(operation_model)))
        stack.finalize.add(MiddlewareFunc("Signing", self._sign))
        stack.deserialize.add(MiddlewareFunc("OperationDeserializer", self._deserializer(operation_model)))

        for apply in self.config.api_options:
            apply(stack)
        return stack

    def _register_metadata(self, operation: str) -> StackHandler:
        def handle(ctx: Optional[Context], in_: InitializeInput, next_: Handler) -> tuple[Output, Metadata]:
            ctx = callctx.with_service_metadata(ctx, self.service_id, operation, self.config.region)
            return next_(ctx, in_)

        return handle

    def _serializer(self, operation_model: Any) -> StackHandler:
        def handle(ctx: Optional[Context], in_: SerializeInput, next_: Handler) -> tuple[Output, Metadata]:
            request_dict = self._serializer_impl.serialize_to_request(in_.parameters, operation_model)
            prepare_request_dict(
                request_dict,
                endpoint_url=self.endpoint_url,
                context={},
                user_agent=user_agent(),
            )
            in_.request = create_request_object(request_dict)
            return next_(ctx, in_)

        return handle

    def _sign(self, ctx: Optional[Context], in_: FinalizeInput, next_: Handler) -> tuple[Output, Metadata]:
        credentials = self.config.credentials
        if credentials is None:
            return next_(ctx, in_)

        request: AWSRequest = in_.request
        SigV4Auth(credentials, self.signing_name, self.config.region).add_auth(request)
        return next_(ctx, in_)

    def _deserializer(self, operation_model: Any) -> StackHandler:
        def handle(ctx: Optional[Context], in_: DeserializeInput, next_: Handler) -> tuple[Output, Metadata]:
            out, metadata = next_(ctx, in_)
            response: HTTPResponse = out.raw_response

            parsed = self._parser.parse(
                {
                    "headers": HeadersDict(response.headers.items()),
                    "status_code": response.status_code,
                    "body": response.body,
                    "context": {"operation_name": operation_model.name},
                },
                operation_model.output_shape,
            )

            request_id = parsed.get("ResponseMetadata", {}).get("RequestId")
            if request_id:
                set_request_id_metadata(metadata, request_id)

            if response.status_code >= 300:
                code = parsed.get("Error", {}).get("Code")
                error_class = self._boto.exceptions.from_code(code)
                raise error_class(parsed, operation_model.name)

            out.result = parsed
            return out, metadata

        return handle
