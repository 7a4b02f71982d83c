"""Raw HTTP response object and the httpx transport."""

import logging
from dataclasses import dataclass
from typing import Optional, Union

import httpx
from botocore.awsrequest import AWSRequest
from opentelemetry.context import Context

from awstrace.middleware import Metadata, Output

logger = logging.getLogger(__name__)


class RequestSendError(Exception):
    """Raised when the HTTP request could not be sent or no response arrived."""


@dataclass
class HTTPResponse:
    """HTTP response as received from the service."""

    status_code: int
    headers: httpx.Headers
    body: bytes


class HTTPXTransport:
    """Innermost pipeline handler: sends a signed AWSRequest with httpx.

    A client passed in by the caller stays the caller's to close; one
    created here is closed by close().
    """

    def __init__(self, client: Optional[httpx.Client] = None, timeout: float = 30.0):
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client(timeout=timeout)

    @property
    def owns_client(self) -> bool:
        return self._owns_client

    def __call__(self, ctx: Optional[Context], request: AWSRequest) -> tuple[Output, Metadata]:
        """Send request and wrap the response as the raw output.

        Raises:
            RequestSendError: If httpx fails to complete the exchange
        """
        prepared = request.prepare()
        try:
            response = self._client.request(
                prepared.method,
                prepared.url,
                headers=dict(prepared.headers.items()),
                content=_body_bytes(prepared.body),
            )
        except httpx.HTTPError as exc:
            logger.error(
                f"Failed to send {prepared.method} {prepared.url}: {exc}",
                extra={"event": "transport.send_failed"},
            )
            raise RequestSendError(f"failed to send request: {exc}") from exc

        raw = HTTPResponse(
            status_code=response.status_code,
            headers=response.headers,
            body=response.content,
        )
        return Output(raw_response=raw), Metadata()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


def _body_bytes(body: Union[bytes, str, None]) -> bytes:
    if body is None:
        return b""
    if isinstance(body, str):
        return body.encode("utf-8")
    return body
