"""Protocol-level tags read from wire request/response objects.

Objects are inspected by attribute (``method``, ``url``, ``headers``,
``status_code``), so botocore ``AWSRequest``/``AWSResponse`` and httpx
objects all work. Parsed botocore responses and ``ClientError.response``
contribute status code and request id through ``ResponseMetadata``.
Missing fields are skipped one by one.
"""

from collections.abc import Mapping
from typing import Any, Optional

from awstrace.middleware import Metadata, get_request_id_metadata
from awstrace.record import (
    TAG_AWS_AGENT,
    TAG_AWS_REQUEST_ID,
    TAG_HTTP_METHOD,
    TAG_HTTP_STATUS_CODE,
    TAG_HTTP_URL,
)
from awstrace.utils.sanitize import sanitize_url


def _header(headers: Any, name: str) -> Optional[str]:
    if headers is None:
        return None
    try:
        value = headers.get(name)
    except (AttributeError, TypeError):
        return None
    if isinstance(value, bytes):
        value = value.decode("latin-1")
    return value or None


def _status_code(value: Any) -> Optional[int]:
    # bool is an int subclass; it is never a status code
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def request_tags(request: Any) -> dict[str, Any]:
    """Tags for an outgoing request: method, url, agent."""
    tags: dict[str, Any] = {}
    if request is None:
        return tags

    method = getattr(request, "method", None)
    if isinstance(method, str) and method:
        tags[TAG_HTTP_METHOD] = method

    url = getattr(request, "url", None)
    if url is not None and str(url):
        tags[TAG_HTTP_URL] = sanitize_url(str(url))

    agent = _header(getattr(request, "headers", None), "User-Agent")
    if agent:
        tags[TAG_AWS_AGENT] = agent

    return tags


def response_tags(response: Any) -> dict[str, Any]:
    """Tags for a raw response: status code."""
    status = _status_code(getattr(response, "status_code", None))
    if status is not None:
        return {TAG_HTTP_STATUS_CODE: status}
    return {}


def metadata_tags(metadata: Optional[Metadata]) -> dict[str, Any]:
    """Tags from per-call response metadata: request id."""
    request_id = get_request_id_metadata(metadata)
    if request_id:
        return {TAG_AWS_REQUEST_ID: request_id}
    return {}


def response_metadata_tags(parsed: Any) -> dict[str, Any]:
    """Tags from a parsed botocore response's ResponseMetadata."""
    if not isinstance(parsed, Mapping):
        return {}
    meta = parsed.get("ResponseMetadata")
    if not isinstance(meta, Mapping):
        return {}

    tags: dict[str, Any] = {}
    status = _status_code(meta.get("HTTPStatusCode"))
    if status is not None:
        tags[TAG_HTTP_STATUS_CODE] = status
    request_id = meta.get("RequestId")
    if isinstance(request_id, str) and request_id:
        tags[TAG_AWS_REQUEST_ID] = request_id
    return tags


def error_tags(exc: BaseException) -> dict[str, Any]:
    """Tags from an exception carrying a botocore-style ``response`` dict."""
    return response_metadata_tags(getattr(exc, "response", None))
