"""Secret sanitizer for log output and span URLs.

Two concerns:
 1. Log values: SigV4 headers, session tokens and bearer tokens are
    replaced with [REDACTED]; oversized strings are truncated + hashed.
 2. Span URLs: presigned SigV4 query parameters are redacted before the URL
    is attached to a span.

ReDoS mitigation: patterns are anchored to non-whitespace (\\S+),
all pre-compiled at module import, size gate prevents catastrophic backtracking.
"""

import hashlib
import re
import traceback
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

# ── Size thresholds ───────────────────────────────────────────────────────────
MAX_STR_LOG: int = 2048   # Truncate whole string; skip regex
MAX_STR_FOR_REGEX: int = 512   # Run prefix check only; skip regex
MAX_DEPTH: int = 6         # Recursive object traversal limit

REDACTED = "[REDACTED]"

# ── Sensitive dict keys (lower-cased for comparison) ─────────────────────────
_SENSITIVE_KEYS: frozenset[str] = frozenset({
    "authorization", "x-amz-security-token", "x-amz-signature",
    "x-amz-credential", "aws_secret_access_key", "aws_session_token",
    "secret_key", "token", "signature",
})

# ── Query parameters carrying SigV4 credentials (lower-cased) ────────────────
_SENSITIVE_QUERY_PARAMS: frozenset[str] = frozenset({
    "x-amz-signature", "x-amz-credential", "x-amz-security-token",
})

# ── Pre-compiled regex patterns (module-level → compiled once) ────────────────
_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"Bearer \S+"),
    re.compile(r"AWS4-HMAC-SHA256 \S+(?: \S+)*"),
    re.compile(r"X-Amz-Signature=[^&\s]+", re.IGNORECASE),
    re.compile(r"X-Amz-Credential=[^&\s]+", re.IGNORECASE),
    re.compile(r"X-Amz-Security-Token=[^&\s]+", re.IGNORECASE),
]

_BEARER_PREFIX = "Bearer "
_SIGV4_PREFIX = "AWS4-HMAC-SHA256 "


def sanitize_str(s: str) -> str:
    """Sanitize a string value according to three-tier size gate.

    Returns a redacted / truncated string; never the original sensitive value.
    """
    if not isinstance(s, str):
        return s  # type: ignore[return-value]

    n = len(s)

    # Tier 1: too long to log at all → truncate with hash
    if n > MAX_STR_LOG:
        digest = hashlib.sha256(s.encode("utf-8", errors="replace")).hexdigest()[:16]
        return f"[TRUNCATED len={n} sha256={digest}]"

    # Tier 2: long enough to be risky for regex but worth logging → prefix check
    if n > MAX_STR_FOR_REGEX:
        if s.startswith(_BEARER_PREFIX) or s.startswith(_SIGV4_PREFIX):
            return REDACTED
        return s

    # Tier 3: short enough → full regex replacement
    result = s
    for pattern in _PATTERNS:
        result = pattern.sub(REDACTED, result)
    return result


def sanitize_obj(obj: Any, depth: int = 0) -> Any:
    """Recursively sanitize a log extra value.

    - dict: redact sensitive keys, recurse others
    - list/tuple: recurse each element
    - str: run sanitize_str()
    - other: return as-is

    Depth is capped at MAX_DEPTH to prevent stack overflow on pathological inputs.
    """
    if depth >= MAX_DEPTH:
        return "[DEPTH_LIMIT]"

    if isinstance(obj, dict):
        result: dict[str, Any] = {}
        for key, value in obj.items():
            if isinstance(key, str) and key.lower() in _SENSITIVE_KEYS:
                result[key] = REDACTED
            else:
                result[key] = sanitize_obj(value, depth + 1)
        return result

    if isinstance(obj, (list, tuple)):
        return [sanitize_obj(item, depth + 1) for item in obj]

    if isinstance(obj, str):
        return sanitize_str(obj)

    return obj


def sanitize_exc(exc_info: tuple) -> str:
    """Format an exc_info tuple into a sanitized traceback string.

    Uses capture_locals=False to avoid leaking local variable values
    (which may contain secrets) into log output.
    """
    _type, value, _tb = exc_info
    if value is None:
        return ""
    try:
        te = traceback.TracebackException.from_exception(value, capture_locals=False)
        formatted = "".join(te.format())
        return sanitize_str(formatted)
    except Exception:
        return "[TRACEBACK_FORMAT_ERROR]"


def sanitize_url(url: str) -> str:
    """Redact SigV4 credentials from a URL's query string.

    URLs without sensitive query parameters are returned unchanged.
    """
    parts = urlsplit(url)
    if not parts.query:
        return url

    pairs = parse_qsl(parts.query, keep_blank_values=True)
    if not any(key.lower() in _SENSITIVE_QUERY_PARAMS for key, _ in pairs):
        return url

    redacted = [
        (key, REDACTED if key.lower() in _SENSITIVE_QUERY_PARAMS else value)
        for key, value in pairs
    ]
    return urlunsplit(parts._replace(query=urlencode(redacted, safe="[]")))
