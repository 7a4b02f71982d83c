"""Utility functions and helpers."""

from awstrace.utils.logging import JSONFormatter, configure_json_logging
from awstrace.utils.sanitize import sanitize_obj, sanitize_str, sanitize_url

__all__ = [
    "JSONFormatter",
    "configure_json_logging",
    "sanitize_obj",
    "sanitize_str",
    "sanitize_url",
]
