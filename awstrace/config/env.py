"""Environment variable resolution for tracing defaults.

Canonical names:
- AWSTRACE_ANALYTICS_ENABLED: truthy -> default analytics rate 1.0
- AWSTRACE_SERVICE_NAME: default service name override
"""

import math
import os
from typing import Optional

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def get_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean environment variable.

    Args:
        name: Variable name
        default: Value used when the variable is unset

    Returns:
        Parsed boolean

    Raises:
        ValueError: If the value is set but not a recognized boolean
    """
    raw = os.getenv(name)
    if raw is None:
        return default

    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ValueError(
        f"{name}={raw!r} is not a boolean. Use one of: {sorted(_TRUTHY | _FALSY - {''})}"
    )


def get_default_analytics_rate() -> float:
    """Default analytics rate: 1.0 if AWSTRACE_ANALYTICS_ENABLED, else NaN."""
    if get_bool("AWSTRACE_ANALYTICS_ENABLED"):
        return 1.0
    return math.nan


def get_default_service_name() -> Optional[str]:
    return os.getenv("AWSTRACE_SERVICE_NAME") or None
