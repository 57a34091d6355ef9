"""
Typed environment readers.

Every reader follows the same policy: a missing variable yields the default,
an unparseable or out-of-range value logs a warning and yields the default.
Configuration mistakes never crash the process.

Usage:
    from sopen.utils.env_config import get_env_float, get_env_bool

    timeout = get_env_float("SOPEN_DATASTORE_CONNECT_TIMEOUT", 10.0, min_val=0.1)
    enabled = get_env_bool("SOPEN_QUEUE_ENABLED", False)
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off")


def get_env_str(key: str, default: str = "", fallbacks: Sequence[str] = ()) -> str:
    """Return the first non-empty value among ``key`` and ``fallbacks``."""
    for name in (key, *fallbacks):
        value = os.getenv(name)
        if value is not None and value.strip():
            return value.strip()
    return default


def get_env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    logger.warning(f"[EnvConfig] {key}={raw!r} is not a boolean, using default {default}")
    return default


def get_env_float(
    key: str,
    default: float,
    min_val: Optional[float] = None,
    max_val: Optional[float] = None,
) -> float:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"[EnvConfig] {key}={raw!r} is not a number, using default {default}")
        return default
    if min_val is not None and value < min_val:
        logger.warning(f"[EnvConfig] {key}={value} is below minimum {min_val}, using default {default}")
        return default
    if max_val is not None and value > max_val:
        logger.warning(f"[EnvConfig] {key}={value} exceeds maximum {max_val}, using default {default}")
        return default
    return value


def get_env_int(
    key: str,
    default: int,
    min_val: Optional[int] = None,
    max_val: Optional[int] = None,
    fallbacks: Sequence[str] = (),
) -> int:
    for name in (key, *fallbacks):
        raw = os.getenv(name)
        if raw is None or not raw.strip():
            continue
        try:
            value = int(raw)
        except ValueError:
            logger.warning(f"[EnvConfig] {name}={raw!r} is not an integer, using default {default}")
            return default
        if (min_val is not None and value < min_val) or (max_val is not None and value > max_val):
            logger.warning(
                f"[EnvConfig] {name}={value} outside [{min_val}, {max_val}], using default {default}"
            )
            return default
        return value
    return default
