"""
Operator-facing log events.

Every boot-level and dependency-level event goes through one of these three
helpers so it carries a stable ``event_code`` that observability tooling can
match on. The message text is free to change; the codes are not.
"""

import logging
from typing import Optional

from sopen.core.secure_logging import sanitize_for_log

logger = logging.getLogger("sopen.notifier")

# Stable event codes
SERVER_INIT = "SERVER_INIT"
SERVER = "SERVER"
SERVER_FAIL = "SERVER_FAIL"
CONFIG_CHECK_FAIL = "CONFIG_CHECK_FAIL"
BOOT_PHASE = "BOOT_PHASE"
DB_CONNECT = "DB_CONNECT"
FIREBASE_INIT = "FIREBASE_INIT"
FIREBASE_DISABLED = "FIREBASE_DISABLED"
FIREBASE_INIT_FAIL = "FIREBASE_INIT_FAIL"
REDIS_INIT_NON_CRITICAL = "REDIS_INIT_NON_CRITICAL"
REDIS_DISABLED = "REDIS_DISABLED"
MQ_INIT_NON_CRITICAL = "MQ_INIT_NON_CRITICAL"
RABBITMQ_DISABLED = "RABBITMQ_DISABLED"
PUBLISH_MODE = "PUBLISH_MODE"
SCHEDULER_START_FAIL = "SCHEDULER_START_FAIL"
WATCHER_START_FAIL = "WATCHER_START_FAIL"
HOMEPAGE_INIT_FAIL = "HOMEPAGE_INIT_FAIL"


def log_success(message: str, code: str) -> None:
    logger.info(message, extra={"event_code": code, "event_kind": "SUCCESS"})


def log_notice(message: str, code: str) -> None:
    """Explicit operator notice for a deliberate degradation (not a failure)."""
    logger.warning(message, extra={"event_code": code, "event_kind": "NOTICE"})


def log_error(
    message: str,
    error: Optional[BaseException],
    code: str,
    level: int = logging.ERROR,
) -> None:
    """Log a failure with its cause.

    Advisory failures pass ``level=logging.WARNING``; fatal ones keep ERROR.
    """
    if error is not None:
        detail = sanitize_for_log(f"{type(error).__name__}: {error}", max_len=500)
        message = f"{message} ({detail})"
    logger.log(level, message, extra={"event_code": code})
