"""
Sopen Boot State Machine
========================

Tracks the ordered startup of the service. Phases only move forward; any
phase may fall into FAILED, which is terminal and ends the process.

    +----------------------+
    | NOT_STARTED          |
    +----------------------+
              |
              v
    +----------------------+
    | CONNECTING_PRIMARY   |  <- datastore, awaited, fatal
    +----------------------+
              |
              v
    +----------------------+
    | CONNECTING_AUXILIARY |  <- cache / queue dispatched, advisory
    +----------------------+
              |
              v
    +----------------------+
    | MOUNTING_ROUTES      |  <- static mounts + route groups
    +----------------------+
              |
              v
    +----------------------+
    | STARTING_BACKGROUND  |  <- scheduler + pages watcher, advisory
    +----------------------+
              |
              v
    +----------------------+
    | LISTENING            |  <- listener bound
    +----------------------+

    (any phase) ---> FAILED (terminal, exit 1)
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from sopen.core import notifier
from sopen.core.errors import InvalidBootTransition

logger = logging.getLogger(__name__)


class BootPhase(Enum):
    """Boot phases in order"""
    NOT_STARTED = "not_started"
    CONNECTING_PRIMARY = "connecting_primary"
    CONNECTING_AUXILIARY = "connecting_auxiliary"
    MOUNTING_ROUTES = "mounting_routes"
    STARTING_BACKGROUND = "starting_background"
    LISTENING = "listening"
    FAILED = "failed"


_PHASE_ORDER = {
    BootPhase.NOT_STARTED: 0,
    BootPhase.CONNECTING_PRIMARY: 1,
    BootPhase.CONNECTING_AUXILIARY: 2,
    BootPhase.MOUNTING_ROUTES: 3,
    BootPhase.STARTING_BACKGROUND: 4,
    BootPhase.LISTENING: 5,
}


@dataclass
class BootState:
    """
    Per-process boot progress.

    Created once when the process starts and dropped once LISTENING is
    reached; nothing here is persisted.
    """
    phase: BootPhase = BootPhase.NOT_STARTED
    errors: List[Tuple[str, BaseException]] = field(default_factory=list)
    started_at: float = field(default_factory=time.monotonic)
    phase_times: Dict[str, float] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.phase in (BootPhase.FAILED, BootPhase.LISTENING)

    @property
    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.started_at) * 1000

    def advance(self, phase: BootPhase, message: str = "") -> None:
        """Move to a later phase. Skipping phases is allowed, going back is not."""
        if phase is BootPhase.FAILED:
            raise InvalidBootTransition("use fail() to enter the FAILED phase")
        if self.phase is BootPhase.FAILED:
            raise InvalidBootTransition(f"boot already failed, cannot enter {phase.value}")
        if _PHASE_ORDER[phase] <= _PHASE_ORDER[self.phase]:
            raise InvalidBootTransition(f"{self.phase.value} -> {phase.value} is not a forward transition")

        old_phase = self.phase
        self.phase = phase
        self.phase_times[phase.value] = self.elapsed_ms
        logger.info(
            f"🔄 Boot phase: {old_phase.value} -> {phase.value}" + (f" ({message})" if message else ""),
            extra={"event_code": notifier.BOOT_PHASE},
        )

    def record_error(self, name: str, error: BaseException) -> None:
        """Keep an advisory error in order without changing phase."""
        self.errors.append((name, error))

    def fail(self, name: str, error: BaseException) -> None:
        if self.phase is BootPhase.FAILED:
            raise InvalidBootTransition("boot already failed")
        self.errors.append((name, error))
        old_phase = self.phase
        self.phase = BootPhase.FAILED
        self.phase_times[BootPhase.FAILED.value] = self.elapsed_ms
        logger.error(
            f"🔄 Boot phase: {old_phase.value} -> failed ({name})",
            extra={"event_code": notifier.BOOT_PHASE},
        )

    def snapshot(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "elapsed_ms": round(self.elapsed_ms, 1),
            "phase_times_ms": {k: round(v, 1) for k, v in self.phase_times.items()},
            "errors": [
                {"dependency": name, "error": f"{type(err).__name__}: {err}"}
                for name, err in self.errors
            ],
        }

    def failed_dependency(self) -> Optional[str]:
        if self.phase is BootPhase.FAILED and self.errors:
            return self.errors[-1][0]
        return None
