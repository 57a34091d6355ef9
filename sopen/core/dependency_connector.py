"""
Dependency Connector
====================

Connects the service to its external dependencies and classifies failures.

- FATAL dependencies are awaited (bounded by their timeout). A failure raises
  ``FatalDependencyError`` and the caller aborts boot.
- ADVISORY dependencies are dispatched as background tasks. The boot path
  never waits on them; a done-callback registered at dispatch time records
  the outcome and turns failures into log events carrying the dependency's
  stable error code.
- A dependency that is configured but administratively disabled never
  touches the network. It emits an explicit notice naming the subsystem and
  the fallback the service uses instead.

Usage:
    connector = DependencyConnector([
        DependencySpec("datastore", datastore.connect, Criticality.FATAL, timeout=10.0),
        DependencySpec("cache", cache.connect, Criticality.ADVISORY,
                       error_code="REDIS_INIT_NON_CRITICAL"),
    ])

    await connector.connect_fatal("datastore")   # raises on failure
    connector.dispatch_advisory("cache")          # returns immediately

    if connector.is_available("cache"):
        ...
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from functools import partial
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional

from sopen.core import notifier
from sopen.core.errors import FatalDependencyError

logger = logging.getLogger(__name__)


class Criticality(Enum):
    FATAL = "fatal"
    ADVISORY = "advisory"


class ConnectionStatus(Enum):
    PENDING = "pending"
    CONNECTED = "connected"
    FAILED = "failed"
    DISABLED = "disabled"


@dataclass(frozen=True)
class DependencySpec:
    """One external service the process depends on.

    Criticality is fixed here, at configuration time.
    """
    name: str
    connect: Callable[[], Awaitable[Any]]
    criticality: Criticality
    enabled: bool = True
    timeout: Optional[float] = None
    error_code: str = ""
    failure_message: str = ""
    disabled_code: str = ""
    disabled_fallback: str = ""

    @property
    def code(self) -> str:
        return self.error_code or f"{self.name.upper()}_INIT_FAIL"

    @property
    def notice_code(self) -> str:
        return self.disabled_code or f"{self.name.upper()}_DISABLED"


@dataclass(frozen=True)
class ConnectionOutcome:
    name: str
    status: ConnectionStatus
    error: Optional[BaseException] = None
    duration_ms: Optional[float] = None

    @property
    def available(self) -> bool:
        return self.status is ConnectionStatus.CONNECTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "error": f"{type(self.error).__name__}: {self.error}" if self.error else None,
            "duration_ms": round(self.duration_ms, 1) if self.duration_ms is not None else None,
        }


OutcomeCallback = Callable[[ConnectionOutcome], None]


class DependencyConnector:
    """Applies the fatal/advisory/disabled policy to a fixed set of specs."""

    def __init__(self, specs: Iterable[DependencySpec]):
        registry: Dict[str, DependencySpec] = {}
        for spec in specs:
            if spec.name in registry:
                raise ValueError(f"duplicate dependency spec: {spec.name}")
            registry[spec.name] = spec
        self._specs: Mapping[str, DependencySpec] = MappingProxyType(registry)
        self._outcomes: Dict[str, ConnectionOutcome] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def specs(self) -> Mapping[str, DependencySpec]:
        return self._specs

    def spec(self, name: str) -> DependencySpec:
        try:
            return self._specs[name]
        except KeyError:
            raise KeyError(f"unknown dependency: {name}") from None

    # -------------------------------------------------------------------------
    # Fatal path
    # -------------------------------------------------------------------------

    async def connect_fatal(self, name: str) -> ConnectionOutcome:
        spec = self.spec(name)
        if spec.criticality is not Criticality.FATAL:
            raise ValueError(f"{name} is {spec.criticality.value}, use dispatch_advisory()")
        if not spec.enabled:
            return self._short_circuit(spec)

        start = time.monotonic()
        logger.info(f"🔌 Connecting to {name} (fatal, timeout={spec.timeout}s)...")
        try:
            await asyncio.wait_for(spec.connect(), timeout=spec.timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if isinstance(e, asyncio.TimeoutError):
                e = asyncio.TimeoutError(f"no connection to {name} within {spec.timeout}s")
            self._outcomes[name] = ConnectionOutcome(
                name, ConnectionStatus.FAILED, error=e, duration_ms=_since(start)
            )
            raise FatalDependencyError(name, e) from e

        outcome = ConnectionOutcome(name, ConnectionStatus.CONNECTED, duration_ms=_since(start))
        self._outcomes[name] = outcome
        notifier.log_success(f"Connected to {name} ({outcome.duration_ms:.0f}ms)", spec.code)
        return outcome

    # -------------------------------------------------------------------------
    # Advisory path
    # -------------------------------------------------------------------------

    def dispatch_advisory(
        self,
        name: str,
        on_complete: Optional[OutcomeCallback] = None,
    ) -> Optional[asyncio.Task]:
        """Start an advisory connect in the background and return at once.

        Must be called from inside the running event loop. Returns ``None``
        when the dependency is disabled (nothing was dispatched).
        """
        spec = self.spec(name)
        if spec.criticality is not Criticality.ADVISORY:
            raise ValueError(f"{name} is {spec.criticality.value}, use connect_fatal()")
        if not spec.enabled:
            outcome = self._short_circuit(spec)
            if on_complete is not None:
                on_complete(outcome)
            return None
        if name in self._tasks and not self._tasks[name].done():
            return self._tasks[name]

        self._outcomes[name] = ConnectionOutcome(name, ConnectionStatus.PENDING)
        task = asyncio.create_task(
            asyncio.wait_for(spec.connect(), timeout=spec.timeout),
            name=f"connect:{name}",
        )
        task.add_done_callback(partial(self._on_advisory_done, spec, time.monotonic(), on_complete))
        self._tasks[name] = task
        logger.info(f"🔌 Connecting to {name} in background (advisory)...")
        return task

    def _on_advisory_done(
        self,
        spec: DependencySpec,
        start: float,
        on_complete: Optional[OutcomeCallback],
        task: asyncio.Task,
    ) -> None:
        if task.cancelled():
            outcome = ConnectionOutcome(
                spec.name, ConnectionStatus.FAILED,
                error=asyncio.CancelledError(f"{spec.name} connect cancelled"),
                duration_ms=_since(start),
            )
            logger.debug(f"{spec.name} connect cancelled")
        else:
            error = task.exception()
            if error is None:
                outcome = ConnectionOutcome(spec.name, ConnectionStatus.CONNECTED, duration_ms=_since(start))
                notifier.log_success(f"Connected to {spec.name} ({outcome.duration_ms:.0f}ms)", spec.code)
            else:
                if isinstance(error, asyncio.TimeoutError):
                    error = asyncio.TimeoutError(f"no connection to {spec.name} within {spec.timeout}s")
                outcome = ConnectionOutcome(
                    spec.name, ConnectionStatus.FAILED, error=error, duration_ms=_since(start)
                )
                notifier.log_error(
                    spec.failure_message or f"{spec.name} unavailable, continuing without it.",
                    error,
                    spec.code,
                    level=logging.WARNING,
                )

        self._outcomes[spec.name] = outcome
        if on_complete is not None:
            try:
                on_complete(outcome)
            except Exception as e:
                logger.warning(f"Outcome callback for {spec.name} failed: {e}")

    # -------------------------------------------------------------------------
    # Disabled path
    # -------------------------------------------------------------------------

    def _short_circuit(self, spec: DependencySpec) -> ConnectionOutcome:
        outcome = ConnectionOutcome(spec.name, ConnectionStatus.DISABLED)
        self._outcomes[spec.name] = outcome
        fallback = spec.disabled_fallback or "the capability is unavailable"
        notifier.log_notice(
            f"{spec.name} is administratively disabled, no connection attempted. Fallback: {fallback}.",
            spec.notice_code,
        )
        return outcome

    # -------------------------------------------------------------------------
    # Call-time availability
    # -------------------------------------------------------------------------

    def outcome(self, name: str) -> Optional[ConnectionOutcome]:
        return self._outcomes.get(name)

    def outcomes(self) -> Dict[str, ConnectionOutcome]:
        return dict(self._outcomes)

    def is_available(self, name: str) -> bool:
        outcome = self._outcomes.get(name)
        return outcome is not None and outcome.available

    def pending(self) -> List[asyncio.Task]:
        return [task for task in self._tasks.values() if not task.done()]

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for outstanding advisory connects (shutdown, tests)."""
        pending = self.pending()
        if pending:
            await asyncio.wait(pending, timeout=timeout)

    async def cancel_pending(self) -> None:
        pending = self.pending()
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


def _since(start: float) -> float:
    return (time.monotonic() - start) * 1000
