"""
Degraded-Mode Publisher
=======================

Content publication runs in exactly one of two modes for the lifetime of
the process:

    QUEUED  - publish requests are enqueued on the broker and a consumer
              runs the pipeline asynchronously.
    DIRECT  - publish requests run the pipeline synchronously inside the
              request handler. Lower throughput, no backpressure isolation,
              but no broker to depend on.

The mode is selected once at boot from configuration and announced once.
It is never re-evaluated per request: a broker that becomes reachable later
does not switch a DIRECT process to QUEUED, and a QUEUED process whose
broker is down rejects work instead of silently running it inline.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

from pydantic import BaseModel, Field, ValidationError

from sopen.core import notifier
from sopen.core.errors import PublishUnavailableError

logger = logging.getLogger(__name__)


class PublishMode(Enum):
    QUEUED = "queued"
    DIRECT = "direct"


def select_publish_mode(queue_enabled: bool) -> PublishMode:
    return PublishMode.QUEUED if queue_enabled else PublishMode.DIRECT


class PublishRequest(BaseModel):
    """A page to publish."""
    slug: str = Field(..., min_length=1, max_length=120, pattern=r"^[a-z0-9][a-z0-9-]*$")
    title: str = Field(..., min_length=1, max_length=300)
    body: str = ""
    author: Optional[str] = None


@dataclass(frozen=True)
class PublishReceipt:
    job_id: str
    slug: str
    mode: PublishMode
    completed: bool
    accepted_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "slug": self.slug,
            "mode": self.mode.value,
            "completed": self.completed,
            "accepted_at": self.accepted_at,
        }


class QueueTransport(Protocol):
    """What the publisher needs from the broker client."""

    @property
    def connected(self) -> bool: ...

    async def enqueue(self, payload: Dict[str, Any], message_id: str) -> None: ...


PublishPipeline = Callable[[PublishRequest], Awaitable[Any]]


class Publisher:
    """Routes publish requests through the mode chosen at boot."""

    __slots__ = ("_mode", "_pipeline", "_queue", "_announced")

    def __init__(
        self,
        mode: PublishMode,
        pipeline: PublishPipeline,
        queue: Optional[QueueTransport] = None,
    ):
        if mode is PublishMode.QUEUED and queue is None:
            raise ValueError("QUEUED publish mode requires a queue transport")
        self._mode = mode
        self._pipeline = pipeline
        self._queue = queue
        self._announced = False

    @property
    def mode(self) -> PublishMode:
        return self._mode

    def announce(self) -> None:
        """Log the active mode. Only the first call logs."""
        if self._announced:
            return
        self._announced = True
        if self._mode is PublishMode.DIRECT:
            notifier.log_notice(
                "Publish mode: DIRECT - publishing runs synchronously in the request path. "
                "Throughput and backpressure isolation are reduced.",
                notifier.PUBLISH_MODE,
            )
        else:
            notifier.log_success("Publish mode: QUEUED - publishing runs through the broker consumer",
                                 notifier.PUBLISH_MODE)

    async def publish(self, request: PublishRequest) -> PublishReceipt:
        job_id = uuid.uuid4().hex
        if self._mode is PublishMode.DIRECT:
            await self._pipeline(request)
            logger.info(f"📰 Published '{request.slug}' directly (job {job_id[:8]})")
            return PublishReceipt(job_id=job_id, slug=request.slug, mode=self._mode, completed=True)

        if not self._queue.connected:
            raise PublishUnavailableError("publish queue is not connected, retry later")
        await self._queue.enqueue(request.model_dump(), message_id=job_id)
        logger.info(f"📨 Queued '{request.slug}' for publishing (job {job_id[:8]})")
        return PublishReceipt(job_id=job_id, slug=request.slug, mode=self._mode, completed=False)

    async def handle_queued(self, payload: Dict[str, Any]) -> None:
        """Consumer-side entry point: run the pipeline for one queued message.

        Raises on invalid payloads so the consumer can reject the message.
        """
        try:
            request = PublishRequest.model_validate(payload)
        except ValidationError as e:
            logger.error(f"Dropping malformed publish message: {e.error_count()} validation error(s)")
            raise
        await self._pipeline(request)
        logger.info(f"📰 Published '{request.slug}' from queue")
