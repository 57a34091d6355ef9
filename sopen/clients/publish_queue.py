"""
Publish queue client (RabbitMQ via aio-pika).

Only used when the service runs in QUEUED publish mode. In DIRECT mode this
client is never constructed, so neither ``connect()`` nor
``start_consumer()`` can run.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import aio_pika
from aio_pika.abc import AbstractIncomingMessage

from sopen.core.secure_logging import mask_uri

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Dict[str, Any]], Awaitable[None]]


class AmqpPublishQueue:
    def __init__(self, uri: str, queue_name: str = "sopen.publish", prefetch_count: int = 4):
        self._uri = uri
        self._queue_name = queue_name
        self._prefetch_count = prefetch_count
        self._connection: Optional[aio_pika.abc.AbstractRobustConnection] = None
        self._channel = None
        self._queue = None
        self._consumer_tag: Optional[str] = None

    @property
    def connected(self) -> bool:
        return self._connection is not None and not self._connection.is_closed

    async def connect(self) -> None:
        if self.connected:
            return
        logger.info(f"[PublishQueue] Connecting to {mask_uri(self._uri)}")
        self._connection = await aio_pika.connect_robust(self._uri)
        self._channel = await self._connection.channel()
        await self._channel.set_qos(prefetch_count=self._prefetch_count)
        self._queue = await self._channel.declare_queue(self._queue_name, durable=True)
        logger.info(f"[PublishQueue] Queue '{self._queue_name}' declared")

    async def enqueue(self, payload: Dict[str, Any], message_id: str) -> None:
        if not self.connected:
            raise ConnectionError("publish queue is not connected")
        message = aio_pika.Message(
            body=json.dumps(payload).encode("utf-8"),
            content_type="application/json",
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            message_id=message_id,
        )
        await self._channel.default_exchange.publish(message, routing_key=self._queue_name)

    async def start_consumer(self, handler: MessageHandler) -> None:
        """Feed queued messages to ``handler``. Idempotent."""
        if self._consumer_tag is not None:
            return
        if self._queue is None:
            raise ConnectionError("publish queue is not connected")

        async def _on_message(message: AbstractIncomingMessage) -> None:
            try:
                async with message.process(requeue=False):
                    await handler(json.loads(message.body))
            except Exception as e:
                # process() has already rejected the message
                logger.error(f"[PublishQueue] Message {message.message_id} failed: {e}")

        self._consumer_tag = await self._queue.consume(_on_message)
        logger.info(f"[PublishQueue] Consumer started on '{self._queue_name}'")

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
        self._connection = None
        self._channel = None
        self._queue = None
        self._consumer_tag = None
