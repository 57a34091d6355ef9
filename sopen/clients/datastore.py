"""
Primary datastore client (MongoDB).

The boot orchestrator only needs ``connect()`` to succeed or raise; the rest
of the service reaches the database through ``db``.
"""

import asyncio
import logging
from typing import Optional, Protocol

from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from sopen.core.secure_logging import mask_uri

logger = logging.getLogger(__name__)


class Datastore(Protocol):
    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def ping(self) -> bool: ...


class MongoDatastore:
    """Async MongoDB connection. ``connect()`` raises ``ConnectionError`` on failure."""

    def __init__(self, uri: str, default_database: str = "sopen", server_selection_timeout: float = 10.0):
        self._uri = uri
        self._default_database = default_database
        self._server_selection_timeout_ms = int(server_selection_timeout * 1000)
        self._client: Optional[AsyncMongoClient] = None
        self._db = None

    @property
    def db(self):
        if self._db is None:
            raise RuntimeError("datastore is not connected")
        return self._db

    @property
    def connected(self) -> bool:
        return self._db is not None

    async def connect(self) -> None:
        if self._client is not None:
            return
        logger.info(f"[Datastore] Connecting to {mask_uri(self._uri)}")
        client = AsyncMongoClient(self._uri, serverSelectionTimeoutMS=self._server_selection_timeout_ms)
        try:
            await client.admin.command("ping")
        except PyMongoError as e:
            await client.close()
            raise ConnectionError(f"MongoDB unreachable at {mask_uri(self._uri)}: {e}") from e
        except BaseException:
            # cancelled by the connect timeout
            await asyncio.shield(client.close())
            raise

        self._client = client
        self._db = client.get_default_database(default=self._default_database)
        logger.info(f"[Datastore] Using database '{self._db.name}'")

    async def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
            return True
        except PyMongoError as e:
            logger.debug(f"[Datastore] Ping failed: {e}")
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
            self._db = None
            logger.info("[Datastore] Closed")
