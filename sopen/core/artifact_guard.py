"""
Artifact Guard
==============

Makes sure a derived static artifact (the homepage) exists before it is
served, generating it on demand.

    present                  -> READY, no side effect, no lock taken
    absent                   -> take the per-path lock, re-check, generate once
    generation failed        -> logged, never raised; re-check decides
    still absent afterwards  -> UNAVAILABLE ("not yet generated", not "broken")

Concurrent first requests for the same path serialize on one asyncio.Lock:
the first runs the generator, the rest wait (up to ``wait_timeout``) and then
find the artifact present. A waiter that gives up, or any request when
``wait_for_inflight`` is False, gets UNAVAILABLE instead of a second
generation.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Protocol, Set, Union

import aiofiles.os

from sopen.core import notifier

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class ArtifactStatus(Enum):
    READY = "ready"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class ArtifactRecord:
    path: Path
    exists: bool
    generation_in_progress: bool


class ArtifactGenerator(Protocol):
    async def generate(self, target_path: Path) -> None: ...


class ArtifactGuard:
    """Acquire-or-create for generated files, one generation in flight per path."""

    def __init__(
        self,
        generator: ArtifactGenerator,
        wait_timeout: float = 15.0,
        wait_for_inflight: bool = True,
    ):
        self._generator = generator
        self._wait_timeout = wait_timeout
        self._wait_for_inflight = wait_for_inflight
        self._locks: Dict[Path, asyncio.Lock] = {}
        self._lock_users: Dict[Path, int] = {}
        self._in_flight: Set[Path] = set()
        self.generation_attempts = 0

    def _lock_for(self, path: Path) -> asyncio.Lock:
        lock = self._locks.get(path)
        if lock is None:
            lock = self._locks[path] = asyncio.Lock()
        return lock

    def _release_user(self, path: Path) -> None:
        remaining = self._lock_users[path] - 1
        if remaining:
            self._lock_users[path] = remaining
        else:
            # nobody holds or waits on it any more
            del self._lock_users[path]
            del self._locks[path]

    async def ensure(self, path: PathLike) -> ArtifactStatus:
        path = Path(path)
        if await aiofiles.os.path.exists(path):
            return ArtifactStatus.READY

        lock = self._lock_for(path)
        if lock.locked() and not self._wait_for_inflight:
            logger.debug(f"Generation of {path.name} in flight, not waiting")
            return ArtifactStatus.UNAVAILABLE

        self._lock_users[path] = self._lock_users.get(path, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self._wait_timeout)
            except asyncio.TimeoutError:
                logger.info(f"⏳ Still generating {path.name} after {self._wait_timeout}s, asking client to retry")
                return ArtifactStatus.UNAVAILABLE

            try:
                if not await aiofiles.os.path.exists(path):
                    await self._generate(path)
            finally:
                lock.release()
        finally:
            self._release_user(path)

        if await aiofiles.os.path.exists(path):
            return ArtifactStatus.READY
        return ArtifactStatus.UNAVAILABLE

    async def _generate(self, path: Path) -> None:
        self._in_flight.add(path)
        self.generation_attempts += 1
        logger.info(f"🛠️  {path.name} missing, generating...")
        try:
            await self._generator.generate(path)
        except Exception as e:
            notifier.log_error(
                f"Failed to generate {path.name} on demand.",
                e,
                notifier.HOMEPAGE_INIT_FAIL,
                level=logging.WARNING,
            )
        finally:
            self._in_flight.discard(path)

    def record(self, path: PathLike) -> ArtifactRecord:
        path = Path(path)
        return ArtifactRecord(
            path=path,
            exists=path.exists(),
            generation_in_progress=path in self._in_flight,
        )
