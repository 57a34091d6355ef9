"""
Pages Watcher
=============

Polls the published pages directory and notifies callbacks when a page is
added, changed or removed (for example by an editor dropping files in by
hand). The service uses it to rebuild the homepage index.

Features:
- Polling with debouncing (a file must stop changing before it is reported)
- Batched notifications: one callback call per settled scan
- Callback failures are logged and isolated

Usage:
    watcher = PagesWatcher(pages_dir, interval=5.0)
    watcher.register_callback(on_pages_changed)
    await watcher.start()
    # ... later ...
    await watcher.stop()
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterable, List, Set

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[List[Path]], Awaitable[None]]


class PagesWatcher:
    def __init__(
        self,
        watch_dir: Path,
        interval: float = 5.0,
        debounce_seconds: float = 1.0,
        patterns: Iterable[str] = ("*.html",),
        ignore: Iterable[str] = ("index.html",),
    ):
        self.watch_dir = Path(watch_dir)
        self.interval = interval
        self.debounce_seconds = debounce_seconds
        self.patterns = tuple(patterns)
        self.ignore: Set[str] = set(ignore)
        self._running = False
        self._watch_task = None
        self._known: Dict[str, float] = {}  # path -> mtime already reported
        self._pending: Dict[str, float] = {}  # path -> mtime seen, not yet settled
        self._callbacks: List[ChangeCallback] = []

    @property
    def running(self) -> bool:
        return self._running

    def register_callback(self, callback: ChangeCallback) -> None:
        self._callbacks.append(callback)

    async def start(self) -> None:
        if self._running:
            logger.warning("[PagesWatcher] Already running")
            return

        self.watch_dir.mkdir(parents=True, exist_ok=True)
        # Baseline: files present at start are not changes
        self._known = self._snapshot()

        self._running = True
        self._watch_task = asyncio.create_task(self._watch_loop(), name="pages_watcher")
        logger.info(f"[PagesWatcher] Started watching: {self.watch_dir}")

    async def stop(self) -> None:
        self._running = False
        if self._watch_task:
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass
            self._watch_task = None
        logger.info("[PagesWatcher] Stopped")

    async def _watch_loop(self) -> None:
        while self._running:
            try:
                await self.scan()
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"[PagesWatcher] Watch loop error: {e}")
                await asyncio.sleep(self.interval * 2)

    def _snapshot(self) -> Dict[str, float]:
        current: Dict[str, float] = {}
        if not self.watch_dir.exists():
            return current
        for pattern in self.patterns:
            for path in self.watch_dir.glob(pattern):
                if path.name in self.ignore or path.name.startswith("."):
                    continue
                try:
                    current[str(path)] = path.stat().st_mtime
                except FileNotFoundError:
                    continue
        return current

    async def scan(self) -> List[Path]:
        """Run one poll. Returns the settled changes that were reported."""
        current = self._snapshot()
        now = time.time()
        settled: List[Path] = []

        for path_str, mtime in current.items():
            if self._known.get(path_str) == mtime:
                self._pending.pop(path_str, None)
                continue
            if self._pending.get(path_str) != mtime:
                # New or still being written
                self._pending[path_str] = mtime
                if (now - mtime) < self.debounce_seconds:
                    continue
            elif (now - mtime) < self.debounce_seconds:
                continue
            self._known[path_str] = mtime
            self._pending.pop(path_str, None)
            settled.append(Path(path_str))

        for path_str in set(self._known) - set(current):
            del self._known[path_str]
            self._pending.pop(path_str, None)
            settled.append(Path(path_str))

        if settled:
            logger.info(f"[PagesWatcher] {len(settled)} page(s) changed")
            await self._notify(settled)
        return settled

    async def _notify(self, changed: List[Path]) -> None:
        for callback in self._callbacks:
            try:
                await callback(changed)
            except Exception as e:
                logger.error(f"[PagesWatcher] Callback error: {e}")
