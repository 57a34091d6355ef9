"""
Publish Scheduler
=================

Runs recurring background jobs on the service's event loop. Each job runs
in its own task; a job that raises is logged and retried on its next tick,
it never takes the loop or request handling down with it.

Usage:
    scheduler = PublishScheduler()
    scheduler.register_job("homepage_refresh", 300.0, refresh_homepage)
    await scheduler.setup_and_start()   # idempotent
    ...
    await scheduler.stop()
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Awaitable[Any]]


@dataclass
class ScheduledJob:
    name: str
    interval: float
    func: JobFunc
    run_immediately: bool = False
    runs: int = 0
    failures: int = 0
    last_run: Optional[float] = None
    last_error: Optional[str] = None
    task: Optional[asyncio.Task] = field(default=None, repr=False)


class PublishScheduler:
    def __init__(self):
        self._jobs: Dict[str, ScheduledJob] = {}
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def register_job(self, name: str, interval: float, func: JobFunc, run_immediately: bool = False) -> None:
        if self._running:
            raise RuntimeError("cannot register jobs after the scheduler has started")
        if interval <= 0:
            raise ValueError(f"job interval must be positive, got {interval}")
        self._jobs[name] = ScheduledJob(name=name, interval=interval, func=func, run_immediately=run_immediately)

    async def setup_and_start(self) -> None:
        if self._running:
            logger.debug("[Scheduler] Already running")
            return
        self._running = True
        for job in self._jobs.values():
            job.task = asyncio.create_task(self._job_loop(job), name=f"job:{job.name}")
        logger.info(f"[Scheduler] Started {len(self._jobs)} job(s): {', '.join(self._jobs) or 'none'}")

    async def stop(self) -> None:
        self._running = False
        tasks = [job.task for job in self._jobs.values() if job.task is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for job in self._jobs.values():
            job.task = None
        logger.info("[Scheduler] Stopped")

    async def _job_loop(self, job: ScheduledJob) -> None:
        if not job.run_immediately:
            await asyncio.sleep(job.interval)
        while self._running:
            await self._run_once(job)
            await asyncio.sleep(job.interval)

    async def _run_once(self, job: ScheduledJob) -> None:
        start = time.monotonic()
        try:
            await job.func()
            job.last_error = None
        except asyncio.CancelledError:
            raise
        except Exception as e:
            job.failures += 1
            job.last_error = str(e)
            logger.error(f"[Scheduler] Job {job.name} failed: {e}")
        finally:
            job.runs += 1
            job.last_run = time.time()
        logger.debug(f"[Scheduler] Job {job.name} took {(time.monotonic() - start) * 1000:.0f}ms")

    def get_status(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": job.name,
                "interval": job.interval,
                "runs": job.runs,
                "failures": job.failures,
                "last_run": job.last_run,
                "last_error": job.last_error,
            }
            for job in self._jobs.values()
        ]
