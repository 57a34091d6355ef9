"""Tests for on-demand homepage generation."""

import asyncio
import logging

import pytest

from sopen.core.artifact_guard import ArtifactGuard, ArtifactStatus


class CountingGenerator:
    def __init__(self, delay: float = 0.0, fail: bool = False, write: bool = True):
        self.calls = 0
        self.delay = delay
        self.fail = fail
        self.write = write

    async def generate(self, target_path):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("template missing")
        if self.write:
            target_path.write_text("<h1>home</h1>")


@pytest.mark.asyncio
async def test_present_artifact_is_never_regenerated(tmp_path):
    target = tmp_path / "index.html"
    target.write_text("existing")
    generator = CountingGenerator()
    guard = ArtifactGuard(generator)

    assert await guard.ensure(target) is ArtifactStatus.READY
    assert generator.calls == 0
    assert target.read_text() == "existing"


@pytest.mark.asyncio
async def test_concurrent_first_requests_generate_once(tmp_path):
    target = tmp_path / "index.html"
    generator = CountingGenerator(delay=0.05)
    guard = ArtifactGuard(generator, wait_timeout=2.0)

    results = await asyncio.gather(*(guard.ensure(target) for _ in range(10)))

    assert results == [ArtifactStatus.READY] * 10
    assert generator.calls == 1
    assert guard.generation_attempts == 1


@pytest.mark.asyncio
async def test_generation_failure_is_logged_not_raised(tmp_path, coded):
    generator = CountingGenerator(fail=True)
    guard = ArtifactGuard(generator)

    status = await guard.ensure(tmp_path / "index.html")

    assert status is ArtifactStatus.UNAVAILABLE
    (record,) = coded("HOMEPAGE_INIT_FAIL")
    assert record.levelno == logging.WARNING
    assert "template missing" in record.getMessage()


@pytest.mark.asyncio
async def test_generator_that_writes_nothing_yields_unavailable(tmp_path):
    guard = ArtifactGuard(CountingGenerator(write=False))
    assert await guard.ensure(tmp_path / "index.html") is ArtifactStatus.UNAVAILABLE


@pytest.mark.asyncio
async def test_no_wait_mode_reports_unavailable_while_in_flight(tmp_path):
    target = tmp_path / "index.html"
    generator = CountingGenerator(delay=0.1)
    guard = ArtifactGuard(generator, wait_for_inflight=False)

    first = asyncio.create_task(guard.ensure(target))
    await asyncio.sleep(0.02)
    second = await guard.ensure(target)

    assert second is ArtifactStatus.UNAVAILABLE
    assert await first is ArtifactStatus.READY
    assert generator.calls == 1


@pytest.mark.asyncio
async def test_waiter_gives_up_after_timeout(tmp_path):
    target = tmp_path / "index.html"
    generator = CountingGenerator(delay=0.3)
    guard = ArtifactGuard(generator, wait_timeout=0.05)

    first = asyncio.create_task(guard.ensure(target))
    await asyncio.sleep(0.02)
    assert guard.record(target).generation_in_progress is True

    assert await guard.ensure(target) is ArtifactStatus.UNAVAILABLE
    assert await first is ArtifactStatus.READY
    assert generator.calls == 1


@pytest.mark.asyncio
async def test_retry_after_failure_generates_again(tmp_path):
    target = tmp_path / "index.html"
    generator = CountingGenerator(fail=True)
    guard = ArtifactGuard(generator)

    assert await guard.ensure(target) is ArtifactStatus.UNAVAILABLE
    generator.fail = False
    assert await guard.ensure(target) is ArtifactStatus.READY
    assert generator.calls == 2


@pytest.mark.asyncio
async def test_locks_are_dropped_once_idle(tmp_path):
    generator = CountingGenerator(delay=0.05)
    guard = ArtifactGuard(generator, wait_timeout=0.01)
    targets = [tmp_path / f"page-{i}.html" for i in range(5)]

    await asyncio.gather(*(guard.ensure(t) for t in targets), guard.ensure(targets[0]))

    assert generator.calls == 5
    assert guard._locks == {}
    assert guard._lock_users == {}
