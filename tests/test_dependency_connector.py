"""Tests for fatal/advisory/disabled dependency handling."""

import asyncio
import logging

import pytest

from sopen.core.dependency_connector import (
    ConnectionStatus,
    Criticality,
    DependencyConnector,
    DependencySpec,
)
from sopen.core.errors import FatalDependencyError


def _ok():
    calls = []

    async def connect():
        calls.append(1)

    return connect, calls


async def _refuse():
    raise ConnectionError("refused")


def test_duplicate_names_are_rejected():
    connect, _ = _ok()
    with pytest.raises(ValueError):
        DependencyConnector([
            DependencySpec("db", connect, Criticality.FATAL),
            DependencySpec("db", connect, Criticality.ADVISORY),
        ])


@pytest.mark.asyncio
async def test_fatal_success_records_outcome(coded):
    connect, calls = _ok()
    connector = DependencyConnector([
        DependencySpec("datastore", connect, Criticality.FATAL, timeout=1.0, error_code="DB_CONNECT"),
    ])

    outcome = await connector.connect_fatal("datastore")

    assert outcome.status is ConnectionStatus.CONNECTED
    assert calls == [1]
    assert connector.is_available("datastore")
    assert len(coded("DB_CONNECT")) == 1


@pytest.mark.asyncio
async def test_fatal_failure_raises():
    connector = DependencyConnector([DependencySpec("datastore", _refuse, Criticality.FATAL)])

    with pytest.raises(FatalDependencyError) as exc_info:
        await connector.connect_fatal("datastore")

    assert exc_info.value.dependency == "datastore"
    assert isinstance(exc_info.value.cause, ConnectionError)
    assert connector.outcome("datastore").status is ConnectionStatus.FAILED


@pytest.mark.asyncio
async def test_fatal_timeout_raises():
    async def hang():
        await asyncio.sleep(10)

    connector = DependencyConnector([DependencySpec("datastore", hang, Criticality.FATAL, timeout=0.05)])

    with pytest.raises(FatalDependencyError) as exc_info:
        await connector.connect_fatal("datastore")

    assert isinstance(exc_info.value.cause, asyncio.TimeoutError)


@pytest.mark.asyncio
async def test_advisory_dispatch_returns_before_connect_completes():
    gate = asyncio.Event()

    async def slow():
        await gate.wait()

    connector = DependencyConnector([DependencySpec("cache", slow, Criticality.ADVISORY)])

    task = connector.dispatch_advisory("cache")

    assert task is not None and not task.done()
    assert connector.outcome("cache").status is ConnectionStatus.PENDING
    gate.set()
    await connector.drain(timeout=1.0)
    assert connector.is_available("cache")


@pytest.mark.asyncio
async def test_advisory_failure_logs_warning_with_code(coded):
    seen = []
    connector = DependencyConnector([
        DependencySpec("cache", _refuse, Criticality.ADVISORY, error_code="REDIS_INIT_NON_CRITICAL",
                       failure_message="Redis connection failed."),
    ])

    connector.dispatch_advisory("cache", on_complete=seen.append)
    await connector.drain(timeout=1.0)

    (record,) = coded("REDIS_INIT_NON_CRITICAL")
    assert record.levelno == logging.WARNING
    assert "ConnectionError" in record.getMessage()
    assert seen[0].status is ConnectionStatus.FAILED
    assert not connector.is_available("cache")


@pytest.mark.asyncio
async def test_disabled_dependency_never_connects(coded):
    connect, calls = _ok()
    connector = DependencyConnector([
        DependencySpec("queue", connect, Criticality.ADVISORY, enabled=False,
                       disabled_code="RABBITMQ_DISABLED", disabled_fallback="direct publishing"),
    ])

    task = connector.dispatch_advisory("queue")

    assert task is None
    assert calls == []
    assert connector.outcome("queue").status is ConnectionStatus.DISABLED
    (notice,) = coded("RABBITMQ_DISABLED")
    assert "direct publishing" in notice.getMessage()
    assert notice.event_kind == "NOTICE"


@pytest.mark.asyncio
async def test_wrong_path_for_criticality_is_rejected():
    connect, _ = _ok()
    connector = DependencyConnector([
        DependencySpec("datastore", connect, Criticality.FATAL),
        DependencySpec("cache", connect, Criticality.ADVISORY),
    ])

    with pytest.raises(ValueError):
        connector.dispatch_advisory("datastore")
    with pytest.raises(ValueError):
        await connector.connect_fatal("cache")


@pytest.mark.asyncio
async def test_cancel_pending_marks_failed():
    async def hang():
        await asyncio.sleep(10)

    connector = DependencyConnector([DependencySpec("cache", hang, Criticality.ADVISORY)])
    connector.dispatch_advisory("cache")

    await connector.cancel_pending()
    await asyncio.sleep(0)

    assert connector.pending() == []
    assert connector.outcome("cache").status is ConnectionStatus.FAILED
