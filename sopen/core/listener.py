"""
HTTP listener (uvicorn, in-process).

``serve()`` starts uvicorn as a task on the running loop, waits until the
socket is bound, invokes ``on_bound`` once, then blocks until the server
exits (signal or ``stop()``). A bind failure surfaces as ``OSError`` before
``on_bound`` is ever called.

SIGINT/SIGTERM only ask the server to exit. uvicorn's own capture re-raises
the signal after shutdown, which would kill the process before collaborators
are released and the exit status is returned.
"""

import asyncio
import contextlib
import logging
import signal
import time
from typing import Callable, Generator, Optional, Protocol

import uvicorn
from fastapi import FastAPI

logger = logging.getLogger(__name__)

OnBound = Callable[[], None]

STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class Listener(Protocol):
    async def serve(self, app: FastAPI, host: str, port: int, on_bound: OnBound) -> None: ...


class GracefulServer(uvicorn.Server):
    """uvicorn.Server whose stop signals end ``serve()`` normally."""

    @contextlib.contextmanager
    def capture_signals(self) -> Generator[None, None, None]:
        loop = asyncio.get_running_loop()
        installed = []
        for sig in STOP_SIGNALS:
            try:
                loop.add_signal_handler(sig, self._request_exit, sig)
            except (NotImplementedError, RuntimeError, ValueError):
                # not the main thread, or no loop signal support
                continue
            installed.append(sig)
        try:
            yield
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)

    def _request_exit(self, sig: int) -> None:
        name = signal.Signals(sig).name
        if self.should_exit and sig == signal.SIGINT:
            logger.warning(f"🛑 Received {name} again, forcing exit")
            self.force_exit = True
        else:
            logger.info(f"🛑 Received {name}, shutting down gracefully...")
            self.should_exit = True


class UvicornListener:
    def __init__(self, ready_timeout: float = 30.0, log_level: str = "warning"):
        self._ready_timeout = ready_timeout
        self._log_level = log_level
        self._server: Optional[uvicorn.Server] = None

    async def serve(self, app: FastAPI, host: str, port: int, on_bound: OnBound) -> None:
        config = uvicorn.Config(
            app,
            host=host,
            port=port,
            log_level=self._log_level,
            log_config=None,
            access_log=False,
        )
        self._server = GracefulServer(config)

        async def _serve() -> None:
            try:
                await self._server.serve()
            except SystemExit as e:
                # uvicorn calls sys.exit(1) when it cannot bind
                raise OSError(f"could not bind {host}:{port}") from e

        server_task = asyncio.create_task(_serve(), name="uvicorn-server")

        start_wait = time.monotonic()
        while not self._server.started:
            if server_task.done():
                exc = server_task.exception()
                if exc:
                    raise exc
                raise RuntimeError("Server task completed without starting")
            if time.monotonic() - start_wait > self._ready_timeout:
                self._server.should_exit = True
                await asyncio.gather(server_task, return_exceptions=True)
                raise TimeoutError(f"Server did not bind {host}:{port} within {self._ready_timeout}s")
            await asyncio.sleep(0.05)

        on_bound()
        await server_task

    def stop(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
