"""
Sopen Boot Sequencer
====================

Runs the ordered startup of the service and hands a single immutable
``ServiceContext`` to the HTTP layer.

    1. config sanity check              advisory  CONFIG_CHECK_FAIL
    2. auth provider                    advisory  FIREBASE_*
    3. CONNECTING_PRIMARY   datastore   fatal     DB_CONNECT / SERVER_FAIL
    4. CONNECTING_AUXILIARY cache       advisory  REDIS_INIT_NON_CRITICAL
                            queue       advisory  MQ_INIT_NON_CRITICAL / RABBITMQ_DISABLED
                            publish mode selected and announced
    5. MOUNTING_ROUTES      static mounts, route groups, context attached
    6. STARTING_BACKGROUND  scheduler + watcher, each isolated
    7. LISTENING            listener bound, "Server running" logged

A fatal failure at any step moves the boot state to FAILED, logs
``SERVER_FAIL`` once and raises ``BootFailure``. Nothing is mounted when the
datastore is unreachable, and the listener never binds.
"""

import logging
import time
from dataclasses import dataclass
from typing import List, Optional

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from sopen.api import admin_router, health_router, page_router, public_router, user_router
from sopen.background.file_watcher import PagesWatcher
from sopen.background.scheduler import PublishScheduler
from sopen.clients.auth_provider import FirebaseAuthProvider
from sopen.clients.cache import Cache
from sopen.clients.datastore import Datastore
from sopen.clients.publish_queue import AmqpPublishQueue
from sopen.config.settings import SopenSettings
from sopen.core import notifier
from sopen.core.artifact_guard import ArtifactGuard
from sopen.core.boot_state import BootPhase, BootState
from sopen.core.dependency_connector import (
    ConnectionStatus,
    Criticality,
    DependencyConnector,
    DependencySpec,
)
from sopen.core.errors import BootFailure, FatalDependencyError
from sopen.core.listener import Listener
from sopen.core.publish_mode import Publisher, PublishMode, select_publish_mode
from sopen.website.generator import HomepageGenerator

logger = logging.getLogger(__name__)

DATASTORE = "datastore"
CACHE = "cache"
QUEUE = "queue"


@dataclass(frozen=True)
class Collaborators:
    """Everything the sequencer talks to. Swapped for fakes in tests."""
    datastore: Datastore
    cache: Optional[Cache]
    queue: Optional[AmqpPublishQueue]
    auth: FirebaseAuthProvider
    generator: HomepageGenerator
    scheduler: PublishScheduler
    watcher: PagesWatcher


@dataclass(frozen=True)
class ServiceContext:
    """Built once during boot, read by request handlers via ``app.state.context``."""
    settings: SopenSettings
    publish_mode: PublishMode
    publisher: Publisher
    connector: DependencyConnector
    datastore: Datastore
    cache: Optional[Cache]
    auth: FirebaseAuthProvider
    generator: HomepageGenerator
    artifact_guard: ArtifactGuard
    booted_at: float

    def cache_available(self) -> bool:
        return self.cache is not None and self.connector.is_available(CACHE)


async def _not_configured() -> None:
    raise RuntimeError("dependency is not configured")


class BootSequencer:
    def __init__(
        self,
        settings: SopenSettings,
        app: FastAPI,
        collaborators: Collaborators,
        listener: Listener,
    ):
        self.settings = settings
        self.app = app
        self.collaborators = collaborators
        self.listener = listener
        self.state = BootState()
        self.context: Optional[ServiceContext] = None
        self.mounted_routes: List[str] = []
        self._publisher: Optional[Publisher] = None
        self.connector = self._build_connector()

    def _build_connector(self) -> DependencyConnector:
        s = self.settings
        c = self.collaborators
        queue_enabled = s.publish_queue_enabled and c.queue is not None
        return DependencyConnector([
            DependencySpec(
                DATASTORE,
                c.datastore.connect,
                Criticality.FATAL,
                timeout=s.datastore_connect_timeout,
                error_code=notifier.DB_CONNECT,
            ),
            DependencySpec(
                CACHE,
                c.cache.connect if c.cache is not None else _not_configured,
                Criticality.ADVISORY,
                enabled=c.cache is not None and s.cache_configured,
                timeout=s.advisory_connect_timeout,
                error_code=notifier.REDIS_INIT_NON_CRITICAL,
                failure_message="Redis connection failed, the server continues with caching disabled.",
                disabled_code=notifier.REDIS_DISABLED,
                disabled_fallback="caching disabled",
            ),
            DependencySpec(
                QUEUE,
                self._connect_queue if c.queue is not None else _not_configured,
                Criticality.ADVISORY,
                enabled=queue_enabled,
                timeout=s.advisory_connect_timeout,
                error_code=notifier.MQ_INIT_NON_CRITICAL,
                failure_message="RabbitMQ connection failed, queued publishing is unavailable.",
                disabled_code=notifier.RABBITMQ_DISABLED,
                disabled_fallback="publishing runs synchronously (Direct Publishing)",
            ),
        ])

    # -------------------------------------------------------------------------
    # Boot
    # -------------------------------------------------------------------------

    async def boot(self) -> ServiceContext:
        """Run steps 1-6. Returns the context; raises ``BootFailure``."""
        notifier.log_success(
            f"Initializing Sopen server ({self.settings.environment})...", notifier.SERVER_INIT
        )
        try:
            self._check_config()
            self.collaborators.auth.initialize()

            self.state.advance(BootPhase.CONNECTING_PRIMARY, DATASTORE)
            await self.connector.connect_fatal(DATASTORE)

            self.state.advance(BootPhase.CONNECTING_AUXILIARY, f"{CACHE}, {QUEUE}")
            publisher = self._start_auxiliary()

            self.state.advance(BootPhase.MOUNTING_ROUTES)
            self.context = self._mount(publisher)

            self.state.advance(BootPhase.STARTING_BACKGROUND)
            await self._start_background()
        except FatalDependencyError as e:
            self._fail(e.dependency, e)
        except Exception as e:
            self._fail(self.state.phase.value, e)
        return self.context

    def _check_config(self) -> None:
        for warning in self.settings.sanity_warnings():
            notifier.log_error(warning, None, notifier.CONFIG_CHECK_FAIL, level=logging.WARNING)

    def _start_auxiliary(self) -> Publisher:
        c = self.collaborators
        mode = select_publish_mode(self.connector.spec(QUEUE).enabled)
        publisher = Publisher(mode, c.generator.publish, queue=c.queue if mode is PublishMode.QUEUED else None)
        self._publisher = publisher

        self.connector.dispatch_advisory(CACHE, on_complete=self._record_advisory)
        self.connector.dispatch_advisory(QUEUE, on_complete=self._record_advisory)
        publisher.announce()
        return publisher

    async def _connect_queue(self) -> None:
        queue = self.collaborators.queue
        await queue.connect()
        await queue.start_consumer(self._publisher.handle_queued)

    def _record_advisory(self, outcome) -> None:
        if outcome.status is ConnectionStatus.FAILED and not self.state.is_terminal:
            self.state.record_error(outcome.name, outcome.error)

    def _mount(self, publisher: Publisher) -> ServiceContext:
        s = self.settings
        c = self.collaborators
        s.assets_dir.mkdir(parents=True, exist_ok=True)
        s.pages_dir.mkdir(parents=True, exist_ok=True)

        context = ServiceContext(
            settings=s,
            publish_mode=publisher.mode,
            publisher=publisher,
            connector=self.connector,
            datastore=c.datastore,
            cache=c.cache,
            auth=c.auth,
            generator=c.generator,
            artifact_guard=ArtifactGuard(c.generator, wait_timeout=s.artifact_wait_timeout),
            booted_at=time.time(),
        )
        self.app.state.context = context

        self.app.mount("/assets", StaticFiles(directory=s.assets_dir), name="assets")
        self.app.mount("/pages", StaticFiles(directory=s.pages_dir, html=True), name="pages")
        self.app.include_router(public_router, prefix="/api")
        self.app.include_router(user_router, prefix="/api")
        self.app.include_router(admin_router, prefix="/api/admin")
        self.app.include_router(health_router)
        self.app.include_router(page_router)

        self.mounted_routes = [getattr(route, "path", "") for route in self.app.routes]
        logger.info(f"🧭 Mounted {len(self.mounted_routes)} routes")
        return context

    async def _start_background(self) -> None:
        c = self.collaborators
        try:
            await c.scheduler.setup_and_start()
        except Exception as e:
            self.state.record_error("scheduler", e)
            notifier.log_error("Publish scheduler failed to start.", e, notifier.SCHEDULER_START_FAIL,
                               level=logging.WARNING)
        try:
            await c.watcher.start()
        except Exception as e:
            self.state.record_error("watcher", e)
            notifier.log_error("Pages watcher failed to start.", e, notifier.WATCHER_START_FAIL,
                               level=logging.WARNING)

    def _fail(self, name: str, error: BaseException) -> None:
        phase = self.state.phase.value
        if self.state.phase is not BootPhase.FAILED:
            self.state.fail(name, error)
        notifier.log_error("Critical failure while starting the server.", error, notifier.SERVER_FAIL)
        raise BootFailure(phase, error) from error

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    async def run(self) -> None:
        """Boot, listen until shutdown, then release everything."""
        try:
            await self.boot()
            try:
                await self.listener.serve(self.app, self.settings.host, self.settings.port, self._on_listening)
            except Exception as e:
                self._fail("listener", e)
        finally:
            await self.shutdown()

    def _on_listening(self) -> None:
        self.state.advance(BootPhase.LISTENING, f"port {self.settings.port}")
        notifier.log_success(
            f"🚀 Server running on {self.settings.hostname} port {self.settings.port} "
            f"(boot took {self.state.elapsed_ms:.0f}ms)",
            notifier.SERVER,
        )

        c = self.collaborators
        logger.info(
            f"   Scheduler: {'active' if c.scheduler.running else 'inactive'}, "
            f"pages watcher: {'active' if c.watcher.running else 'inactive'}"
        )
        logger.info(f"   Publish mode: {self.context.publish_mode.value.upper()}")

        cache = self.connector.outcome(CACHE)
        status = cache.status if cache is not None else ConnectionStatus.DISABLED
        if status is ConnectionStatus.CONNECTED:
            logger.info("   Cache: active")
        elif status is ConnectionStatus.PENDING:
            logger.info("   Cache: connection still pending")
        elif status is ConnectionStatus.DISABLED:
            logger.info("   Cache: disabled")
        else:
            notifier.log_notice("Redis cache is inactive after a failed connect, caching disabled.",
                                notifier.REDIS_DISABLED)

    async def shutdown(self) -> None:
        c = self.collaborators
        steps = [
            ("watcher", c.watcher.stop),
            ("scheduler", c.scheduler.stop),
            ("advisory connects", self.connector.cancel_pending),
        ]
        if c.queue is not None:
            steps.append(("queue", c.queue.close))
        if c.cache is not None:
            steps.append(("cache", c.cache.close))
        steps.append(("datastore", c.datastore.close))

        for name, step in steps:
            try:
                await step()
            except Exception as e:
                logger.warning(f"Error stopping {name}: {e}")
        logger.info("👋 Sopen stopped")
