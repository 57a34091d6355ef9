#!/usr/bin/env python3
"""
Sopen server entry point.

    python -m sopen.main [--port PORT] [--host HOST]
    sopen-server [--port PORT] [--host HOST]

Exit status: 0 after a graceful shutdown, 1 when boot fails.
"""

import argparse
import asyncio
import dataclasses
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI

from sopen import __version__
from sopen.background.file_watcher import PagesWatcher
from sopen.background.scheduler import PublishScheduler
from sopen.clients.auth_provider import FirebaseAuthProvider
from sopen.clients.cache import RedisCache
from sopen.clients.datastore import MongoDatastore
from sopen.clients.publish_queue import AmqpPublishQueue
from sopen.config.settings import SopenSettings, get_settings
from sopen.core.boot_sequencer import BootSequencer, Collaborators
from sopen.core.errors import BootFailure
from sopen.core.listener import Listener, UvicornListener
from sopen.logging_config import configure_logging
from sopen.website.generator import HomepageGenerator

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    # Routes are added by the boot sequencer, not here
    return FastAPI(title="Sopen", version=__version__)


def build_collaborators(settings: SopenSettings) -> Collaborators:
    generator = HomepageGenerator(settings.pages_dir)

    async def refresh_homepage() -> None:
        await generator.generate(settings.homepage_path)

    async def on_pages_changed(changed: List[Path]) -> None:
        await refresh_homepage()

    scheduler = PublishScheduler()
    scheduler.register_job("homepage_refresh", settings.homepage_refresh_interval, refresh_homepage)

    watcher = PagesWatcher(settings.pages_dir, interval=settings.watch_interval)
    watcher.register_callback(on_pages_changed)

    return Collaborators(
        datastore=MongoDatastore(settings.datastore_uri, server_selection_timeout=settings.datastore_connect_timeout),
        cache=RedisCache(settings.redis_url, connect_timeout=settings.advisory_connect_timeout)
        if settings.cache_configured else None,
        queue=AmqpPublishQueue(settings.queue_uri) if settings.publish_queue_enabled else None,
        auth=FirebaseAuthProvider(settings.firebase_config_json),
        generator=generator,
        scheduler=scheduler,
        watcher=watcher,
    )


async def serve(
    settings: Optional[SopenSettings] = None,
    collaborators: Optional[Collaborators] = None,
    listener: Optional[Listener] = None,
    app: Optional[FastAPI] = None,
) -> int:
    """Boot and serve until shutdown. Returns the process exit status."""
    settings = settings or get_settings()
    sequencer = BootSequencer(
        settings,
        app if app is not None else create_app(),
        collaborators if collaborators is not None else build_collaborators(settings),
        listener if listener is not None else UvicornListener(),
    )
    try:
        await sequencer.run()
    except BootFailure as e:
        logger.debug(f"Exiting after boot failure: {e}")
        return e.exit_code
    return 0


def run(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    configure_logging()

    parser = argparse.ArgumentParser(description="Sopen server")
    parser.add_argument("--port", type=int, default=None, help="Port to listen on (overrides PORT)")
    parser.add_argument("--host", default=None, help="Interface to bind (overrides SOPEN_HOST)")
    args = parser.parse_args(argv)

    settings = get_settings()
    overrides = {k: v for k, v in (("port", args.port), ("host", args.host)) if v is not None}
    if overrides:
        settings = dataclasses.replace(settings, **overrides)

    try:
        return asyncio.run(serve(settings))
    except KeyboardInterrupt:
        return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
