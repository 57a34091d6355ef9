"""
Centralized Configuration for the Sopen Service
===============================================

Single source of truth for every value the boot orchestrator reads from the
environment. Values are loaded at instantiation time; invalid values log a
warning and fall back to defaults (never crash on bad config).

Environment Variables:
----------------------

### Network
- PORT / SOPEN_PORT: Listener port; PORT wins when both are set (default: 3000)
- SOPEN_HOST: Interface the listener binds to (default: 0.0.0.0)
- SOPEN_HOSTNAME: Public hostname used in log lines (default: localhost)

### Dependencies
- MONGODB_URI: Primary datastore URI (default: mongodb://localhost:27017/sopen)
- REDIS_URL: Cache URI; empty disables the cache (default: redis://localhost:6379/0)
- RABBITMQ_URI: Publish queue URI (default: empty)
- SOPEN_QUEUE_ENABLED: Enables the queued publish pipeline (default: false)

### Environment
- SOPEN_ENV / NODE_ENV: Environment designation (default: development)
- FIREBASE_CONFIG_JSON: Auth provider credential blob (default: empty)

### Timeouts
- SOPEN_DATASTORE_CONNECT_TIMEOUT: Fatal datastore connect bound (default: 10.0s)
- SOPEN_ADVISORY_CONNECT_TIMEOUT: Cache/queue connect bound (default: 5.0s)
- SOPEN_ARTIFACT_WAIT_TIMEOUT: Max wait on an in-flight homepage generation (default: 15.0s)

### Background
- SOPEN_HOMEPAGE_REFRESH_INTERVAL: Scheduler homepage refresh period (default: 300.0s)
- SOPEN_WATCH_INTERVAL: Pages watcher poll period (default: 5.0s)
- SOPEN_WEBSITE_DIR: Root of the ``pages``/``assets`` tree

Usage:
    from sopen.config import get_settings

    settings = get_settings()
    await asyncio.wait_for(datastore.connect(), settings.datastore_connect_timeout)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from sopen.core.secure_logging import mask_sensitive, mask_uri
from sopen.utils.env_config import get_env_bool, get_env_float, get_env_int, get_env_str

logger = logging.getLogger(__name__)


# =============================================================================
# DEFAULT VALUES
# =============================================================================

_DEFAULT_PORT = 3000
_DEFAULT_HOST = "0.0.0.0"
_DEFAULT_HOSTNAME = "localhost"
_DEFAULT_DATASTORE_URI = "mongodb://localhost:27017/sopen"
_DEFAULT_REDIS_URL = "redis://localhost:6379/0"
_DEFAULT_ENVIRONMENT = "development"

_DEFAULT_DATASTORE_CONNECT_TIMEOUT = 10.0
_DEFAULT_ADVISORY_CONNECT_TIMEOUT = 5.0
_DEFAULT_ARTIFACT_WAIT_TIMEOUT = 15.0

_DEFAULT_HOMEPAGE_REFRESH_INTERVAL = 300.0
_DEFAULT_WATCH_INTERVAL = 5.0

_DEFAULT_WEBSITE_DIR = Path(__file__).resolve().parent.parent / "website"

_LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1", "0.0.0.0")


@dataclass
class SopenSettings:
    """
    Process configuration, loaded once at startup.

    Example:
        settings = SopenSettings()
        print(settings.port, settings.publish_queue_enabled)
    """

    # -------------------------------------------------------------------------
    # Network
    # -------------------------------------------------------------------------

    port: int = field(default_factory=lambda: get_env_int(
        "PORT", _DEFAULT_PORT, min_val=1, max_val=65535, fallbacks=("SOPEN_PORT",)
    ))
    host: str = field(default_factory=lambda: get_env_str("SOPEN_HOST", _DEFAULT_HOST))
    hostname: str = field(default_factory=lambda: get_env_str("SOPEN_HOSTNAME", _DEFAULT_HOSTNAME))

    # -------------------------------------------------------------------------
    # Dependencies
    # -------------------------------------------------------------------------

    datastore_uri: str = field(default_factory=lambda: get_env_str("MONGODB_URI", _DEFAULT_DATASTORE_URI))
    redis_url: str = field(default_factory=lambda: get_env_str("REDIS_URL", _DEFAULT_REDIS_URL))
    queue_uri: str = field(default_factory=lambda: get_env_str("RABBITMQ_URI", ""))
    queue_enabled: bool = field(default_factory=lambda: get_env_bool("SOPEN_QUEUE_ENABLED", False))
    """Administrative switch for the broker; a configured URI alone does not enable it."""

    # -------------------------------------------------------------------------
    # Environment
    # -------------------------------------------------------------------------

    environment: str = field(default_factory=lambda: get_env_str(
        "SOPEN_ENV", _DEFAULT_ENVIRONMENT, fallbacks=("NODE_ENV",)
    ).lower())
    firebase_config_json: str = field(default_factory=lambda: get_env_str("FIREBASE_CONFIG_JSON", ""))

    # -------------------------------------------------------------------------
    # Timeouts
    # -------------------------------------------------------------------------

    datastore_connect_timeout: float = field(default_factory=lambda: get_env_float(
        "SOPEN_DATASTORE_CONNECT_TIMEOUT", _DEFAULT_DATASTORE_CONNECT_TIMEOUT, min_val=0.1
    ))
    advisory_connect_timeout: float = field(default_factory=lambda: get_env_float(
        "SOPEN_ADVISORY_CONNECT_TIMEOUT", _DEFAULT_ADVISORY_CONNECT_TIMEOUT, min_val=0.1
    ))
    artifact_wait_timeout: float = field(default_factory=lambda: get_env_float(
        "SOPEN_ARTIFACT_WAIT_TIMEOUT", _DEFAULT_ARTIFACT_WAIT_TIMEOUT, min_val=0.1
    ))

    # -------------------------------------------------------------------------
    # Background processes
    # -------------------------------------------------------------------------

    homepage_refresh_interval: float = field(default_factory=lambda: get_env_float(
        "SOPEN_HOMEPAGE_REFRESH_INTERVAL", _DEFAULT_HOMEPAGE_REFRESH_INTERVAL, min_val=1.0
    ))
    watch_interval: float = field(default_factory=lambda: get_env_float(
        "SOPEN_WATCH_INTERVAL", _DEFAULT_WATCH_INTERVAL, min_val=0.1
    ))
    website_dir: Path = field(default_factory=lambda: Path(
        get_env_str("SOPEN_WEBSITE_DIR", str(_DEFAULT_WEBSITE_DIR))
    ))

    # -------------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------------

    @property
    def pages_dir(self) -> Path:
        return self.website_dir / "pages"

    @property
    def assets_dir(self) -> Path:
        return self.website_dir / "assets"

    @property
    def homepage_path(self) -> Path:
        return self.pages_dir / "index.html"

    @property
    def dashboard_path(self) -> Path:
        return self.pages_dir / "dashboard.html"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def cache_configured(self) -> bool:
        return bool(self.redis_url)

    @property
    def publish_queue_enabled(self) -> bool:
        """The queue runs only when switched on AND a broker URI exists."""
        return self.queue_enabled and bool(self.queue_uri)

    def datastore_is_local(self) -> bool:
        try:
            host = urlsplit(self.datastore_uri).hostname or ""
        except ValueError:
            return False
        return host in _LOCAL_HOSTS or "localhost" in self.datastore_uri

    def sanity_warnings(self) -> list[str]:
        """Advisory configuration problems. Never blocks boot."""
        warnings = []
        if self.is_production and self.datastore_is_local():
            warnings.append(
                f"Production environment is using a local datastore address "
                f"({mask_uri(self.datastore_uri)}). Check your .env file."
            )
        if self.queue_enabled and not self.queue_uri:
            warnings.append("SOPEN_QUEUE_ENABLED is set but RABBITMQ_URI is empty; queue stays disabled.")
        return warnings

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view with credentials masked."""
        return {
            "port": self.port,
            "host": self.host,
            "hostname": self.hostname,
            "environment": self.environment,
            "datastore_uri": mask_uri(self.datastore_uri),
            "redis_url": mask_uri(self.redis_url),
            "queue_uri": mask_uri(self.queue_uri),
            "queue_enabled": self.queue_enabled,
            "firebase_config": mask_sensitive(self.firebase_config_json) if self.firebase_config_json else "",
            "datastore_connect_timeout": self.datastore_connect_timeout,
            "advisory_connect_timeout": self.advisory_connect_timeout,
            "artifact_wait_timeout": self.artifact_wait_timeout,
            "homepage_refresh_interval": self.homepage_refresh_interval,
            "watch_interval": self.watch_interval,
            "website_dir": str(self.website_dir),
        }


# =============================================================================
# MODULE-LEVEL ACCESSORS
# =============================================================================

_settings: Optional[SopenSettings] = None


def get_settings() -> SopenSettings:
    """Return the process settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = SopenSettings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next access re-reads the environment."""
    global _settings
    _settings = None
