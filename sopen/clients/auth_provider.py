"""
Auth provider (Firebase Admin SDK).

Initialized from the JSON service-account blob in ``FIREBASE_CONFIG_JSON``.
Missing blob: auth features are disabled. Malformed blob: logged as an
error for the auth subsystem, boot continues. Either way the authenticated
route groups answer 503 instead of crashing.
"""

import asyncio
import json
import logging
import threading
from enum import Enum
from typing import Any, Dict, Optional

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials

from sopen.core import notifier

logger = logging.getLogger(__name__)


class AuthStatus(Enum):
    ENABLED = "enabled"
    DISABLED = "disabled"
    FAILED = "failed"


class AuthUnavailableError(Exception):
    pass


class InvalidTokenError(Exception):
    pass


class FirebaseAuthProvider:
    """Initialize-once wrapper around a named firebase_admin app."""

    def __init__(self, credential_json: str, app_name: str = "sopen"):
        self._credential_json = credential_json
        self._app_name = app_name
        self._app: Optional[firebase_admin.App] = None
        self._status: Optional[AuthStatus] = None
        self._lock = threading.Lock()

    @property
    def status(self) -> AuthStatus:
        return self._status or AuthStatus.DISABLED

    @property
    def enabled(self) -> bool:
        return self._status is AuthStatus.ENABLED

    def initialize(self) -> AuthStatus:
        """Safe to call concurrently and repeatedly; only the first call does work."""
        with self._lock:
            if self._status is not None:
                return self._status

            if not self._credential_json:
                notifier.log_notice(
                    "FIREBASE_CONFIG_JSON is missing. Admin authentication features are disabled.",
                    notifier.FIREBASE_DISABLED,
                )
                self._status = AuthStatus.DISABLED
                return self._status

            try:
                service_account = json.loads(self._credential_json)
                # Certificate() reads a str argument as a file path
                if not isinstance(service_account, dict):
                    raise ValueError(
                        f"expected a service account object, got {type(service_account).__name__}"
                    )
                try:
                    self._app = firebase_admin.get_app(self._app_name)
                except ValueError:
                    self._app = firebase_admin.initialize_app(
                        credentials.Certificate(service_account), name=self._app_name
                    )
            except Exception as e:
                notifier.log_error(
                    "Critical failure initializing Firebase Admin SDK (check FIREBASE_CONFIG_JSON).",
                    e,
                    notifier.FIREBASE_INIT_FAIL,
                )
                self._status = AuthStatus.FAILED
                return self._status

            notifier.log_success("Firebase Admin SDK initialized.", notifier.FIREBASE_INIT)
            self._status = AuthStatus.ENABLED
            return self._status

    async def verify_token(self, token: str) -> Dict[str, Any]:
        if not self.enabled:
            raise AuthUnavailableError(f"authentication is {self.status.value}")
        try:
            return await asyncio.to_thread(firebase_auth.verify_id_token, token, app=self._app)
        except (ValueError, firebase_auth.InvalidIdTokenError, firebase_auth.ExpiredIdTokenError,
                firebase_auth.RevokedIdTokenError) as e:
            raise InvalidTokenError(str(e)) from e
