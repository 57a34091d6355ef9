"""
Sopen Dependency Clients
========================

Async clients for the external services the boot orchestrator connects:
- MongoDatastore: primary datastore (fatal)
- RedisCache: optional cache (advisory)
- AmqpPublishQueue: publish broker (advisory, only in QUEUED mode)
- FirebaseAuthProvider: admin authentication (advisory)
"""

from sopen.clients.auth_provider import AuthStatus, FirebaseAuthProvider
from sopen.clients.cache import Cache, RedisCache
from sopen.clients.datastore import Datastore, MongoDatastore
from sopen.clients.publish_queue import AmqpPublishQueue

__all__ = [
    "AmqpPublishQueue",
    "AuthStatus",
    "Cache",
    "Datastore",
    "FirebaseAuthProvider",
    "MongoDatastore",
    "RedisCache",
]
