"""
Sopen HTTP surface.

Route groups are plain ``APIRouter`` objects; nothing is mounted at import
time. The boot sequencer includes them once the primary datastore is up.
"""

from sopen.api.admin_routes import router as admin_router
from sopen.api.health_routes import router as health_router
from sopen.api.page_routes import router as page_router
from sopen.api.public_routes import router as public_router
from sopen.api.user_routes import router as user_router

__all__ = ["admin_router", "health_router", "page_router", "public_router", "user_router"]
