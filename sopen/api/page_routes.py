"""
HTML routes.

``/`` serves the generated homepage. When the file is missing it is
generated on demand through the artifact guard; if that still leaves no
file the client gets a 503 placeholder with ``Retry-After`` ("not yet
generated"), never a 500.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse, HTMLResponse

from sopen.api.dependencies import get_context
from sopen.core.artifact_guard import ArtifactStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pages"])

RETRY_AFTER_SECONDS = 5

INITIALIZING_HTML = (
    "<!DOCTYPE html><html><head><meta charset=\"utf-8\"><title>Sopen</title></head>"
    "<body><h1>Sopen</h1><p>The system is initializing, please try again shortly.</p></body></html>"
)


@router.get("/dashboard", include_in_schema=False)
async def dashboard(context=Depends(get_context)):
    path = context.settings.dashboard_path
    if not path.exists():
        return HTMLResponse("<h1>Dashboard not installed</h1>", status_code=404)
    return FileResponse(path, media_type="text/html")


@router.get("/", include_in_schema=False)
async def homepage(context=Depends(get_context)):
    path = context.settings.homepage_path
    if await context.artifact_guard.ensure(path) is ArtifactStatus.READY:
        return FileResponse(path, media_type="text/html")
    return HTMLResponse(
        INITIALIZING_HTML,
        status_code=503,
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )
