"""
Health probes.

- /health/live  - 200 while the process is serving requests
- /health/ready - 200 when the primary datastore answers a ping, 503
                  otherwise; advisory dependencies are reported, never gate
"""

import logging
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from sopen.api.dependencies import get_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> Dict[str, Any]:
    return {"status": "alive", "timestamp": time.time()}


@router.get("/ready")
async def readiness(context=Depends(get_context)) -> JSONResponse:
    try:
        datastore_ok = await context.datastore.ping()
    except Exception as e:
        logger.debug(f"Readiness ping failed: {e}")
        datastore_ok = False

    body = {
        "status": "ready" if datastore_ok else "not_ready",
        "datastore": datastore_ok,
        "cache": context.cache_available(),
        "publish_mode": context.publish_mode.value,
        "auth": context.auth.status.value,
    }
    return JSONResponse(status_code=200 if datastore_ok else 503, content=body)
