"""Authenticated-user API: publishing."""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from sopen.api.dependencies import get_context, require_user
from sopen.api.public_routes import PAGES_CACHE_KEY
from sopen.core.errors import PublishUnavailableError
from sopen.core.publish_mode import PublishMode, PublishRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["user"])


@router.post("/publish")
async def publish_page(
    request: PublishRequest,
    claims: Dict[str, Any] = Depends(require_user),
    context=Depends(get_context),
) -> JSONResponse:
    """
    Publish a page through the active pipeline.

    DIRECT mode answers 200 once the page is written; QUEUED mode answers
    202 once the job is on the broker.
    """
    author = request.author or claims.get("name") or claims.get("email")
    request = request.model_copy(update={"author": author})
    try:
        receipt = await context.publisher.publish(request)
    except PublishUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
            headers={"Retry-After": "30"},
        )

    if context.cache_available():
        await context.cache.delete(PAGES_CACHE_KEY)
    code = status.HTTP_200_OK if receipt.mode is PublishMode.DIRECT else status.HTTP_202_ACCEPTED
    return JSONResponse(status_code=code, content=receipt.to_dict())
