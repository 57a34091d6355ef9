"""
Public JSON API (no authentication).

- GET /api/pages   - published pages, newest first (cache-aside when the
                     cache is connected)
- GET /api/status  - publish mode, cache availability, page count
"""

import json
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from sopen.api.dependencies import get_context

logger = logging.getLogger(__name__)

router = APIRouter(tags=["public"])

PAGES_CACHE_KEY = "pages:list"
PAGES_CACHE_TTL = 60


@router.get("/pages")
async def list_pages(context=Depends(get_context)) -> Dict[str, List[Dict[str, Any]]]:
    cached = await context.cache.get(PAGES_CACHE_KEY) if context.cache_available() else None
    if cached is not None:
        try:
            return {"pages": json.loads(cached)}
        except ValueError:
            logger.debug("Discarding unreadable cached page list")

    pages = [
        {"slug": p.slug, "title": p.title, "url": p.url, "modified": p.modified}
        for p in await context.generator.list_pages()
    ]
    if context.cache_available():
        await context.cache.set(PAGES_CACHE_KEY, json.dumps(pages), ttl=PAGES_CACHE_TTL)
    return {"pages": pages}


@router.get("/status")
async def service_status(context=Depends(get_context)) -> Dict[str, Any]:
    pages = await context.generator.list_pages()
    return {
        "publish_mode": context.publish_mode.value,
        "cache_available": context.cache_available(),
        "page_count": len(pages),
    }
