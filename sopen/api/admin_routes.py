"""Admin API (requires the ``admin`` custom claim)."""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from sopen.api.dependencies import get_context, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/boot")
async def boot_report(context=Depends(get_context)) -> Dict[str, Any]:
    """Dependency outcomes and effective configuration (secrets masked)."""
    return {
        "booted_at": context.booted_at,
        "publish_mode": context.publish_mode.value,
        "dependencies": {name: o.to_dict() for name, o in context.connector.outcomes().items()},
        "auth": context.auth.status.value,
        "settings": context.settings.to_dict(),
    }


@router.post("/homepage/regenerate")
async def regenerate_homepage(context=Depends(get_context)) -> Dict[str, Any]:
    await context.generator.generate(context.settings.homepage_path)
    pages = await context.generator.list_pages()
    logger.info(f"Homepage regenerated on admin request ({len(pages)} page(s))")
    return {"regenerated": True, "page_count": len(pages)}
