"""FastAPI dependencies shared by the route groups."""

import logging
from typing import Any, Dict, Optional

from fastapi import Depends, Header, HTTPException, Request, status

from sopen.clients.auth_provider import AuthUnavailableError, InvalidTokenError

logger = logging.getLogger(__name__)


def get_context(request: Request):
    """The ``ServiceContext`` attached during boot."""
    context = getattr(request.app.state, "context", None)
    if context is None:
        # Routes are mounted after the context is attached, so this only
        # happens when a router is used outside the boot sequence.
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="service is starting")
    return context


async def require_user(
    authorization: Optional[str] = Header(default=None),
    context=Depends(get_context),
) -> Dict[str, Any]:
    """Verify the bearer token and return its claims."""
    if not context.auth.enabled:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="authentication is not configured on this server",
        )
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return await context.auth.verify_token(token.strip())
    except AuthUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_admin(claims: Dict[str, Any] = Depends(require_user)) -> Dict[str, Any]:
    if claims.get("admin") is not True:
        logger.info(f"Admin access denied for uid={claims.get('uid', '?')}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin privileges required")
    return claims
