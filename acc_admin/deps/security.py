"""Security dependencies for admin routes.

Provides:
- Admin token authentication (constant-time compare)
- Operator identity from the X-Admin-User header set by the auth proxy
"""

import hmac
import os

import structlog
from fastapi import HTTPException, Request, status

logger = structlog.get_logger(__name__)

ADMIN_TOKEN_HEADER = "X-Admin-Token"
ADMIN_USER_HEADER = "X-Admin-User"


def require_admin_token(request: Request) -> bool:
    """
    Require valid admin token for protected routes.

    Security guarantees:
    - Uses hmac.compare_digest() for constant-time comparison
    - NO debug bypass (LOG_LEVEL has no effect)
    - Returns 401 for missing token, 403 for invalid token

    Usage:
        @router.post("/admin/jobs/queue/acknowledge")
        async def acknowledge(..., _: bool = Depends(require_admin_token)):
            ...
    """
    admin_token = os.environ.get("ADMIN_TOKEN")

    if not admin_token:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="ADMIN_TOKEN not configured. Contact system administrator.",
        )

    provided_token = request.headers.get(ADMIN_TOKEN_HEADER)
    if not provided_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Admin token required. Provide {ADMIN_TOKEN_HEADER} header.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not hmac.compare_digest(provided_token.encode(), admin_token.encode()):
        logger.warning(
            "invalid_admin_token",
            path=request.url.path,
            client=request.client.host if request.client else "unknown",
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin token",
        )

    return True


def require_admin_user(request: Request) -> str:
    """
    Return the operator's username from the identity header.

    The auth layer in front of the service authenticates the operator
    and forwards their tool username. Returns 401 if it is absent.
    """
    username = (request.headers.get(ADMIN_USER_HEADER) or "").strip()
    if not username:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Operator identity required. Provide {ADMIN_USER_HEADER} header.",
        )
    return username
