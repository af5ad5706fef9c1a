"""Admin authentication.

Admin sessions are issued by an external service; this API only checks the
bearer token it is configured with.
"""

import logging
import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from . import config

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


async def require_admin(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """Reject the request unless it carries the admin bearer token"""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    expected = config.ADMIN_API_TOKEN
    if not expected:
        logger.error("❌ ADMIN_API_TOKEN not configured, rejecting admin request")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin access is not configured",
        )

    if not secrets.compare_digest(credentials.credentials.encode(), expected.encode()):
        logger.warning("🔒 Invalid admin token presented")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return "admin"
