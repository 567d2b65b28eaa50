"""API key guard for operator routes."""

import hmac
import logging
from typing import Optional

from fastapi import Header, HTTPException, status

from contact_sync.config import settings

logger = logging.getLogger(__name__)


def verify_api_key(plain_key: Optional[str], expected_key: str) -> bool:
    """Constant-time comparison of the presented key."""
    if not plain_key:
        return False
    return hmac.compare_digest(plain_key.encode("utf-8"), expected_key.encode("utf-8"))


async def require_admin_key(x_api_key: Optional[str] = Header(default=None)) -> None:
    """Reject the request unless X-API-Key matches ADMIN_API_KEY (when configured)."""
    if not settings.ADMIN_API_KEY:
        return

    if not verify_api_key(x_api_key, settings.ADMIN_API_KEY):
        logger.warning("Rejected operator request with missing or invalid API key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key"
        )
