import hmac
import logging

from fastapi import Header

from leaderboard_sync.core.config import settings
from leaderboard_sync.core.exceptions import SyncUnauthorizedError

logger = logging.getLogger(__name__)


async def require_sync_key(authorization: str | None = Header(default=None)) -> None:
    """Guard for sync endpoints: expects ``Authorization: Bearer <SYNC_API_KEY>``."""
    expected = settings.SYNC_API_KEY
    if not expected:
        logger.warning("[SECURITY] SYNC_API_KEY not configured, rejecting sync request")
        raise SyncUnauthorizedError()

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token.encode(), expected.encode()):
        logger.warning("[SECURITY] Sync request rejected: bad or missing key")
        raise SyncUnauthorizedError()
