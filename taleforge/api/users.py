"""
User API endpoints.

Users are provisioned by the external login flow: its callback pushes the
profile here, and later requests carry the user id in a trusted header.
"""

import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header

from taleforge.api.dependencies import Identity, get_db, require_user
from taleforge.config import settings
from taleforge.db.manager import DatabaseManager
from taleforge.engine.errors import Forbidden
from taleforge.schemas.adventure import UserSync
from taleforge.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/sync")
async def sync_user(
    user: UserSync,
    x_auth_secret: Optional[str] = Header(None),
    db: DatabaseManager = Depends(get_db),
):
    """
    Create or refresh a user from the login callback.

    Raises:
        Forbidden 403: The shared callback secret is configured and missing or wrong
    """
    secret = settings.auth_callback_secret
    if secret and not hmac.compare_digest(x_auth_secret or "", secret):
        logger.warning(f"Rejected user sync for {user.id}: bad callback secret")
        raise Forbidden("Invalid callback secret")

    stored = db.upsert_user(user.dict(exclude_unset=True))
    logger.info(f"Synced user {stored['id']}", extra={"component": "API"})
    return stored


@router.get("/me")
async def get_me(identity: Identity = Depends(require_user)):
    return identity.user
