"""
Rate limit status endpoint for the free tier UI.
"""

from fastapi import APIRouter, Depends

from taleforge.api.dependencies import Identity, get_identity, get_rate_limiter
from taleforge.engine.rate_limiter import RateLimiter

router = APIRouter()


@router.get("/status")
async def rate_limit_status(
    identity: Identity = Depends(get_identity),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
):
    """How many adventures the caller may still start today."""
    if not identity.anonymous:
        return {
            "unlimited": True,
            "games_remaining": -1,
            "total_allowed": -1,
            "games_used": 0,
        }
    return rate_limiter.status(identity.ip)
