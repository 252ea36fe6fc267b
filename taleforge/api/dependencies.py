"""FastAPI dependency injection."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Depends, Request

from taleforge.config import settings
from taleforge.db.manager import DatabaseManager
from taleforge.engine.architect import CampaignArchitect
from taleforge.engine.errors import Unauthenticated
from taleforge.engine.lifecycle import AdventureLifecycle
from taleforge.engine.narrator import Narrator
from taleforge.engine.orchestrator import TurnOrchestrator
from taleforge.engine.rate_limiter import RateLimiter
from taleforge.engine.scene_renderer import SceneRenderer
from taleforge.providers.base import BaseProvider
from taleforge.providers.factory import create_provider

ANONYMOUS_PREFIX = "anon:"


@dataclass
class Identity:
    """Who is calling: a registered user or an anonymous IP"""

    owner_id: str
    ip: str
    user: Optional[Dict[str, Any]] = None

    @property
    def anonymous(self) -> bool:
        return self.user is None

    @property
    def premium(self) -> bool:
        return bool(self.user and self.user.get("is_premium"))

    @property
    def anonymous_owner_id(self) -> str:
        return anonymous_owner_id(self.ip)


def anonymous_owner_id(ip: str) -> str:
    return f"{ANONYMOUS_PREFIX}{ip}"


def get_real_ip(request: Request) -> str:
    """Get real client IP, handling reverse proxy.

    Returns:
        Client IP address (first in X-Forwarded-For chain if present)
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # X-Forwarded-For: client, proxy1, proxy2
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# Singletons shared by every request
_db: Optional[DatabaseManager] = None
_provider: Optional[BaseProvider] = None
_lifecycle: Optional[AdventureLifecycle] = None
_rate_limiter: Optional[RateLimiter] = None
_orchestrator: Optional[TurnOrchestrator] = None
_renderer: Optional[SceneRenderer] = None


def get_db() -> DatabaseManager:
    """Get the database manager singleton."""
    global _db
    if _db is None:
        _db = DatabaseManager(settings.database_path)
    return _db


def get_provider() -> BaseProvider:
    global _provider
    if _provider is None:
        _provider = create_provider()
    return _provider


def get_lifecycle(db: DatabaseManager = Depends(get_db)) -> AdventureLifecycle:
    """Get the adventure lifecycle singleton."""
    global _lifecycle
    if _lifecycle is None:
        _lifecycle = AdventureLifecycle(
            db,
            anonymous_max_turns=settings.anonymous_max_turns,
            registered_max_turns=settings.registered_max_turns,
            single_active_adventure=settings.single_active_adventure,
            free_history_limit=settings.free_history_limit,
        )
    return _lifecycle


def get_rate_limiter(db: DatabaseManager = Depends(get_db)) -> RateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter(db, settings.anonymous_daily_game_limit)
    return _rate_limiter


def get_orchestrator(
    lifecycle: AdventureLifecycle = Depends(get_lifecycle),
    provider: BaseProvider = Depends(get_provider),
) -> TurnOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = TurnOrchestrator(
            lifecycle,
            Narrator(provider),
            timeout_seconds=settings.generator_timeout_seconds,
        )
    return _orchestrator


def get_architect(provider: BaseProvider = Depends(get_provider)) -> CampaignArchitect:
    return CampaignArchitect(provider)


def get_scene_renderer() -> Optional[SceneRenderer]:
    """Scene renderer, or None when scene images are switched off."""
    global _renderer
    if not settings.enable_scene_images or settings.model_provider == "mock":
        return None
    if _renderer is None:
        _renderer = SceneRenderer(
            api_base=settings.image_api_base or settings.openai_api_base,
            api_key=settings.openai_api_key,
            model=settings.image_model_name,
            timeout=settings.image_timeout_seconds,
        )
    return _renderer


def get_identity(request: Request, db: DatabaseManager = Depends(get_db)) -> Identity:
    """
    Resolve the caller.

    A user id in the configured header (set by the auth proxy) must belong to
    a known user. Without it the caller is anonymous and keyed by IP.
    """
    ip = get_real_ip(request)
    user_id = request.headers.get(settings.user_id_header)
    if user_id:
        user = db.get_user(user_id)
        if user is None:
            raise Unauthenticated("Unknown user; sign in again")
        return Identity(owner_id=user_id, ip=ip, user=user)
    return Identity(owner_id=anonymous_owner_id(ip), ip=ip)


def require_user(identity: Identity = Depends(get_identity)) -> Identity:
    if identity.anonymous:
        raise Unauthenticated("Sign in required")
    return identity
