"""
Adventure API endpoints.

This module handles adventure creation, turn processing, resume and the
restart/abandon/claim/delete transitions. Every route that takes an adventure
id loads it through the lifecycle's ownership check first.
"""

import base64
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Response

from taleforge.api.dependencies import (
    Identity,
    get_identity,
    get_lifecycle,
    get_orchestrator,
    get_rate_limiter,
    get_scene_renderer,
    require_user,
)
from taleforge.config import settings
from taleforge.engine.errors import (
    GeneratorUnavailable,
    SceneImageNotFound,
    Unauthenticated,
)
from taleforge.engine.lifecycle import AdventureLifecycle
from taleforge.engine.orchestrator import TurnOrchestrator
from taleforge.engine.rate_limiter import RateLimiter
from taleforge.engine.reconstructor import display_projection, reconstruct
from taleforge.engine.scene_renderer import SceneRenderer, render_and_attach
from taleforge.schemas.adventure import AdventureCreateRequest, TurnRequest
from taleforge.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


def present(adventure: Dict[str, Any]) -> Dict[str, Any]:
    """Adventure as returned to clients; image bytes are served separately"""
    public = {k: v for k, v in adventure.items() if k != "last_image"}
    public["has_image"] = bool(adventure.get("last_image"))
    return public


def with_resume(lifecycle: AdventureLifecycle, adventure: Dict[str, Any]) -> Dict[str, Any]:
    state = reconstruct(adventure, lifecycle.get_turns(adventure["id"]))
    return {"adventure": present(adventure), "resume": state.to_dict()}


@router.post("/")
async def create_adventure(
    request: AdventureCreateRequest,
    identity: Identity = Depends(get_identity),
    lifecycle: AdventureLifecycle = Depends(get_lifecycle),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
):
    """
    Start a new adventure.

    Anonymous callers are limited to a number of new adventures per IP per
    day; the counter is written in the same transaction as the adventure.

    Raises:
        DailyLimitExceeded 429: Anonymous quota used up
        ValidationFailed 422: Unusable character or starting values
    """
    kwargs = dict(
        character=request.character,
        campaign=request.campaign,
        theme_seeds=request.theme_seeds,
        starting_hp=request.starting_hp,
        starting_gold=request.starting_gold,
        starting_inventory=request.starting_inventory,
    )

    if identity.anonymous:
        if not settings.allow_anonymous_play:
            raise Unauthenticated("Sign in to start an adventure")
        with rate_limiter.reserve(identity.ip) as reservation:
            adventure = lifecycle.create(
                identity.owner_id, anonymous=True, reservation=reservation, **kwargs
            )
    else:
        adventure = lifecycle.create(identity.owner_id, **kwargs)

    return with_resume(lifecycle, adventure)


@router.get("/")
async def list_adventures(
    identity: Identity = Depends(get_identity),
    lifecycle: AdventureLifecycle = Depends(get_lifecycle),
) -> List[Dict[str, Any]]:
    """List the caller's adventures, most recently played first."""
    return lifecycle.list_owned(identity.owner_id, premium=identity.premium)


@router.get("/active")
async def get_active_adventure(
    identity: Identity = Depends(get_identity),
    lifecycle: AdventureLifecycle = Depends(get_lifecycle),
) -> Optional[Dict[str, Any]]:
    """The caller's active adventure with what to show on resume, or null."""
    adventure = lifecycle.get_active(identity.owner_id)
    if adventure is None:
        return None
    return with_resume(lifecycle, adventure)


@router.get("/{adventure_id}")
async def get_adventure(
    adventure_id: str,
    identity: Identity = Depends(get_identity),
    lifecycle: AdventureLifecycle = Depends(get_lifecycle),
):
    adventure = lifecycle.get_owned(adventure_id, identity.owner_id)
    return with_resume(lifecycle, adventure)


@router.get("/{adventure_id}/turns")
async def get_turns(
    adventure_id: str,
    identity: Identity = Depends(get_identity),
    lifecycle: AdventureLifecycle = Depends(get_lifecycle),
):
    """Full turn history for the story log."""
    lifecycle.get_owned(adventure_id, identity.owner_id)
    turns = lifecycle.get_turns(adventure_id)
    return {
        "adventure_id": adventure_id,
        "turns": [display_projection(t) for t in turns],
    }


@router.post("/{adventure_id}/turns")
async def advance_turn(
    adventure_id: str,
    request: TurnRequest,
    background_tasks: BackgroundTasks,
    identity: Identity = Depends(get_identity),
    lifecycle: AdventureLifecycle = Depends(get_lifecycle),
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
    renderer: Optional[SceneRenderer] = Depends(get_scene_renderer),
):
    """
    Play the next turn.

    If the narrator fails, nothing is written and a placeholder answer is
    returned with the turn number to retry.

    Raises:
        TurnLimitReached 403: Turn cap reached
        AdventureNotActive 409: Adventure completed or abandoned
        TurnConflict 409: Turn already played from another request
    """
    adventure = lifecycle.get_owned(adventure_id, identity.owner_id)

    try:
        outcome = await orchestrator.advance(adventure, request.action, request.dice_roll)
    except GeneratorUnavailable as e:
        degraded = orchestrator.degraded_response(adventure, e)
        degraded["adventure"] = present(degraded["adventure"])
        return degraded

    turn_number = outcome.turn["turn_number"]
    if renderer is not None and outcome.turn["visual_prompt"]:
        background_tasks.add_task(
            render_and_attach,
            renderer,
            lifecycle,
            adventure_id,
            outcome.turn["visual_prompt"],
            turn_number,
        )
    if outcome.completed:
        background_tasks.add_task(orchestrator.compose_epilogue, adventure_id)

    return {
        "degraded": False,
        "adventure": present(outcome.adventure),
        "turn": display_projection(outcome.turn),
    }


@router.post("/{adventure_id}/restart")
async def restart_adventure(
    adventure_id: str,
    identity: Identity = Depends(get_identity),
    lifecycle: AdventureLifecycle = Depends(get_lifecycle),
):
    """Replay the same campaign with the same character from the start."""
    adventure = lifecycle.get_owned(adventure_id, identity.owner_id)
    return with_resume(lifecycle, lifecycle.restart(adventure))


@router.post("/{adventure_id}/abandon")
async def abandon_adventure(
    adventure_id: str,
    identity: Identity = Depends(get_identity),
    lifecycle: AdventureLifecycle = Depends(get_lifecycle),
):
    adventure = lifecycle.get_owned(adventure_id, identity.owner_id)
    return {"adventure": present(lifecycle.abandon(adventure))}


@router.post("/{adventure_id}/claim")
async def claim_adventure(
    adventure_id: str,
    identity: Identity = Depends(require_user),
    lifecycle: AdventureLifecycle = Depends(get_lifecycle),
):
    """
    Move an adventure started anonymously from this IP to the signed-in user.

    The turn cap is lifted and an adventure that stopped at the anonymous cap
    is reopened.
    """
    adventure = lifecycle.claim(
        adventure_id, identity.anonymous_owner_id, identity.owner_id
    )
    return with_resume(lifecycle, adventure)


@router.delete("/{adventure_id}")
async def delete_adventure(
    adventure_id: str,
    identity: Identity = Depends(get_identity),
    lifecycle: AdventureLifecycle = Depends(get_lifecycle),
):
    adventure = lifecycle.get_owned(adventure_id, identity.owner_id)
    lifecycle.delete(adventure)
    return {"message": "Adventure deleted", "id": adventure_id}


@router.get("/{adventure_id}/image")
async def get_scene_image(
    adventure_id: str,
    identity: Identity = Depends(get_identity),
    lifecycle: AdventureLifecycle = Depends(get_lifecycle),
):
    """The latest rendered scene as PNG bytes."""
    adventure = lifecycle.get_owned(adventure_id, identity.owner_id)
    if not adventure.get("last_image"):
        raise SceneImageNotFound(adventure_id)
    return Response(
        content=base64.b64decode(adventure["last_image"]),
        media_type="image/png",
        headers={"X-Scene-Turn": str(adventure.get("last_image_turn"))},
    )
