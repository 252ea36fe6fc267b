"""
Turn orchestrator for TaleForge.

Sequences one turn: check the adventure may advance, rebuild the narrator's
context from stored turns, call the narrator without holding any lock, then
hand the result to the lifecycle, which writes it conditionally on the turn
count observed here.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from taleforge import prompts, rules
from taleforge.engine.errors import (
    GeneratorUnavailable,
    MissingCampaignData,
    ValidationFailed,
)
from taleforge.engine.lifecycle import AdventureLifecycle
from taleforge.engine.narrator import (
    GeneratorRequest,
    Narrator,
    build_scene_state,
    build_system_prompt,
    opening_instruction,
)
from taleforge.engine.reconstructor import reconstruct
from taleforge.schemas.turn import TurnResponse
from taleforge.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class TurnOutcome:
    adventure: Dict[str, Any]
    turn: Dict[str, Any]
    response: TurnResponse

    @property
    def completed(self) -> bool:
        return self.adventure["status"] == "completed"


def has_campaign(adventure: Dict[str, Any]) -> bool:
    campaign = adventure.get("campaign_data")
    return bool(campaign) and bool(campaign.get("possible_endings"))


class TurnOrchestrator:
    """
    Advances adventures one turn at a time.

    No state is kept between calls: every turn reloads the adventure's history
    from the store, so a resumed session and a live one build the same request.
    """

    def __init__(
        self,
        lifecycle: AdventureLifecycle,
        narrator: Narrator,
        timeout_seconds: float = 60.0,
    ):
        self.lifecycle = lifecycle
        self.narrator = narrator
        self.timeout_seconds = timeout_seconds

    def build_request(
        self,
        adventure: Dict[str, Any],
        player_action: Optional[str],
        dice_roll: Optional[int] = None,
    ) -> GeneratorRequest:
        """
        Assemble the narrator input for the adventure's next turn.

        On the opening turn the player's action is replaced by the campaign's
        opening instruction.
        """
        turns = self.lifecycle.get_turns(adventure["id"])
        state = reconstruct(adventure, turns)

        if state.needs_initial_turn:
            action = opening_instruction(adventure)
        else:
            action = (player_action or "").strip()
            if not action:
                raise ValidationFailed("An action is required to continue the adventure")

        return GeneratorRequest(
            system_prompt=build_system_prompt(adventure),
            scene_state=build_scene_state(adventure, state.next_turn_number, dice_roll),
            history=list(state.context),
            player_action=action,
        )

    async def advance(
        self,
        adventure: Dict[str, Any],
        player_action: Optional[str],
        dice_roll: Optional[int] = None,
    ) -> TurnOutcome:
        """
        Play one turn of `adventure`.

        Args:
            adventure: Owned adventure as loaded for this request
            player_action: What the player does (ignored on the opening turn)
            dice_roll: Optional d20 result

        Returns:
            TurnOutcome with the updated adventure and the new turn record

        Raises:
            TurnLimitReached: If the cap is reached; the narrator is not called
            AdventureNotActive: If the adventure is completed or abandoned
            MissingCampaignData: If the adventure has no usable campaign
            ValidationFailed: If the action or dice roll is unusable
            GeneratorUnavailable: If the narrator failed; nothing was written
            TurnConflict: If another request applied this turn first
        """
        adventure_id = adventure["id"]
        turn_number = adventure["turn_count"] + 1

        self.lifecycle.check_can_advance(adventure)
        if not has_campaign(adventure):
            raise MissingCampaignData(adventure_id)
        if dice_roll is not None and not rules.is_valid_roll(dice_roll):
            raise ValidationFailed(
                f"Dice roll must be between {rules.DICE_RANGE[0]} and {rules.DICE_RANGE[1]}"
            )

        request = self.build_request(adventure, player_action, dice_roll)

        logger.info(
            f"[Turn] Generating turn {turn_number} for {adventure_id}",
            extra={"component": "TURN", "adventure_id": adventure_id},
        )
        start_time = time.time()
        try:
            response = await asyncio.wait_for(
                self.narrator.narrate(request), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            logger.warning(
                f"[Turn] Narrator timed out after {self.timeout_seconds}s on turn "
                f"{turn_number} of {adventure_id}",
                extra={"component": "TURN", "adventure_id": adventure_id},
            )
            raise GeneratorUnavailable(
                "The narrator took too long to answer", turn_number=turn_number, cause=e
            )
        except Exception as e:
            logger.error(
                f"[Turn] Narrator failed on turn {turn_number} of {adventure_id}: {e}",
                extra={"component": "TURN", "adventure_id": adventure_id},
            )
            raise GeneratorUnavailable(
                "The narrator could not continue the story", turn_number=turn_number, cause=e
            )

        if response.gold < 0:
            logger.warning(
                f"[Turn] Narrator returned negative gold ({response.gold}); clamping to 0",
                extra={"component": "TURN", "adventure_id": adventure_id},
            )

        applied = self.lifecycle.apply_turn_result(
            adventure, response, request.player_action, dice_roll
        )
        duration_ms = round((time.time() - start_time) * 1000, 2)
        logger.info(
            f"[Turn] Turn {turn_number} of {adventure_id} applied ({duration_ms}ms)",
            extra={
                "component": "TURN",
                "adventure_id": adventure_id,
                "duration_ms": duration_ms,
                "status": applied["adventure"]["status"],
            },
        )
        return TurnOutcome(
            adventure=applied["adventure"], turn=applied["turn"], response=response
        )

    def degraded_response(
        self, adventure: Dict[str, Any], error: GeneratorUnavailable
    ) -> Dict[str, Any]:
        """Player-facing answer for a failed turn; nothing here is persisted."""
        latest = self.lifecycle.db.get_latest_turn(adventure["id"])
        return {
            "degraded": True,
            "code": error.code,
            "detail": error.message,
            "narrative": prompts.FALLBACK_NARRATIVE,
            "options": list(latest["options"]) if latest else [],
            "retry_turn_number": error.turn_number or adventure["turn_count"] + 1,
            "adventure": adventure,
        }

    async def compose_epilogue(self, adventure_id: str) -> None:
        """
        Write and store the epilogue of a completed adventure.

        Runs after the response; any failure is logged and dropped.
        """
        adventure = self.lifecycle.db.get_adventure(adventure_id)
        if adventure is None or adventure["status"] != "completed":
            return
        try:
            turns = self.lifecycle.get_turns(adventure_id)
            epilogue = await asyncio.wait_for(
                self.narrator.write_epilogue(adventure, turns),
                timeout=self.timeout_seconds,
            )
            stored = self.lifecycle.record_epilogue(
                adventure_id, epilogue.dict(), adventure["turn_count"]
            )
            logger.info(
                f"[Epilogue] {'Stored' if stored else 'Discarded'} epilogue for {adventure_id}",
                extra={"component": "TURN", "adventure_id": adventure_id},
            )
        except Exception as e:
            logger.warning(
                f"[Epilogue] Could not write epilogue for {adventure_id}: {e}",
                extra={"component": "TURN", "adventure_id": adventure_id},
            )
